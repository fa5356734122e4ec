"""The TCP listener through which host bridges reach the zone accessories."""
import logging
import time

from .util import callback
from .zone_protocol import ZoneServerProtocol

logger = logging.getLogger(__name__)

IDLE_CONNECTION_CHECK_INTERVAL_SECONDS = 120


class ZoneServer:
    """Accepts client connections and routes pushed events to them.

    Every connection is served by its own `ZoneServerProtocol`, kept in
    ``connections`` by the (address, port) of the client.
    """

    def __init__(self, addr_port, driver):
        self._addr_port = addr_port
        self.driver = driver
        self.connections = {}
        self.loop = None
        self.server = None
        self._idle_check = None

    def _make_protocol(self):
        return ZoneServerProtocol(self.loop, self.connections, self.driver)

    async def async_start(self, loop):
        """Listen on the configured address and port."""
        self.loop = loop
        address, port = self._addr_port
        self.server = await loop.create_server(self._make_protocol, address, port)
        logger.debug("Listening on %s:%s", address, port)
        self._check_idle_connections()

    @callback
    def _check_idle_connections(self):
        now = time.time()
        for zone_proto in list(self.connections.values()):
            zone_proto.check_idle(now)
        self._idle_check = self.loop.call_later(
            IDLE_CONNECTION_CHECK_INTERVAL_SECONDS, self._check_idle_connections
        )

    @callback
    def async_stop(self):
        """Close every connection and stop listening.

        Must be called from the event loop.
        """
        if self._idle_check is not None:
            self._idle_check.cancel()
            self._idle_check = None
        for zone_proto in list(self.connections.values()):
            zone_proto.close()
        self.connections.clear()
        self.server.close()

    def push_event(self, data, client_addr, immediate=False):
        """Queue ``data`` for the connection of ``client_addr``.

        :return: False if the client is not connected.
        :rtype: bool
        """
        zone_proto = self.connections.get(client_addr)
        if zone_proto is None:
            logger.debug("No connection to %s for the event", client_addr)
            return False
        zone_proto.queue_event(data, immediate)
        return True
