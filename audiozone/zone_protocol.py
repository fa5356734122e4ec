"""The asyncio protocol owning one host bridge connection.

Requests are parsed with h11 and answered in order: while the response to a
request is computed asynchronously, later requests stay buffered in h11.
Value change events share the connection and are only written between whole
messages.
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional

import h11

from .accessory import get_topic
from .const import HAP_REPR_AID, HAP_REPR_IID
from .zone_event import create_zone_event
from .zone_handler import ZoneResponse, ZoneServerHandler

logger = logging.getLogger(__name__)

HIGH_WRITE_BUFFER_SIZE = 2 ** 19
# A host bridge keeps its connection for as long as it runs.
IDLE_CONNECTION_TIMEOUT_SECONDS = 90 * 60 * 60
# Events queued within this window are sent in a single message.
EVENT_COALESCE_TIME_WINDOW = 0.5


class ZoneServerProtocol(asyncio.Protocol):
    """Serves the zone accessories to one client over plain HTTP/1.1."""

    def __init__(self, loop, connections, driver) -> None:
        self.loop = loop
        self.connections = connections
        self.driver = driver
        self.conn = h11.Connection(h11.SERVER)
        self.transport: Optional[asyncio.Transport] = None
        self.peername = None
        self.handler: Optional[ZoneServerHandler] = None

        self.request: Optional[h11.Request] = None
        self.request_body: Optional[bytearray] = None
        # Response whose task is still running
        self.response: Optional[ZoneResponse] = None

        self.last_activity: Optional[float] = None
        self._event_queue: List[Dict] = []
        self._event_timer: Optional[asyncio.TimerHandle] = None

    # asyncio.Protocol callbacks

    def connection_made(self, transport: asyncio.Transport) -> None:
        peername = transport.get_extra_info("peername")
        logger.info(
            "%s: Connection made to %s", peername, self.driver.display_name
        )
        transport.set_write_buffer_limits(high=HIGH_WRITE_BUFFER_SIZE)
        self.transport = transport
        self.peername = peername
        self.handler = ZoneServerHandler(self.driver, peername)
        self.connections[peername] = self
        self.last_activity = time.time()

    def data_received(self, data: bytes) -> None:
        self.last_activity = time.time()
        logger.debug("%s: Recv: %s", self.peername, data)
        self.conn.receive_data(data)
        self._process_events()

    def connection_lost(self, exc: Optional[Exception]) -> None:
        logger.debug(
            "%s: Connection to %s lost: %s",
            self.peername,
            self.driver.display_name,
            exc,
        )
        self.driver.connection_lost(self.peername)
        self.close()

    # Connection handling

    def write(self, data: bytes) -> None:
        self.last_activity = time.time()
        logger.debug("%s: Send: %s", self.peername, data)
        self.transport.write(data)

    def close(self) -> None:
        """Forget the connection and close its transport."""
        self.connections.pop(self.peername, None)
        self._cancel_event_timer()
        self.transport.write_eof()
        self.transport.close()

    def finish_and_close(self) -> None:
        """Close after the last response of a non keep-alive connection."""
        self.conn.send(h11.ConnectionClosed())
        self.close()

    def check_idle(self, now: float) -> None:
        """Close the connection if nothing was sent or received for too long."""
        if now - self.last_activity <= IDLE_CONNECTION_TIMEOUT_SECONDS:
            return
        logger.info(
            "%s: Closing connection to %s idle for more than %ss",
            self.peername,
            self.driver.display_name,
            IDLE_CONNECTION_TIMEOUT_SECONDS,
        )
        self.close()

    # Requests

    def _process_events(self) -> None:
        try:
            while self._process_one_event():
                if self.conn.our_state is h11.MUST_CLOSE:
                    self.finish_and_close()
                    return
        except h11.ProtocolError as err:
            self._handle_invalid_conn_state(err)

    def _process_one_event(self) -> bool:
        """Handle the next h11 event; return False when there is nothing to do."""
        if self.response is not None:
            return False

        event = self.conn.next_event()
        logger.debug("%s: h11 Event: %s", self.peername, event)

        if event is h11.NEED_DATA or isinstance(event, h11.ConnectionClosed):
            return False
        if event is h11.PAUSED:
            self.conn.start_next_cycle()
        elif isinstance(event, h11.Request):
            self.request = event
            self.request_body = bytearray()
        elif isinstance(event, h11.Data):
            self.request_body.extend(event.data)
        elif isinstance(event, h11.EndOfMessage):
            request, body = self.request, bytes(self.request_body)
            self.request = self.request_body = None
            self._process_response(self.handler.dispatch(request, body))
        else:
            return self._handle_invalid_conn_state(
                "Unexpected event: {}".format(event)
            )
        return True

    def _process_response(self, response: ZoneResponse) -> None:
        if response.task is None:
            self.send_response(response)
            return
        self.response = response
        response.task.add_done_callback(self._handle_response_ready)

    def _handle_response_ready(self, task: asyncio.Future) -> None:
        """Send a response once its task is done, then resume reading."""
        response, self.response = self.response, None
        try:
            task.result()
        except Exception as err:  # pylint: disable=broad-except
            logger.debug(
                "%s: Failed to complete the response", self.peername, exc_info=err
            )
            response = self.handler.generic_failure_response()

        if self.transport.is_closing():
            logger.debug(
                "%s: Connection closed before the response was ready", self.peername
            )
            return
        self.send_response(response)
        self._process_events()

    def send_response(self, response: ZoneResponse) -> None:
        if response.body:
            # Always send a Content-Length; some clients stall on chunked bodies.
            response.headers.append(("Content-Length", str(len(response.body))))
        head = h11.Response(
            status_code=response.status_code,
            reason=response.reason,
            headers=response.headers,
        )
        self.write(
            b"".join(
                (
                    self.conn.send(head),
                    self.conn.send(h11.Data(data=response.body)),
                    self.conn.send(h11.EndOfMessage()),
                )
            )
        )

    def _handle_invalid_conn_state(self, message) -> bool:
        logger.debug(
            "%s: Closing connection in invalid state: %s", self.peername, message
        )
        self.close()
        return False

    # Events

    def queue_event(self, data: dict, immediate: bool) -> None:
        """Queue a value change for the client.

        Unless ``immediate``, the event waits for others to share a message.
        """
        self._event_queue.append(data)
        if immediate:
            self.loop.call_soon(self._send_events)
        elif self._event_timer is None:
            self._event_timer = self.loop.call_later(
                EVENT_COALESCE_TIME_WINDOW, self._send_events
            )

    def _cancel_event_timer(self) -> None:
        if self._event_timer is not None:
            self._event_timer.cancel()
            self._event_timer = None

    def _send_events(self) -> None:
        self._cancel_event_timer()
        queue, self._event_queue = self._event_queue, []
        # The client may have unsubscribed since the events were queued.
        topics = self.driver.topics
        events = [
            event
            for event in queue
            if self.peername
            in topics.get(get_topic(event[HAP_REPR_AID], event[HAP_REPR_IID]), ())
        ]
        if events:
            self.write(create_zone_event(events))
