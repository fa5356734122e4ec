"""The ZoneDriver runs the zone shim: server, platform and mDNS announcement.

How a value change reaches a client:

1. A characteristic of a zone accessory gets a new value, written by a client
   or reported by the zone through ``ZoneAccessory.async_update_capability``.
2. The accessory adds its AID and the IID of the characteristic and hands the
   change to `ZoneDriver.publish`.
3. The driver looks up the clients subscribed to that characteristic and
   queues the change on their connections, skipping the client that made it.

Nothing in this chain waits for the event to be written.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
import hashlib
import logging
import re
import socket
import sys
import threading

from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from . import util
from .accessory import ZonePlatform, get_topic
from .capability import (
    PROP_PERMISSIONS,
    BackendTimeout,
    CapabilityError,
    UnsupportedCapability,
)
from .characteristic import CharacteristicError
from .config import PlatformConfig
from .const import (
    HAP_PERMISSION_NOTIFY,
    HAP_REPR_ACCS,
    HAP_REPR_AID,
    HAP_REPR_CHARS,
    HAP_REPR_IID,
    HAP_REPR_STATUS,
    HAP_REPR_VALUE,
    HAP_SERVER_STATUS,
    ZONE_MODEL,
    ZONE_SERVICE_TYPE,
    __version__,
)
from .loader import get_loader
from .zone_server import ZoneServer

logger = logging.getLogger(__name__)

INVALID_MDNS_CHARS = re.compile(r"[^A-Za-z0-9\-]+")
OUTER_SPACES_AND_DASHES = re.compile(r"^[ -]+|[ -]+$")
DASH_RUNS = re.compile(r"-+")

# Status of a failed client write, by the exception raising it
WRITE_ERROR_STATUS = (
    (ValueError, HAP_SERVER_STATUS.INVALID_VALUE_IN_REQUEST),
    (CharacteristicError, HAP_SERVER_STATUS.READ_ONLY_CHARACTERISTIC),
    (UnsupportedCapability, HAP_SERVER_STATUS.READ_ONLY_CHARACTERISTIC),
    (BackendTimeout, HAP_SERVER_STATUS.OPERATION_TIMED_OUT),
)


def mdns_display_name(name):
    """``name`` with runs of characters invalid in mDNS names as one space."""
    return OUTER_SPACES_AND_DASHES.sub("", INVALID_MDNS_CHARS.sub(" ", name))


def mdns_host_name(name):
    """``name`` as a host label: words joined by single dashes."""
    words = INVALID_MDNS_CHARS.sub(" ", name).strip().replace(" ", "-")
    return DASH_RUNS.sub("-", words.strip("-"))


async def _async_write_status(char, value, client_addr):
    """Write a client value and return the resulting HAP status."""
    try:
        await char.async_client_update_value(value, client_addr)
    except Exception as err:  # pylint: disable=broad-except
        for error_type, status in WRITE_ERROR_STATUS:
            if isinstance(err, error_type):
                logger.warning(
                    "%s: Writing %r to %s failed: %s",
                    client_addr,
                    value,
                    char.display_name,
                    err,
                )
                return status
        logger.exception(
            "%s: Unexpected error writing %r to %s",
            client_addr,
            value,
            char.display_name,
        )
        return HAP_SERVER_STATUS.SERVICE_COMMUNICATION_FAILURE
    return HAP_SERVER_STATUS.SUCCESS


class ZoneMDNSServiceInfo(ServiceInfo):
    """The mDNS announcement of a zone shim."""

    def __init__(self, driver):
        self.driver = driver
        # Part of the MAC keeps several shims on one network apart
        suffix = driver.config.mac[-8:].replace(":", "")
        super().__init__(
            ZONE_SERVICE_TYPE,
            name="{} {}.{}".format(
                mdns_display_name(driver.display_name), suffix, ZONE_SERVICE_TYPE
            ),
            server="{}-{}.local.".format(mdns_host_name(driver.display_name), suffix),
            port=driver.port,
            weight=0,
            priority=0,
            properties=self._get_advert_data(),
            addresses=[socket.inet_aton(driver.address)],
        )

    def _get_advert_data(self):
        """Return the TXT record of the announcement."""
        platform = self.driver.platform
        return {
            "md": ZONE_MODEL,
            "pn": mdns_display_name(self.driver.display_name),
            "id": self.driver.config.mac,
            "pv": __version__,
            # Host bridges fetch /accessories again when this changes
            "c#": self.driver.accessories_hash[:8],
            "zn": str(len(platform.zone_accessories) if platform else 0),
        }


class ZoneDriver:
    """Serves the zone accessories of one platform to host bridges.

    The driver owns the `ZoneServer` and the mDNS announcement, answers the
    requests the server routes to it and keeps track of which client
    subscribed to which characteristic.
    """

    def __init__(
        self,
        *,
        config=None,
        backend=None,
        loader=None,
        loop=None,
        address=None,
        listen_address=None,
        advertised_address=None,
        interface_choice=None,
        async_zeroconf_instance=None
    ):
        """
        :param config: The platform configuration, by default one without
            zones.
        :type config: PlatformConfig

        :param backend: The backend of every zone, by default a `StubBackend`.
        :type backend: CapabilityBackend

        :param loop: The event loop to run in. Without one, the driver creates
            its own and runs it in `start`.

        :param address: The address the shim is reachable on, by default the
            configured one.
        :type address: str

        :param listen_address: The address the server binds to, by default
            ``address``.
        :type listen_address: str

        :param advertised_address: The address put in the mDNS announcement,
            by default ``address``.
        :type advertised_address: str

        :param interface_choice: The interfaces zeroconf announces on.

        :param async_zeroconf_instance: An AsyncZeroconf shared with other
            services of the process.
        """
        self.executor = None
        if loop is None:
            loop = (
                asyncio.ProactorEventLoop()
                if sys.platform == "win32"
                else asyncio.new_event_loop()
            )
            self.executor = ThreadPoolExecutor(thread_name_prefix="SyncWorker")
            loop.set_default_executor(self.executor)
            self.tid = threading.current_thread()
        else:
            self.tid = threading.main_thread()
        self.loop = loop

        self.config = config or PlatformConfig()
        self.backend = backend
        self.loader = loader or get_loader()
        self.platform = None

        self.advertiser = async_zeroconf_instance
        self.interface_choice = interface_choice
        self.mdns_service_info = None

        # topic -> set of (address, port) of subscribed clients
        self.topics = {}
        self.aio_stop_event = None
        self.stop_event = threading.Event()

        address = address or self.config.address
        self.address = advertised_address or address
        self.port = self.config.port
        self.http_server = ZoneServer((listen_address or address, self.port), self)

    @property
    def display_name(self):
        if self.platform is not None:
            return self.platform.display_name
        return self.config.name

    def add_platform(self, platform=None):
        """Serve ``platform`` and build its accessories.

        :param platform: By default a `ZonePlatform` of the driver's config
            and backend.
        :type platform: ZonePlatform

        :raise ZoneConfigError: if the zones are misconfigured.
        """
        self.platform = platform or ZonePlatform(self, self.config, self.backend)
        self.platform.accessories(self._accessories_ready)

    def _accessories_ready(self, accessories):
        logger.info("%s: %d zone accessories", self.display_name, len(accessories))

    # Lifecycle

    def start(self):
        """Run `async_start` in the driver's own loop until stopped.

        A KeyboardInterrupt stops the driver cleanly.
        """
        try:
            logger.info("Starting the event loop")
            self.add_job(self.async_start())
            self.loop.run_forever()
        except KeyboardInterrupt:
            logger.debug("Interrupted, stopping the driver")
            self.loop.call_soon_threadsafe(self.loop.create_task, self.async_stop())
            self.loop.run_forever()
        finally:
            self.loop.close()
            logger.info("Closed the event loop")

    async def async_start(self):
        """Serve the platform and announce it.

        The accessories are built if no platform was added yet and the zones
        are read once before the announcement.
        """
        self.aio_stop_event = asyncio.Event()
        if self.platform is None:
            self.add_platform()
        logger.info(
            "Starting %s on %s:%s", self.display_name, self.address, self.port
        )
        await self.http_server.async_start(self.loop)
        await self.platform.async_refresh()

        self.mdns_service_info = ZoneMDNSServiceInfo(self)
        if self.advertiser is None:
            zc_args = {}
            if self.interface_choice is not None:
                zc_args["interfaces"] = self.interface_choice
            self.advertiser = AsyncZeroconf(**zc_args)
        await self.advertiser.async_register_service(
            self.mdns_service_info, cooperating_responders=True
        )
        logger.debug("%s is announced", self.display_name)

    def stop(self):
        """Stop the driver from any thread."""
        self.add_job(self.async_stop)

    async def async_stop(self):
        """Withdraw the announcement, close the server and the own loop."""
        self.stop_event.set()
        if self.advertiser is not None and self.mdns_service_info is not None:
            logger.debug("Withdrawing the announcement of %s", self.display_name)
            await self.advertiser.async_unregister_service(self.mdns_service_info)
            await self.advertiser.async_close()
        if self.aio_stop_event is not None:
            self.aio_stop_event.set()
        if self.http_server.server is not None:
            self.http_server.async_stop()
        logger.info(
            "Stopped %s on %s:%s", self.display_name, self.address, self.port
        )

        # Only a loop created by the driver is stopped by it
        if self.executor is not None:
            self.executor.shutdown()
            self.loop.stop()

    def add_job(self, target, *args):
        """Schedule ``target`` in the event loop from any thread."""
        if target is None:
            raise ValueError("Don't call add_job with None.")
        self.loop.call_soon_threadsafe(self.async_add_job, target, *args)

    @util.callback
    def async_add_job(self, target, *args):
        """Run ``target`` the way it wants to be run.

        Coroutines become tasks, callbacks run in the loop and plain
        functions run in the executor.

        :return: The task or future, None for a callback.
        """
        if asyncio.iscoroutine(target):
            return self.loop.create_task(target)
        if util.is_callback(target):
            self.loop.call_soon(target, *args)
            return None
        if util.iscoro(target):
            return self.loop.create_task(target(*args))
        return self.loop.run_in_executor(None, target, *args)

    def signal_handler(self, _signal, _frame):
        """Stop the driver; usable with ``signal.signal``.

        >>> import signal
        >>> signal.signal(signal.SIGTERM, driver.signal_handler)
        """
        try:
            self.stop()
        except Exception as err:
            logger.error("Could not stop the driver: %s", err)
            raise

    # Subscriptions and events

    @util.callback
    def async_subscribe_client_topic(self, client, topic, subscribe=True):
        """Add or remove ``client`` to the subscribers of ``topic``.

        Must be called from the event loop.

        :param client: The (address, port) of the client.
        :type client: tuple <str, int>
        """
        if subscribe:
            self.topics.setdefault(topic, set()).add(client)
            return
        clients = self.topics.get(topic)
        if clients is None:
            return
        clients.discard(client)
        if not clients:
            del self.topics[topic]

    def connection_lost(self, client):
        """Drop every subscription of a disconnected client."""
        for topic in [t for t, clients in self.topics.items() if client in clients]:
            self.async_subscribe_client_topic(client, topic, subscribe=False)

    def publish(self, data, sender_client_addr=None, immediate=False):
        """Send a value change to its subscribers.

        :param data: The change, with at least the keys "aid", "iid" and
            "value".
        :type data: dict
        """
        topic = get_topic(data[HAP_REPR_AID], data[HAP_REPR_IID])
        if topic not in self.topics:
            return
        if threading.current_thread() == self.tid:
            self.async_send_event(topic, data, sender_client_addr, immediate)
        else:
            self.loop.call_soon_threadsafe(
                self.async_send_event, topic, data, sender_client_addr, immediate
            )

    def async_send_event(self, topic, data, sender_client_addr, immediate):
        """Queue ``data`` for the subscribers of ``topic``.

        Clients without a connection lose their subscription. Must be called
        from the event loop.
        """
        if self.aio_stop_event is not None and self.aio_stop_event.is_set():
            return
        logger.debug("Event for %s: %s (from %s)", topic, data, sender_client_addr)
        stale = [
            client_addr
            for client_addr in self.topics.get(topic, ())
            if client_addr != sender_client_addr
            and not self.http_server.push_event(data, client_addr, immediate)
        ]
        for client_addr in stale:
            logger.debug("Unsubscribing %s without a connection", client_addr)
            self.async_subscribe_client_topic(client_addr, topic, False)

    # Requests

    @property
    def accessories_hash(self):
        """Digest of the accessory layout, ignoring values."""
        layout = util.to_sorted_hap_json(self.get_accessories(include_value=False))
        return hashlib.sha512(layout).hexdigest()

    def get_accessories(self, include_value=True):
        """Return the body of ``GET /accessories``.

        .. code-block:: python

           {"accessories": [{"aid": 2, "services": [...]}, ...]}
        """
        hap_rep = self.platform.to_HAP(include_value) if self.platform else []
        logger.debug("Accessories: %s", hap_rep)
        return {HAP_REPR_ACCS: hap_rep}

    def _find_char(self, aid, iid):
        if self.platform is None:
            return None
        return self.platform.get_characteristic(aid, iid)

    async def async_get_characteristics(self, char_ids):
        """Read the characteristics at ``char_ids``, like ``["2.9", "3.10"]``.

        The reads run concurrently, so a slow or failing zone only delays or
        fails its own entries. Every entry carries a status:

        .. code-block:: python

           {"characteristics": [{"aid": 2, "iid": 10, "value": 50, "status": 0}]}
        """
        chars = await asyncio.gather(*map(self._async_read_char, char_ids))
        logger.debug("Read characteristics: %s", chars)
        return {HAP_REPR_CHARS: list(chars)}

    async def _async_read_char(self, aid_iid):
        aid, iid = map(int, aid_iid.split("."))
        rep = {HAP_REPR_AID: aid, HAP_REPR_IID: iid}
        char = self._find_char(aid, iid)
        if char is None:
            status = HAP_SERVER_STATUS.RESOURCE_DOES_NOT_EXIST
        elif not char.readable:
            status = HAP_SERVER_STATUS.WRITE_ONLY_CHARACTERISTIC
        else:
            status = HAP_SERVER_STATUS.SERVICE_COMMUNICATION_FAILURE
            try:
                rep[HAP_REPR_VALUE] = await char.async_get_value()
                status = HAP_SERVER_STATUS.SUCCESS
            except BackendTimeout:
                status = HAP_SERVER_STATUS.OPERATION_TIMED_OUT
            except CapabilityError as err:
                logger.error("Could not read %s: %s", aid_iid, err)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Unexpected error reading %s", aid_iid)
        rep[HAP_REPR_STATUS] = status
        return rep

    async def async_set_characteristics(self, chars_query, client_addr):
        """Apply a ``PUT /characteristics`` body of ``client_addr``.

        Each entry can subscribe (``"ev"``) and write (``"value"``). The
        entries are applied concurrently, so a stalled zone only fails its
        own entries:

        .. code-block:: python

           {"characteristics": [{"aid": 2, "iid": 10, "value": 75, "ev": True}]}

        :return: None if every entry succeeded, otherwise the status of each.
        :rtype: dict
        """
        results = await asyncio.gather(
            *(
                self._async_apply(query, client_addr)
                for query in chars_query[HAP_REPR_CHARS]
            )
        )
        if all(res[HAP_REPR_STATUS] == HAP_SERVER_STATUS.SUCCESS for res in results):
            return None
        return {HAP_REPR_CHARS: results}

    async def _async_apply(self, query, client_addr):
        aid, iid = query[HAP_REPR_AID], query[HAP_REPR_IID]
        char = self._find_char(aid, iid)
        status = HAP_SERVER_STATUS.SUCCESS
        if char is None:
            status = HAP_SERVER_STATUS.RESOURCE_DOES_NOT_EXIST
        elif HAP_PERMISSION_NOTIFY in query:
            if HAP_PERMISSION_NOTIFY in char.properties[PROP_PERMISSIONS]:
                subscribe = bool(query[HAP_PERMISSION_NOTIFY])
                logger.debug(
                    "%s: %s %s.%s",
                    client_addr,
                    "Subscribed to" if subscribe else "Unsubscribed from",
                    aid,
                    iid,
                )
                self.async_subscribe_client_topic(
                    client_addr, get_topic(aid, iid), subscribe
                )
            else:
                status = HAP_SERVER_STATUS.NOTIFICATION_NOT_SUPPORTED

        if status == HAP_SERVER_STATUS.SUCCESS and HAP_REPR_VALUE in query:
            status = await _async_write_status(
                char, query[HAP_REPR_VALUE], client_addr
            )
        return {HAP_REPR_AID: aid, HAP_REPR_IID: iid, HAP_REPR_STATUS: status}
