"""Module for the ZoneAccessory and ZonePlatform classes.

These are the adapter between zone handles and what a host bridge sees: an
accessory per zone, with an information service and a Switch service
carrying the power and volume characteristics.
"""
import functools
import itertools
import logging

from .backend import StubBackend
from .capability import CapabilityError, CapabilityKind
from .const import (
    CATEGORY_BRIDGE,
    CATEGORY_SWITCH,
    DEFAULT_TIMEOUT,
    FIRST_BRIDGED_AID,
    HAP_REPR_AID,
    HAP_REPR_IID,
    HAP_REPR_SERVICES,
    HAP_REPR_VALUE,
    ZONE_MANUFACTURER,
    ZONE_MODEL,
    __version__,
)
from .registry import ZoneRegistry
from .zone import ZoneConfig, ZoneHandle

logger = logging.getLogger(__name__)

ZONE_SERVICE = "Switch"


class ZoneAccessory:
    """The accessory representation of one zone."""

    category = CATEGORY_SWITCH

    def __init__(self, driver, handle, aid=None):
        """Initialise the accessory of the given zone.

        :param driver: Provides the loader and receives published values.
        :type driver: ZoneDriver

        :param handle: The zone this accessory represents.
        :type handle: ZoneHandle

        :param aid: The accessory ID. Defaults to None, in which case the
            `ZonePlatform` assigns one.
        :type aid: int
        """
        self.aid = aid
        self.driver = driver
        self.handle = handle
        self.display_name = handle.name
        self.services = []
        self.iids = {}
        self.objs = {}
        self._iid_counter = 0
        self.capability_chars = {}

        self.add_info_service()
        self.add_zone_service()

    @classmethod
    def from_config(cls, driver, item, backend=None, timeout=DEFAULT_TIMEOUT):
        """Create a standalone zone accessory from a single zone descriptor.

        :param item: A zone descriptor with at least an ``id``.
        :type item: dict or ZoneConfig

        :param backend: Defaults to a new `StubBackend`.
        :type backend: CapabilityBackend
        """
        if not isinstance(item, ZoneConfig):
            item = ZoneConfig.from_dict(item)
        handle = ZoneHandle(
            item,
            backend or StubBackend(),
            schemas=driver.loader.get_schemas(),
            timeout=timeout,
        )
        return cls(driver, handle)

    def __repr__(self):
        """Return the representation of the accessory."""
        services = [s.display_name for s in self.services]
        return "<accessory display_name='{}' zone={} services={}>".format(
            self.display_name, self.handle.zone_id, services
        )

    def add_info_service(self):
        """Add the `AccessoryInformation` service.

        Called in `__init__` to be sure that it is the first service added.
        """
        config = self.handle.config
        serv_info = self.driver.loader.get_service("AccessoryInformation")
        serv_info.add_characteristic(self.driver.loader.get_char("FirmwareRevision"))
        serv_info.configure_char("Name", value=self.display_name)
        serv_info.configure_char("Manufacturer", value=ZONE_MANUFACTURER)
        serv_info.configure_char("Model", value=ZONE_MODEL)
        serv_info.configure_char("FirmwareRevision", value=__version__)
        if config.serial:
            serv_info.configure_char("SerialNumber", value=config.serial)
        else:
            logger.warning(
                "Couldn't add SerialNumber for %s. The SerialNumber must "
                "be at least one character long.",
                self.display_name,
            )
        self.add_service(serv_info)

    def add_zone_service(self):
        """Add the Switch service with a characteristic per capability."""
        serv_zone = self.driver.loader.get_service(ZONE_SERVICE)
        for kind in CapabilityKind:
            if kind.char_name not in [c.display_name for c in serv_zone.characteristics]:
                serv_zone.add_characteristic(self.driver.loader.get_char(kind.char_name))
            self.capability_chars[kind] = serv_zone.configure_char(
                kind.char_name,
                getter_callback=functools.partial(self.handle.get_capability, kind),
                setter_callback=functools.partial(self.handle.set_capability, kind),
            )
        serv_zone.is_primary_service = True
        self.add_service(serv_zone)

    def add_service(self, *servs):
        """Add the given services to this accessory and assign their IIDs.

        .. note:: Do not add characteristics to services that have been added
            to an accessory, as they will not get an IID.
        """
        for s in servs:
            self.services.append(s)
            self._assign_iid(s)
            s.broker = self
            for c in s.characteristics:
                self._assign_iid(c)
                c.broker = self

    def _assign_iid(self, obj):
        if obj in self.iids:
            logger.warning(
                "%s already has the IID %s, ignoring.", obj, self.iids[obj]
            )
            return
        self._iid_counter += 1
        self.iids[obj] = self._iid_counter
        self.objs[self._iid_counter] = obj

    def get_iid(self, obj):
        """Get the IID assigned to the given service or characteristic."""
        return self.iids.get(obj)

    def get_service(self, name):
        """Return the Service with the given name or None."""
        return next((s for s in self.services if s.display_name == name), None)

    def get_characteristic(self, aid, iid):
        """Get the characteristic for the given IID.

        The AID is used to verify if the search is in the correct accessory.
        """
        if aid != self.aid:
            return None
        return self.objs.get(iid)

    def get_capability_char(self, kind):
        """Return the characteristic bound to the given capability."""
        return self.capability_chars[CapabilityKind.lookup(kind)]

    async def async_refresh(self):
        """Read every capability of the zone into its characteristic.

        Failures are logged and leave the last known value in place.
        """
        for kind, char in self.capability_chars.items():
            try:
                await char.async_get_value()
            except CapabilityError as err:
                logger.warning(
                    "Could not refresh %s of %s: %s", kind.value, self.display_name, err
                )

    async def async_update_capability(self, kind, value):
        """Push a change that came from the zone itself to clients.

        The change goes through the setter of the characteristic like a
        client write, with writes of the zone suppressed so that it is not
        written back to the device.

        :raise InvalidValue: if the value does not fit the capability.
        """
        value = self.handle.schema(kind).validate(value)
        char = self.get_capability_char(kind)
        self.handle.event_suppressed = True
        try:
            # A suppressed write never suspends, so no client write runs
            # while the flag is set.
            await char.async_set_value(value)
        finally:
            self.handle.event_suppressed = False

    # pylint: disable=invalid-name
    def to_HAP(self, include_value=True):
        """A HAP representation of this accessory.

        :return: A HAP representation of this accessory. For example:

        .. code-block:: python

           { "aid": 2,
               "services": [{
                   "iid" 1,
                   "type": "3E",
                   ...
               }]
           }

        :rtype: dict
        """
        return {
            HAP_REPR_AID: self.aid,
            HAP_REPR_SERVICES: [s.to_HAP(include_value) for s in self.services],
        }

    def publish(self, value, sender, sender_client_addr=None):
        """Append AID and IID of the sender and forward it to the driver.

        Characteristics call this method to send updates.
        """
        acc_data = {
            HAP_REPR_AID: self.aid,
            HAP_REPR_IID: self.get_iid(sender),
            HAP_REPR_VALUE: value,
        }
        self.driver.publish(acc_data, sender_client_addr)


class ZonePlatform:
    """The platform aggregating all configured zones.

    The platform builds its registry with an injected backend, wraps every
    zone handle into a `ZoneAccessory` and hands the list out exactly once.
    """

    category = CATEGORY_BRIDGE

    def __init__(self, driver, config, backend=None):
        """
        :param config: The platform configuration.
        :type config: PlatformConfig

        :param backend: The backend shared by every zone. Defaults to a
            `StubBackend`.
        :type backend: CapabilityBackend
        """
        self.driver = driver
        self.config = config
        self.display_name = config.name
        self.backend = backend or StubBackend()
        # Zones validate against the same schemas their characteristics show
        self.registry = ZoneRegistry(
            timeout=config.timeout, schemas=driver.loader.get_schemas()
        )
        self.zone_accessories = {}  # aid: acc
        self._delivered = False
        logger.info("%s platform created", self.display_name)

    def __repr__(self):
        return "<platform display_name='{}' zones={}>".format(
            self.display_name, len(self.registry)
        )

    def accessories_list(self):
        """Build the registry and the zone accessories.

        :raise ZoneConfigError: if the zone configuration is invalid.
        """
        logger.info("Fetching audio zones.")
        for handle in self.registry.build(self.config.zones, self.backend):
            self.add_accessory(ZoneAccessory(self.driver, handle))
        return list(self.zone_accessories.values())

    def accessories(self, callback):
        """Hand the zone accessories to the host.

        The callback is invoked exactly once; later calls are ignored.

        :param callback: Called with the list of `ZoneAccessory`.
        :type callback: callable
        """
        if self._delivered:
            logger.warning("%s: accessories were already delivered", self.display_name)
            return
        accessories = self.accessories_list()
        self._delivered = True
        callback(accessories)

    def add_accessory(self, acc):
        """Add the given ``ZoneAccessory`` to this platform.

        If the accessory has no AID, the first free one starting from 2 is
        assigned. AID 1 belongs to the host bridge itself.

        :raise ValueError: if the AID clashes with another accessory.
        """
        if acc.aid is None:
            # Some controllers do not accept AID 7.
            acc.aid = next(
                aid
                for aid in itertools.count(FIRST_BRIDGED_AID)
                if aid != 7 and aid not in self.zone_accessories
            )
        elif acc.aid < FIRST_BRIDGED_AID or acc.aid in self.zone_accessories:
            raise ValueError("Duplicate AID found when attempting to add accessory")

        self.zone_accessories[acc.aid] = acc

    def get_accessory(self, aid):
        """Return the accessory with the given AID or None."""
        return self.zone_accessories.get(aid)

    def get_characteristic(self, aid, iid):
        """Return the characteristic with the given AID and IID or None."""
        acc = self.zone_accessories.get(aid)
        if acc is None:
            return None
        return acc.get_characteristic(aid, iid)

    def to_HAP(self, include_value=True):
        """Returns a HAP representation of all contained accessories."""
        return [acc.to_HAP(include_value) for acc in self.zone_accessories.values()]

    async def async_refresh(self):
        """Refresh the capability values of every zone."""
        for acc in self.zone_accessories.values():
            await acc.async_refresh()


def get_topic(aid, iid):
    return str(aid) + "." + str(iid)
