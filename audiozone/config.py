"""Module for the `PlatformConfig` class and the config file loader."""
import json
import logging

from . import util
from .const import (
    CONFIG_ADDRESS,
    CONFIG_NAME,
    CONFIG_PLATFORM,
    CONFIG_PLATFORMS,
    CONFIG_PORT,
    CONFIG_TIMEOUT,
    CONFIG_ZONES,
    CONFIG_ZONES_ALIAS,
    DEFAULT_PLATFORM_NAME,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    PLATFORM_TYPE,
)
from .zone import ZoneConfigError

logger = logging.getLogger(__name__)


class PlatformConfig:
    """Class to store all static information of the platform.

    That includes the zone descriptors and what is needed to serve them.
    """

    def __init__(
        self,
        *,
        name=DEFAULT_PLATFORM_NAME,
        zones=None,
        address=None,
        mac=None,
        port=None,
        timeout=DEFAULT_TIMEOUT
    ):
        """Initialize a new object.

        Must be called with keyword arguments.
        """
        self.name = name
        self.zones = list(zones or [])
        self.timeout = timeout
        self._address = address
        self._mac = mac
        self._port = port

    def __repr__(self):
        return "<platform-config name='{}' zones={} port={}>".format(
            self.name, len(self.zones), self._port
        )

    @property
    def address(self):
        """Return `address` or get local one."""
        if self._address is None:
            self._address = util.get_local_address()
        return self._address

    @property
    def mac(self):
        """Return `mac` address or generate new one if not set."""
        if self._mac is None:
            self._mac = util.generate_mac()
        return self._mac

    @property
    def port(self):
        """Return `port` or set to default."""
        if self._port is None:
            self._port = DEFAULT_PORT
        return self._port

    @classmethod
    def from_dict(cls, json_dict):
        """Create a PlatformConfig from a platform entry of the config file.

        Zone descriptors are read from ``lights``, the key the plugin has
        always used; ``zones`` is read when ``lights`` is absent.

        :raise ZoneConfigError: if the entry is malformed.
        """
        if not isinstance(json_dict, dict):
            raise ZoneConfigError("Platform config must be an object")

        if CONFIG_ZONES in json_dict:
            zones = json_dict[CONFIG_ZONES]
        else:
            zones = json_dict.get(CONFIG_ZONES_ALIAS)
        if zones is None:
            logger.warning(
                "No '%s' in the %s config, no zones will be exposed",
                CONFIG_ZONES,
                PLATFORM_TYPE,
            )
            zones = []
        if not isinstance(zones, list):
            raise ZoneConfigError("'{}' must be a list".format(CONFIG_ZONES))

        try:
            timeout = float(json_dict.get(CONFIG_TIMEOUT, DEFAULT_TIMEOUT))
            port = json_dict.get(CONFIG_PORT)
            port = int(port) if port is not None else None
        except (TypeError, ValueError) as err:
            raise ZoneConfigError("Invalid platform config: {}".format(err)) from err
        if timeout <= 0:
            raise ZoneConfigError("'{}' must be positive".format(CONFIG_TIMEOUT))

        return cls(
            name=json_dict.get(CONFIG_NAME) or DEFAULT_PLATFORM_NAME,
            zones=zones,
            address=json_dict.get(CONFIG_ADDRESS),
            port=port,
            timeout=timeout,
        )


def find_platform(json_dict):
    """Return the AudioZone entry of a config file's content.

    A file with a ``platforms`` list is searched for the entry whose
    ``platform`` is AudioZone; anything else is taken as the platform entry.
    """
    if isinstance(json_dict, dict) and CONFIG_PLATFORMS in json_dict:
        for platform in json_dict[CONFIG_PLATFORMS] or []:
            if isinstance(platform, dict) and platform.get(CONFIG_PLATFORM) == PLATFORM_TYPE:
                return platform
        raise ZoneConfigError("No '{}' platform configured".format(PLATFORM_TYPE))
    return json_dict


def load_config(path):
    """Read the given json config file into a PlatformConfig.

    :raise ZoneConfigError: if the file is not valid json or has no usable
        platform entry.
    """
    logger.info("Loading config from `%s`", path)
    with open(path, "r", encoding="utf8") as file_handle:
        try:
            content = json.load(file_handle)
        except ValueError as err:
            raise ZoneConfigError("{} is not valid json: {}".format(path, err)) from err
    return PlatformConfig.from_dict(find_platform(content))
