"""Registration of the audio zone types with a host bridge.

A host bridge discovers plugins by calling `register` with an object
offering two registration calls:

.. code-block:: python

    host.register_accessory(plugin_name, accessory_type, accessory_class)
    host.register_platform(plugin_name, platform_type, platform_class)

`HostRegistry` is such an object for hosts living in this process, e.g.
`main.py`.
"""
import logging

from .accessory import ZoneAccessory, ZonePlatform
from .const import (
    ACCESSORY_PLUGIN_NAME,
    ACCESSORY_TYPE,
    PLATFORM_PLUGIN_NAME,
    PLATFORM_TYPE,
)

logger = logging.getLogger(__name__)


def register(host):
    """Register the single zone accessory and the zone platform with ``host``."""
    host.register_accessory(ACCESSORY_PLUGIN_NAME, ACCESSORY_TYPE, ZoneAccessory)
    host.register_platform(PLATFORM_PLUGIN_NAME, PLATFORM_TYPE, ZonePlatform)


class HostRegistry:
    """Records the accessory and platform types registered by plugins."""

    def __init__(self):
        self.accessory_types = {}  # type: (plugin name, class)
        self.platform_types = {}  # type: (plugin name, class)

    def register_accessory(self, plugin_name, accessory_type, accessory_class):
        if accessory_type in self.accessory_types:
            raise ValueError(
                "Accessory type {} is already registered".format(accessory_type)
            )
        logger.debug(
            "Registered accessory %s from %s", accessory_type, plugin_name
        )
        self.accessory_types[accessory_type] = (plugin_name, accessory_class)

    def register_platform(self, plugin_name, platform_type, platform_class):
        if platform_type in self.platform_types:
            raise ValueError(
                "Platform type {} is already registered".format(platform_type)
            )
        logger.debug("Registered platform %s from %s", platform_type, plugin_name)
        self.platform_types[platform_type] = (plugin_name, platform_class)

    def create_accessory(self, accessory_type, driver, item, **kwargs):
        """Create a single accessory of a registered type from its descriptor.

        :raise KeyError: if no such accessory type is registered.
        """
        _, accessory_class = self.accessory_types[accessory_type]
        return accessory_class.from_config(driver, item, **kwargs)

    def create_platform(self, platform_type, driver, config, **kwargs):
        """Create a platform of a registered type.

        :raise KeyError: if no such platform type is registered.
        """
        _, platform_class = self.platform_types[platform_type]
        return platform_class(driver, config, **kwargs)
