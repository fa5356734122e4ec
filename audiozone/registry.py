"""Module for the ZoneRegistry class."""
import logging

from .const import DEFAULT_TIMEOUT
from .zone import ZoneConfig, ZoneConfigError, ZoneHandle

logger = logging.getLogger(__name__)


class ZoneRegistry:
    """Owns the configured zones and the handles built for them.

    A registry is built once; afterwards it only answers enumeration and
    lookups, so it needs no locking.
    """

    def __init__(self, timeout=DEFAULT_TIMEOUT, schemas=None):
        """Initialize an empty registry.

        :param timeout: Timeout in seconds for every backend call of the
            handles built by this registry.
        :type timeout: float
        """
        self.timeout = timeout
        self.schemas = schemas
        self._handles = []
        self._by_id = {}
        self._built = False

    def __len__(self):
        return len(self._handles)

    def __iter__(self):
        return iter(self._handles)

    def build(self, configs, backend):
        """Create one ZoneHandle per zone descriptor, in order.

        All descriptors are checked before any handle is created, so a bad
        descriptor leaves the registry empty.

        :param configs: Zone descriptors, either `ZoneConfig` or dicts with
            at least an ``id``.
        :type configs: sequence

        :param backend: The backend shared by every built handle.
        :type backend: CapabilityBackend

        :raise ZoneConfigError: if a descriptor has no id or an id repeats.
        :raise RuntimeError: if the registry was already built.

        :return: The built handles.
        :rtype: list
        """
        if self._built:
            raise RuntimeError("ZoneRegistry has already been built")

        zone_configs = []
        seen = set()
        for index, config in enumerate(configs or ()):
            if not isinstance(config, ZoneConfig):
                config = ZoneConfig.from_dict(config, index)
            if config.id in seen:
                raise ZoneConfigError(
                    "Zone #{} reuses the id '{}'".format(index, config.id)
                )
            seen.add(config.id)
            zone_configs.append(config)

        handles = [
            ZoneHandle(config, backend, schemas=self.schemas, timeout=self.timeout)
            for config in zone_configs
        ]
        self._handles = handles
        self._by_id = {handle.zone_id: handle for handle in handles}
        self._built = True
        logger.info("Built %d audio zone(s)", len(handles))
        return list(handles)

    def enumerate(self):
        """Return the built handles. Configuration is not read again."""
        return list(self._handles)

    def get(self, zone_id):
        """Return the handle of the given zone id or None."""
        return self._by_id.get(str(zone_id))
