"""Backends perform (or stub) the device I/O behind zone capabilities.

A single backend instance is injected into the registry and shared by every
zone it builds; the zone id is passed on every call.
"""
import logging

from .capability import CapabilityKind, UnsupportedCapability

logger = logging.getLogger(__name__)

STUB_POWER = False
STUB_VOLUME = 50


class CapabilityBackend:
    """Interface every backend must implement.

    Both methods are coroutines, so a backend talking to real hardware may
    suspend. Callers bound every call with a timeout.
    """

    async def get(self, zone_id, kind):
        """Return the current value of capability ``kind`` of zone ``zone_id``.

        Expected to be overridden.
        """
        raise NotImplementedError

    async def set(self, zone_id, kind, value):
        """Write ``value`` to capability ``kind`` of zone ``zone_id``.

        Returning acknowledges the write; raise to signal a failure.
        Expected to be overridden.
        """
        raise NotImplementedError


class StubBackend(CapabilityBackend):
    """A backend that talks to nothing.

    Reads always answer power off and volume 50. Writes are acknowledged and
    forgotten, like a fire-and-forget device command: a read after a write
    still returns the fixed value.
    """

    VALUES = {
        CapabilityKind.POWER: STUB_POWER,
        CapabilityKind.VOLUME: STUB_VOLUME,
    }

    async def get(self, zone_id, kind):
        try:
            value = self.VALUES[kind]
        except KeyError:
            raise UnsupportedCapability(
                "Unsupported capability: {!r}".format(kind)
            ) from None
        logger.debug("Stub get %s for zone %s: %s", kind.value, zone_id, value)
        return value

    async def set(self, zone_id, kind, value):
        logger.debug("Stub set %s for zone %s to %s", kind.value, zone_id, value)
        return True
