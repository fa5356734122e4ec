import asyncio

from audiozone.backend import CapabilityBackend
from audiozone.capability import CapabilityKind


class RecordingBackend(CapabilityBackend):
    """A backend that remembers what it was asked and what it was told."""

    def __init__(self, power=True, volume=30):
        self.values = {CapabilityKind.POWER: power, CapabilityKind.VOLUME: volume}
        self.get_calls = []
        self.set_calls = []

    async def get(self, zone_id, kind):
        self.get_calls.append((zone_id, kind))
        return self.values[kind]

    async def set(self, zone_id, kind, value):
        self.set_calls.append((zone_id, kind, value))
        self.values[kind] = value


class FailingBackend(CapabilityBackend):
    """A backend whose calls fail for the given zones."""

    def __init__(self, failing_zones=None, failures=None):
        self.failing_zones = failing_zones
        self.failures = failures
        self.calls = 0

    def _should_fail(self, zone_id):
        self.calls += 1
        if self.failing_zones is not None and zone_id not in self.failing_zones:
            return False
        if self.failures is not None:
            if self.failures <= 0:
                return False
            self.failures -= 1
        return True

    async def get(self, zone_id, kind):
        if self._should_fail(zone_id):
            raise OSError("device unreachable")
        return 42 if kind is CapabilityKind.VOLUME else True

    async def set(self, zone_id, kind, value):
        if self._should_fail(zone_id):
            raise OSError("device unreachable")


class SlowBackend(CapabilityBackend):
    """A backend that never answers in time."""

    async def get(self, zone_id, kind):
        await asyncio.sleep(10)

    async def set(self, zone_id, kind, value):
        await asyncio.sleep(10)


class StallingBackend(CapabilityBackend):
    """A backend that never answers for the given zones."""

    def __init__(self, stalled_zones):
        self.stalled_zones = stalled_zones
        self.calls = 0

    async def _stall_if_needed(self, zone_id):
        self.calls += 1
        if zone_id in self.stalled_zones:
            await asyncio.sleep(3600)

    async def get(self, zone_id, kind):
        await self._stall_if_needed(zone_id)
        return 50 if kind is CapabilityKind.VOLUME else False

    async def set(self, zone_id, kind, value):
        await self._stall_if_needed(zone_id)
