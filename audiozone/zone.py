"""Zones and the uniform capability facade in front of their backend."""
import asyncio
import logging
from typing import Any, Dict, NamedTuple, Optional

import async_timeout

from .backend import CapabilityBackend
from .capability import (
    BackendError,
    BackendTimeout,
    CapabilityError,
    CapabilityKind,
    CapabilitySchema,
    InvalidValue,
    UnsupportedCapability,
)
from .const import (
    CONFIG_ZONE_ID,
    CONFIG_ZONE_NAME,
    CONFIG_ZONE_SERIAL,
    DEFAULT_TIMEOUT,
)
from .loader import get_loader

logger = logging.getLogger(__name__)

READ_RETRIES = 1


class ZoneConfigError(ValueError):
    """A zone descriptor could not be turned into a zone."""


class ZoneConfig(NamedTuple):
    """The immutable description of one zone."""

    id: str
    name: str
    serial: str

    @classmethod
    def from_dict(cls, json_dict: Dict[str, Any], index: int = 0) -> "ZoneConfig":
        """Create a ZoneConfig from a zone descriptor.

        Only the id is mandatory. The name defaults to ``Zone <id>`` and the
        serial number to the id.

        :param index: Position of the descriptor, used in error messages.
        :type index: int

        :raise ZoneConfigError: if the descriptor is not a dict or has no id.
        """
        if not isinstance(json_dict, dict):
            raise ZoneConfigError(
                "Zone #{} must be an object, got {!r}".format(index, json_dict)
            )
        zone_id = json_dict.get(CONFIG_ZONE_ID)
        if zone_id is None or str(zone_id).strip() == "":
            raise ZoneConfigError(
                "Zone #{} is missing an '{}': {!r}".format(
                    index, CONFIG_ZONE_ID, json_dict
                )
            )
        zone_id = str(zone_id)
        name = json_dict.get(CONFIG_ZONE_NAME) or "Zone {}".format(zone_id)
        serial = json_dict.get(CONFIG_ZONE_SERIAL) or zone_id
        return cls(zone_id, str(name), str(serial))

    def to_dict(self) -> Dict[str, str]:
        return {
            CONFIG_ZONE_ID: self.id,
            CONFIG_ZONE_NAME: self.name,
            CONFIG_ZONE_SERIAL: self.serial,
        }


class ZoneHandle:
    """Uniform get/set access to the capabilities of one zone.

    Every operation validates against the capability schema before the
    backend is involved, runs the backend call under a timeout and turns any
    backend failure into a `BackendError`, so that a faulty zone never
    affects its neighbours.

    Writes to the same capability are serialised. While `event_suppressed`
    is set, writes are validated but never reach the backend; the owner sets
    it while applying a change that came from the device itself.
    """

    def __init__(
        self,
        config: ZoneConfig,
        backend: CapabilityBackend,
        schemas: Optional[Dict[CapabilityKind, CapabilitySchema]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.config = config
        self.backend = backend
        self.schemas = schemas if schemas is not None else get_loader().get_schemas()
        self.timeout = timeout
        self.event_suppressed = False
        self._write_locks: Dict[CapabilityKind, asyncio.Lock] = {}

    def __repr__(self) -> str:
        return "<zone id={} name='{}'>".format(self.config.id, self.config.name)

    @property
    def zone_id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    def schema(self, kind: Any) -> CapabilitySchema:
        """Return the schema of the given capability.

        :raise UnsupportedCapability: if the zone has no such capability.
        """
        kind = CapabilityKind.lookup(kind)
        schema = self.schemas.get(kind)
        if schema is None:
            raise UnsupportedCapability(
                "Zone {} has no {} capability".format(self.zone_id, kind.value)
            )
        return schema

    async def get_capability(self, kind: Any) -> Any:
        """Return the current value of a capability.

        Power is a bool and volume an int in [0, 100]. A failed backend read
        is retried once; a timed out read is not, so a stalled zone costs a
        single timeout.

        :raise UnsupportedCapability: for an unknown or unreadable capability.
        :raise BackendError: if the backend fails or answers out of bounds.
        """
        schema = self.schema(kind)
        if not schema.readable:
            raise UnsupportedCapability(
                "{} of zone {} is not readable".format(schema.kind.value, self.zone_id)
            )

        attempt = 0
        while True:
            try:
                value = await self._call_backend(self.backend.get, schema.kind)
                break
            except BackendTimeout:
                raise
            except BackendError:
                if attempt >= READ_RETRIES:
                    raise
                attempt += 1
                logger.warning(
                    "Retrying read of %s for zone %s", schema.kind.value, self.zone_id
                )

        try:
            return schema.validate(value)
        except InvalidValue as err:
            raise BackendError(
                "Backend answered {!r} for {} of zone {}".format(
                    value, schema.kind.value, self.zone_id
                )
            ) from err

    async def set_capability(self, kind: Any, value: Any) -> bool:
        """Write a capability value through the backend.

        :return: True once the backend acknowledged the write, False if the
            write was suppressed and the backend was not called.
        :rtype: bool

        :raise UnsupportedCapability: for an unknown or read-only capability.
        :raise InvalidValue: if the value does not fit the capability; the
            backend is not called.
        :raise BackendError: if the backend fails.
        """
        schema = self.schema(kind)
        if not schema.writable:
            raise UnsupportedCapability(
                "{} of zone {} is read-only".format(schema.kind.value, self.zone_id)
            )
        value = schema.validate(value)

        if self.event_suppressed:
            logger.debug(
                "Suppressed write of %s=%s for zone %s",
                schema.kind.value,
                value,
                self.zone_id,
            )
            return False

        lock = self._write_locks.get(schema.kind)
        if lock is None:
            lock = self._write_locks[schema.kind] = asyncio.Lock()
        async with lock:
            await self._call_backend(self.backend.set, schema.kind, value)
        return True

    async def _call_backend(self, method, kind, *args):
        """Run a backend call with a timeout and trap its failures."""
        try:
            async with async_timeout.timeout(self.timeout):
                return await method(self.zone_id, kind, *args)
        except asyncio.TimeoutError as err:
            logger.error(
                "Timed out after %ss on %s of zone %s",
                self.timeout,
                kind.value,
                self.zone_id,
            )
            raise BackendTimeout(
                "{} of zone {} timed out".format(kind.value, self.zone_id)
            ) from err
        except CapabilityError:
            raise
        except Exception as err:  # pylint: disable=broad-except
            logger.exception(
                "Backend error on %s of zone %s", kind.value, self.zone_id
            )
            raise BackendError(
                "{} of zone {} failed: {}".format(kind.value, self.zone_id, err)
            ) from err
