"""
Capabilities are the typed, gettable and settable attributes of a zone.

A capability is described by data (a `CapabilitySchema`), not by a class
hierarchy: the format, bounds, step and permissions come from the same json
description the accessory layer uses to build its characteristics.

.. seealso:: audiozone/resources/characteristics.json
"""
import enum
import logging
from typing import Any, Dict, List, Optional

from .const import HAP_PERMISSION_NOTIFY, HAP_PERMISSION_READ, HAP_PERMISSION_WRITE

logger = logging.getLogger(__name__)

# ### Formats ###
FORMAT_BOOL = "bool"
FORMAT_INT = "int"
FORMAT_FLOAT = "float"
FORMAT_STRING = "string"

FORMAT_NUMERICS = {FORMAT_INT, FORMAT_FLOAT}

# ### Properties ###
PROP_FORMAT = "Format"
PROP_MAX_VALUE = "maxValue"
PROP_MIN_STEP = "minStep"
PROP_MIN_VALUE = "minValue"
PROP_PERMISSIONS = "Permissions"
PROP_UNIT = "unit"
PROP_UUID = "UUID"


class CapabilityError(Exception):
    """Generic exception class for capability errors."""


class UnsupportedCapability(CapabilityError):
    """The requested capability kind is not known to the zone."""


class InvalidValue(CapabilityError, ValueError):
    """The value is outside of what the capability accepts."""


class BackendError(CapabilityError):
    """The backend failed to perform a capability operation."""


class BackendTimeout(BackendError):
    """The backend did not complete a capability operation in time."""


class CapabilityKind(enum.Enum):
    """The closed set of capabilities a zone exposes."""

    POWER = "power"
    VOLUME = "volume"

    @property
    def char_name(self) -> str:
        """Name of the characteristic describing this capability."""
        return CAPABILITY_CHARS[self]

    @classmethod
    def lookup(cls, kind: Any) -> "CapabilityKind":
        """Return the `CapabilityKind` for a kind or its name.

        :raise UnsupportedCapability: if ``kind`` names no known capability.
        """
        if isinstance(kind, cls):
            return kind
        if isinstance(kind, str):
            try:
                return cls(kind.lower())
            except ValueError:
                pass
        raise UnsupportedCapability("Unsupported capability: {!r}".format(kind))


CAPABILITY_CHARS = {
    CapabilityKind.POWER: "On",
    CapabilityKind.VOLUME: "Volume",
}


class CapabilitySchema:
    """Format, bounds and permissions of one capability."""

    __slots__ = (
        "kind",
        "value_format",
        "min_value",
        "max_value",
        "min_step",
        "unit",
        "permissions",
        "type_id",
    )

    def __init__(
        self,
        kind: CapabilityKind,
        value_format: str,
        permissions: List[str],
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        min_step: Optional[float] = None,
        unit: Optional[str] = None,
        type_id: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.value_format = value_format
        self.permissions = permissions
        self.min_value = min_value
        self.max_value = max_value
        self.min_step = min_step
        self.unit = unit
        self.type_id = type_id

    def __repr__(self) -> str:
        return (
            f"<capability-schema kind={self.kind.value} format={self.value_format} "
            f"min={self.min_value} max={self.max_value} step={self.min_step}>"
        )

    @property
    def readable(self) -> bool:
        return HAP_PERMISSION_READ in self.permissions

    @property
    def writable(self) -> bool:
        return HAP_PERMISSION_WRITE in self.permissions

    @property
    def notifies(self) -> bool:
        return HAP_PERMISSION_NOTIFY in self.permissions

    def validate(self, value: Any) -> Any:
        """Return ``value`` normalised to the schema format.

        Unlike a characteristic, a capability never clamps: anything outside
        the bounds is rejected.

        :raise InvalidValue: if the value does not fit the schema.
        """
        if self.value_format == FORMAT_BOOL:
            if isinstance(value, bool):
                return value
            # HAP clients write booleans as 0 and 1.
            if isinstance(value, int) and value in (0, 1):
                return bool(value)
            raise InvalidValue(
                "{}: value={!r} is not a boolean value.".format(self.kind.value, value)
            )

        if self.value_format in FORMAT_NUMERICS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidValue(
                    "{}: value={!r} is not a numeric value.".format(
                        self.kind.value, value
                    )
                )
            if self.value_format == FORMAT_INT:
                if isinstance(value, float):
                    if not value.is_integer():
                        raise InvalidValue(
                            "{}: value={!r} is not an integer.".format(
                                self.kind.value, value
                            )
                        )
                    value = int(value)
            if self.min_value is not None and value < self.min_value:
                raise InvalidValue(
                    "{}: value={!r} is below {}.".format(
                        self.kind.value, value, self.min_value
                    )
                )
            if self.max_value is not None and value > self.max_value:
                raise InvalidValue(
                    "{}: value={!r} is above {}.".format(
                        self.kind.value, value, self.max_value
                    )
                )
            if self.min_step:
                offset = value - (self.min_value or 0)
                if round(offset / self.min_step, 9) % 1:
                    raise InvalidValue(
                        "{}: value={!r} is not a multiple of {}.".format(
                            self.kind.value, value, self.min_step
                        )
                    )
            return value

        if self.value_format == FORMAT_STRING:
            return str(value)

        return value

    @classmethod
    def from_dict(cls, kind: CapabilityKind, json_dict: Dict[str, Any]) -> "CapabilitySchema":
        """Initialize a schema from a characteristic description.

        :param json_dict: Dictionary containing at least the keys `Format` and
            `Permissions`
        :type json_dict: dict
        """
        return cls(
            kind,
            json_dict[PROP_FORMAT],
            list(json_dict[PROP_PERMISSIONS]),
            min_value=json_dict.get(PROP_MIN_VALUE),
            max_value=json_dict.get(PROP_MAX_VALUE),
            min_step=json_dict.get(PROP_MIN_STEP),
            unit=json_dict.get(PROP_UNIT),
            type_id=json_dict.get(PROP_UUID),
        )
