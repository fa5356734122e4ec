"""
Characteristics are the values a host bridge sees of a zone accessory.

A characteristic holds the last known value together with the properties
describing it. Those bound to a capability read and write through the zone
handle with async callbacks; the others, like the manufacturer, are static.
"""
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple
from uuid import UUID

from .capability import (
    FORMAT_BOOL,
    FORMAT_FLOAT,
    FORMAT_INT,
    FORMAT_NUMERICS,
    FORMAT_STRING,
    PROP_FORMAT,
    PROP_MAX_VALUE,
    PROP_MIN_STEP,
    PROP_MIN_VALUE,
    PROP_PERMISSIONS,
    PROP_UNIT,
    PROP_UUID,
)
from .const import (
    HAP_PERMISSION_READ,
    HAP_PERMISSION_WRITE,
    HAP_REPR_DESC,
    HAP_REPR_FORMAT,
    HAP_REPR_IID,
    HAP_REPR_MAX_LEN,
    HAP_REPR_PERM,
    HAP_REPR_TYPE,
    HAP_REPR_VALUE,
)
from .util import hap_type_to_uuid, iscoro, uuid_to_hap_type

if TYPE_CHECKING:
    from .accessory import ZoneAccessory
    from .service import Service

logger = logging.getLogger(__name__)

FORMAT_DEFAULTS = {
    FORMAT_BOOL: False,
    FORMAT_INT: 0,
    FORMAT_FLOAT: 0.0,
    FORMAT_STRING: "",
}

DEFAULT_MAX_LENGTH = 64
ABSOLUTE_MAX_LENGTH = 256

# Properties copied into the HAP representation of numeric characteristics
NUMERIC_HAP_PROPS = (PROP_MAX_VALUE, PROP_MIN_STEP, PROP_MIN_VALUE, PROP_UNIT)


class CharacteristicError(Exception):
    """Generic exception class for characteristic errors."""


async def _maybe_await(func, *args):
    """Call ``func`` and await the result if it is a coroutine function."""
    if iscoro(func):
        return await func(*args)
    return func(*args)


class Characteristic:
    """A single typed value of an accessory service."""

    __slots__ = (
        "broker",
        "service",
        "type_id",
        "getter_callback",
        "setter_callback",
        "_display_name",
        "_properties",
        "_value",
        "_hap_type",
        "_described",
    )

    def __init__(
        self, display_name: Optional[str], type_id: UUID, properties: Dict[str, Any]
    ) -> None:
        """
        :param display_name: Name of the characteristic, also its
            `description` in the HAP representation.
        :type display_name: str

        :param type_id: Type UUID of the characteristic.
        :type type_id: uuid.UUID

        :param properties: The properties, at least `Format` and
            `Permissions`.
        :type properties: dict
        """
        max_length = properties.get(HAP_REPR_MAX_LEN, DEFAULT_MAX_LENGTH)
        if max_length > ABSOLUTE_MAX_LENGTH:
            raise ValueError(
                "{}: {} may not exceed {}".format(
                    display_name, HAP_REPR_MAX_LEN, ABSOLUTE_MAX_LENGTH
                )
            )
        self.broker: Optional["ZoneAccessory"] = None
        self.service: Optional["Service"] = None
        self.type_id = type_id
        self.getter_callback: Optional[Callable[[], Awaitable[Any]]] = None
        self.setter_callback: Optional[Callable[[Any], Awaitable[Any]]] = None
        self._display_name = display_name
        self._properties = properties
        self._hap_type = uuid_to_hap_type(type_id)
        # Names that differ from the type name are sent as description
        self._described = True
        self._value = self.to_valid_value(FORMAT_DEFAULTS.get(properties[PROP_FORMAT]))

    def __repr__(self) -> str:
        return (
            f"<characteristic display_name={self._display_name} "
            f"value={self._value} properties={self._properties}>"
        )

    @property
    def display_name(self) -> Optional[str]:
        return self._display_name

    @property
    def properties(self) -> Dict[str, Any]:
        return self._properties

    @property
    def value(self) -> Any:
        """The last value read from or written to the zone."""
        return self._value

    @property
    def readable(self) -> bool:
        return HAP_PERMISSION_READ in self._properties[PROP_PERMISSIONS]

    @property
    def writable(self) -> bool:
        return HAP_PERMISSION_WRITE in self._properties[PROP_PERMISSIONS]

    def to_valid_value(self, value: Any) -> Any:
        """Convert ``value`` to the format of the characteristic.

        Strings are cut to the maximum length and numbers are rounded to the
        step and clamped into the bounds. Capability values were validated by
        the zone before they get here, so this only shapes them.

        :raise ValueError: if a numeric characteristic gets a non-number.
        """
        value_format = self._properties[PROP_FORMAT]
        if value_format == FORMAT_BOOL:
            return bool(value)
        if value_format == FORMAT_STRING:
            max_length = self._properties.get(HAP_REPR_MAX_LEN, DEFAULT_MAX_LENGTH)
            return str(value)[:max_length]
        if value_format not in FORMAT_NUMERICS:
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.error("%s: %r is not a numeric value", self._display_name, value)
            raise ValueError(
                "{}: {!r} is not a numeric value".format(self._display_name, value)
            )
        return self._clamp(value, value_format)

    def _clamp(self, value, value_format):
        props = self._properties
        step = props.get(PROP_MIN_STEP)
        if step and value:
            value = round(step * round(value / step), 14)
        if PROP_MAX_VALUE in props:
            value = min(value, props[PROP_MAX_VALUE])
        if PROP_MIN_VALUE in props:
            value = max(value, props[PROP_MIN_VALUE])
        return value if value_format == FORMAT_FLOAT else int(value)

    def set_value(self, value: Any, should_notify: bool = True) -> None:
        """Store a value that did not come from a client.

        Subscribed clients are told about the change, unless
        ``should_notify`` is False or the value did not change.
        """
        value = self.to_valid_value(value)
        logger.debug("set_value: %s to %s", self._display_name, value)
        self._store(value, should_notify)

    def _store(self, value, should_notify, sender_client_addr=None):
        changed = value != self._value
        self._value = value
        if changed and should_notify and self.broker is not None:
            self.notify(sender_client_addr)

    async def async_get_value(self) -> Any:
        """Read the current value through the getter callback, if any."""
        if self.getter_callback is not None:
            value = await _maybe_await(self.getter_callback)
            self._value = self.to_valid_value(value)
        return self._value

    async def async_client_update_value(
        self, value: Any, sender_client_addr: Optional[Tuple[str, int]] = None
    ) -> Any:
        """Write a value requested by a client.

        The setter callback gets the value as the client sent it and raises if
        the zone rejects it. Nothing is stored when it raises or returns False.
        The client that made the change is not notified of it.

        :raise CharacteristicError: if the characteristic is read-only.
        """
        if not self.writable:
            raise CharacteristicError(
                "{} is not writable".format(self._display_name)
            )
        logger.debug(
            "%s: client update of %s to %s",
            sender_client_addr,
            self._display_name,
            value,
        )
        result = None
        if self.setter_callback is not None:
            result = await _maybe_await(self.setter_callback, value)
            if result is False:
                # The zone did not take the value, so neither do we
                logger.debug(
                    "%s: write of %s was suppressed", self._display_name, value
                )
                return result
        self._store(self.to_valid_value(value), True, sender_client_addr)
        return result

    async def async_set_value(self, value: Any, should_notify: bool = True) -> None:
        """Store a value that did not come from a client, through the setter.

        Unlike `set_value`, the setter callback is called as for a client
        write, so its owner decides whether the value goes to the device.
        The value is stored whatever the setter returns.
        """
        value = self.to_valid_value(value)
        if self.setter_callback is not None:
            await _maybe_await(self.setter_callback, value)
        logger.debug("async_set_value: %s to %s", self._display_name, value)
        self._store(value, should_notify)

    def notify(self, sender_client_addr: Optional[Tuple[str, int]] = None) -> None:
        """Hand the current value to the accessory for publishing.

        .. seealso:: ZoneAccessory.publish
        """
        self.broker.publish(self._value, self, sender_client_addr)

    # pylint: disable=invalid-name
    def to_HAP(self, include_value: bool = True) -> Dict[str, Any]:
        """Describe the characteristic for `/accessories`.

        The value is only included for readable characteristics.
        """
        props = self._properties
        value_format = props[PROP_FORMAT]
        hap_rep = {
            HAP_REPR_IID: self.broker.get_iid(self),
            HAP_REPR_TYPE: self._hap_type,
            HAP_REPR_PERM: props[PROP_PERMISSIONS],
            HAP_REPR_FORMAT: value_format,
        }
        if self._described:
            hap_rep[HAP_REPR_DESC] = self._display_name
        if value_format in FORMAT_NUMERICS:
            for key in NUMERIC_HAP_PROPS:
                if key in props:
                    hap_rep[key] = props[key]
        elif value_format == FORMAT_STRING:
            max_length = props.get(HAP_REPR_MAX_LEN, DEFAULT_MAX_LENGTH)
            if max_length != DEFAULT_MAX_LENGTH:
                hap_rep[HAP_REPR_MAX_LEN] = max_length
        if include_value and self.readable:
            hap_rep[HAP_REPR_VALUE] = self._value
        return hap_rep

    @classmethod
    def from_dict(
        cls, name: str, json_dict: Dict[str, Any], from_loader: bool = False
    ) -> "Characteristic":
        """Build a characteristic from its json description.

        :param json_dict: At least the keys `Format`, `Permissions` and `UUID`.
        :type json_dict: dict

        :param from_loader: True if ``name`` is the name of the type, which
            is then not sent as description.
        :type from_loader: bool
        """
        props = {key: value for key, value in json_dict.items() if key != PROP_UUID}
        char = cls(name, hap_type_to_uuid(json_dict[PROP_UUID]), props)
        char._described = not from_loader  # pylint: disable=protected-access
        return char
