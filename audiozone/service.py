"""Services group the characteristics of a zone accessory."""
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from .characteristic import Characteristic
from .const import HAP_REPR_CHARS, HAP_REPR_IID, HAP_REPR_PRIMARY, HAP_REPR_TYPE
from .util import hap_type_to_uuid, uuid_to_hap_type

if TYPE_CHECKING:
    from .accessory import ZoneAccessory
    from .loader import Loader

PROP_REQUIRED_CHARS = "RequiredCharacteristics"
PROP_SERVICE_UUID = "UUID"


class Service:
    """An ordered group of characteristics of one type.

    The information service carries the static description of a zone, the
    Switch service carries its power and volume.
    """

    __slots__ = (
        "broker",
        "characteristics",
        "display_name",
        "type_id",
        "is_primary_service",
        "_hap_type",
    )

    def __init__(self, type_id: UUID, display_name: Optional[str] = None) -> None:
        self.broker: Optional["ZoneAccessory"] = None
        self.characteristics: List[Characteristic] = []
        self.display_name = display_name
        self.type_id = type_id
        self.is_primary_service: Optional[bool] = None
        self._hap_type = uuid_to_hap_type(type_id)

    def __repr__(self) -> str:
        values = {char.display_name: char.value for char in self.characteristics}
        return f"<service display_name={self.display_name} chars={values}>"

    def add_characteristic(self, *chars: Characteristic) -> None:
        """Append characteristics whose type is not in the service yet."""
        known = {char.type_id for char in self.characteristics}
        for char in chars:
            if char.type_id in known:
                continue
            known.add(char.type_id)
            char.service = self
            self.characteristics.append(char)

    def get_characteristic(self, name: str) -> Characteristic:
        """Return the characteristic called ``name``.

        :raise ValueError: if the service has no such characteristic.
        """
        found = next(
            (char for char in self.characteristics if char.display_name == name), None
        )
        if found is None:
            raise ValueError(
                "Characteristic {} not found in {}".format(name, self.display_name)
            )
        return found

    def configure_char(
        self,
        char_name: str,
        value=None,
        setter_callback=None,
        getter_callback=None,
    ) -> Characteristic:
        """Set the initial value and the callbacks of a characteristic.

        Arguments left as None do not change the characteristic.
        """
        char = self.get_characteristic(char_name)
        if value is not None:
            char.set_value(value, should_notify=False)
        if getter_callback is not None:
            char.getter_callback = getter_callback
        if setter_callback is not None:
            char.setter_callback = setter_callback
        return char

    # pylint: disable=invalid-name
    def to_HAP(self, include_value: bool = True) -> Dict[str, Any]:
        """Describe the service and its characteristics for `/accessories`."""
        hap_rep = {
            HAP_REPR_IID: self.broker.get_iid(self),
            HAP_REPR_TYPE: self._hap_type,
            HAP_REPR_CHARS: [
                char.to_HAP(include_value) for char in self.characteristics
            ],
        }
        if self.is_primary_service is not None:
            hap_rep[HAP_REPR_PRIMARY] = self.is_primary_service
        return hap_rep

    @classmethod
    def from_dict(
        cls, name: str, json_dict: Dict[str, Any], loader: "Loader"
    ) -> "Service":
        """Build a service with its required characteristics.

        :param json_dict: A service description with the keys `UUID` and
            `RequiredCharacteristics`.
        :type json_dict: dict
        """
        service = cls(hap_type_to_uuid(json_dict[PROP_SERVICE_UUID]), name)
        service.add_characteristic(
            *(loader.get_char(char_name) for char_name in json_dict[PROP_REQUIRED_CHARS])
        )
        return service
