"""
Builds characteristics, services and capability schemas from the json type
descriptions in ``audiozone/resources``.

.. seealso:: audiozone/resources/characteristics.json
.. seealso:: audiozone/resources/services.json
"""
import json
import logging

from . import CHARACTERISTICS_FILE, SERVICES_FILE
from .capability import (
    PROP_FORMAT,
    PROP_PERMISSIONS,
    PROP_UUID,
    CapabilityKind,
    CapabilitySchema,
)
from .characteristic import Characteristic
from .service import PROP_REQUIRED_CHARS, PROP_SERVICE_UUID, Service

logger = logging.getLogger(__name__)

CHAR_KEYS = (PROP_FORMAT, PROP_PERMISSIONS, PROP_UUID)
SERVICE_KEYS = (PROP_REQUIRED_CHARS, PROP_SERVICE_UUID)

_loader = None


def _read_types(path):
    with open(path, "r", encoding="utf8") as file_handle:
        types = json.load(file_handle)
    logger.debug("Read %d type descriptions from %s", len(types), path)
    return types


def _description(types, name, required_keys, kind):
    """Return a copy of a type description after checking its keys.

    :raise KeyError: if the type is unknown or incompletely described.
    """
    description = types[name]
    if not isinstance(description, dict) or any(
        key not in description for key in required_keys
    ):
        raise KeyError("Could not load {} {}!".format(kind, name))
    return dict(description)


class Loader:
    """Hands out fresh objects for the described type names."""

    def __init__(self, path_char=CHARACTERISTICS_FILE, path_service=SERVICES_FILE):
        self.char_types = _read_types(path_char)
        self.serv_types = _read_types(path_service)

    @classmethod
    def from_dict(cls, char_dict=None, serv_dict=None):
        """Create a loader from type descriptions already in memory."""
        loader = cls.__new__(cls)
        loader.char_types = char_dict or {}
        loader.serv_types = serv_dict or {}
        return loader

    def get_char(self, name):
        """Return a new `Characteristic` of the named type."""
        json_dict = _description(self.char_types, name, CHAR_KEYS, "char")
        return Characteristic.from_dict(name, json_dict, from_loader=True)

    def get_service(self, name):
        """Return a new `Service` of the named type with its required chars."""
        json_dict = _description(self.serv_types, name, SERVICE_KEYS, "service")
        return Service.from_dict(name, json_dict, self)

    def get_schema(self, kind):
        """Return the `CapabilitySchema` of a capability kind.

        The schema is read from the description of the characteristic the
        capability is exposed as, so both always agree.
        """
        kind = CapabilityKind.lookup(kind)
        json_dict = _description(self.char_types, kind.char_name, CHAR_KEYS, "char")
        return CapabilitySchema.from_dict(kind, json_dict)

    def get_schemas(self):
        """Return the schemas of every capability kind, by kind."""
        return {kind: self.get_schema(kind) for kind in CapabilityKind}


def get_loader():
    """Return the shared loader, reading the type descriptions on first use."""
    global _loader  # pylint: disable=global-statement
    if _loader is None:
        _loader = Loader()
    return _loader
