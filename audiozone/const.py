"""This module contains constants used by other modules."""
MAJOR_VERSION = 1
MINOR_VERSION = 0
PATCH_VERSION = 0
__short_version__ = "{}.{}".format(MAJOR_VERSION, MINOR_VERSION)
__version__ = "{}.{}".format(__short_version__, PATCH_VERSION)
REQUIRED_PYTHON_VER = (3, 8)

# ### Misc ###
DEFAULT_PORT = 51900
DEFAULT_TIMEOUT = 5.0
DEFAULT_PLATFORM_NAME = "AudioZone"
FIRST_BRIDGED_AID = 2

# ### Accessory Categories ###
CATEGORY_OTHER = 1
CATEGORY_BRIDGE = 2
CATEGORY_SWITCH = 8

# ### Accessory information ###
ZONE_MANUFACTURER = "GENERIC"
ZONE_MODEL = "AudioZone"

# ### Registration ###
ACCESSORY_PLUGIN_NAME = "homebridge-audio-zone-item"
ACCESSORY_TYPE = "AudioZoneItem"
PLATFORM_PLUGIN_NAME = "homebridge-audio-zone"
PLATFORM_TYPE = "AudioZone"

# ### Config keys ###
CONFIG_PLATFORMS = "platforms"
CONFIG_PLATFORM = "platform"
CONFIG_NAME = "name"
CONFIG_ZONES = "lights"
CONFIG_ZONES_ALIAS = "zones"
CONFIG_PORT = "port"
CONFIG_ADDRESS = "address"
CONFIG_TIMEOUT = "timeout"
CONFIG_ZONE_ID = "id"
CONFIG_ZONE_NAME = "name"
CONFIG_ZONE_SERIAL = "serial"

# ### HAP Permissions ###
HAP_PERMISSION_NOTIFY = "ev"
HAP_PERMISSION_READ = "pr"
HAP_PERMISSION_WRITE = "pw"

# ### HAP representation ###
HAP_REPR_ACCS = "accessories"
HAP_REPR_AID = "aid"
HAP_REPR_CHARS = "characteristics"
HAP_REPR_DESC = "description"
HAP_REPR_FORMAT = "format"
HAP_REPR_IID = "iid"
HAP_REPR_MAX_LEN = "maxLen"
HAP_REPR_PERM = "perms"
HAP_REPR_PRIMARY = "primary"
HAP_REPR_SERVICES = "services"
HAP_REPR_STATUS = "status"
HAP_REPR_TYPE = "type"
HAP_REPR_VALUE = "value"

# ### mDNS ###
ZONE_SERVICE_TYPE = "_audiozone._tcp.local."
BASE_UUID = "-0000-1000-8000-0026BB765291"


class HAP_SERVER_STATUS:
    """Status codes for HAP server responses."""

    SUCCESS = 0
    INSUFFICIENT_PRIVILEGES = -70401
    SERVICE_COMMUNICATION_FAILURE = -70402
    RESOURCE_BUSY = -70403
    READ_ONLY_CHARACTERISTIC = -70404
    WRITE_ONLY_CHARACTERISTIC = -70405
    NOTIFICATION_NOT_SUPPORTED = -70406
    OUT_OF_RESOURCE = -70407
    OPERATION_TIMED_OUT = -70408
    RESOURCE_DOES_NOT_EXIST = -70409
    INVALID_VALUE_IN_REQUEST = -70410
