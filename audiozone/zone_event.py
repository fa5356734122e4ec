"""Value change messages pushed to subscribed clients."""
from typing import Any, Dict, List

from .const import HAP_REPR_CHARS
from .util import to_hap_json

EVENT_STATUS_LINE = b"EVENT/1.0 200 OK"


def create_zone_event(changes: List[Dict[str, Any]]) -> bytes:
    """Return the EVENT message announcing ``changes``.

    Each change holds the aid, the iid and the new value of a characteristic.
    """
    body = to_hap_json({HAP_REPR_CHARS: changes})
    head = (
        EVENT_STATUS_LINE,
        b"Content-Type: application/hap+json",
        b"Content-Length: %d" % len(body),
    )
    return b"\r\n".join(head) + b"\r\n\r\n" + body
