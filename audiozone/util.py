"""Small helpers shared by the zone shim."""
import asyncio
import functools
import json
import random
import socket
from uuid import UUID

from .const import BASE_UUID

HEX_DIGITS = "0123456789ABCDEF"
CALLBACK_MARKER = "_audiozone_callback"

rand = random.SystemRandom()


def callback(func):
    """Mark ``func`` as safe to run directly in the event loop."""
    setattr(func, CALLBACK_MARKER, True)
    return func


def is_callback(func):
    """Tell whether ``func`` was marked with `callback`."""
    return getattr(func, CALLBACK_MARKER, False) is True


def iscoro(func):
    """Tell whether calling ``func`` gives a coroutine.

    A ``functools.partial`` is unwrapped first, so partials of coroutine
    functions count as coroutine functions too.
    """
    while isinstance(func, functools.partial):
        func = func.func
    return asyncio.iscoroutinefunction(func)


def get_local_address():
    """Return the IPv4 address of the interface used for outgoing traffic.

    No packet is sent; connecting a UDP socket only selects a route.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.connect(("8.8.8.8", 80))
        return sock.getsockname()[0]


def generate_mac():
    """Return a random MAC address like ``XX:XX:XX:XX:XX:XX``.

    It is only used to tell shim instances apart on the network.
    """
    octets = ("".join(rand.choice(HEX_DIGITS) for _ in range(2)) for _ in range(6))
    return ":".join(octets)


def uuid_to_hap_type(uuid):
    """Shorten a UUID of the HAP base range to its type, e.g. ``25``.

    UUIDs outside of the range, like the one of the volume characteristic,
    are returned in full.
    """
    text = str(uuid).upper()
    if text.endswith(BASE_UUID):
        return text[:8].lstrip("0")
    return text


def hap_type_to_uuid(hap_type):
    """Expand a short HAP type to its UUID; full UUIDs are parsed as-is."""
    if "-" not in hap_type:
        hap_type = hap_type.rjust(8, "0") + BASE_UUID
    return UUID(hap_type)


def to_hap_json(dump_obj):
    """Serialise ``dump_obj`` to compact json bytes."""
    return json.dumps(dump_obj, separators=(",", ":")).encode("utf-8")


def to_sorted_hap_json(dump_obj):
    """Like `to_hap_json`, with sorted keys for stable hashing."""
    return json.dumps(dump_obj, sort_keys=True, separators=(",", ":")).encode(
        "utf-8"
    )


def from_hap_json(json_str):
    """Parse json received from a client."""
    return json.loads(json_str)
