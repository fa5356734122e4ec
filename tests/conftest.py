"""Shared fixtures and mocks."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from audiozone.config import PlatformConfig
from audiozone.driver import ZoneDriver
from audiozone.loader import Loader

ZONES = [
    {"id": "1", "name": "Kitchen", "serial": "AZ-0001"},
    {"id": "2", "name": "Living Room", "serial": "AZ-0002"},
]


@pytest.fixture(scope="session")
def mock_driver():
    yield MockDriver()


@pytest.fixture(name="async_zeroconf")
def async_zc():
    with patch("audiozone.driver.AsyncZeroconf") as mock_async_zeroconf:
        aiozc = mock_async_zeroconf.return_value
        aiozc.async_register_service = AsyncMock()
        aiozc.async_update_service = AsyncMock()
        aiozc.async_unregister_service = AsyncMock()
        aiozc.async_close = AsyncMock()
        yield aiozc


@pytest.fixture
def platform_config():
    return PlatformConfig(
        name="AudioZone", zones=ZONES, address="127.0.0.1", mac="AA:BB:CC:DD:EE:FF"
    )


@pytest.fixture
def driver(async_zeroconf, platform_config):
    loop = asyncio.new_event_loop()
    with patch(
        "audiozone.driver.ZoneServer.async_stop"
    ), patch(
        "audiozone.driver.ZoneServer.async_start", new_callable=AsyncMock
    ):
        yield ZoneDriver(loop=loop, config=platform_config)
    loop.close()


@pytest.fixture(autouse=True)
def mock_local_address():
    with patch("audiozone.util.get_local_address", return_value="127.0.0.1"):
        yield


class MockDriver:
    def __init__(self):
        self.loader = Loader()
        self.published = []

    def publish(self, data, client_addr=None, immediate=False):
        self.published.append(data)
