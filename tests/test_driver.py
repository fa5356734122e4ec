"""Tests for audiozone.driver."""
import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from audiozone import util
from audiozone.accessory import ZonePlatform
from audiozone.capability import CapabilityKind
from audiozone.config import PlatformConfig
from audiozone.const import HAP_SERVER_STATUS
from audiozone.driver import ZoneDriver, ZoneMDNSServiceInfo
from audiozone.zone import ZoneConfigError

from . import FailingBackend, RecordingBackend, SlowBackend

CLIENT = ("1.2.3.4", 5)
# IIDs of every zone accessory
IID_MANUFACTURER = 3
IID_IDENTIFY = 2
IID_ON = 9
IID_VOLUME = 10


def _run(driver, coro):
    return driver.loop.run_until_complete(coro)


def test_add_platform(driver):
    assert driver.display_name == "AudioZone"
    driver.add_platform()
    assert isinstance(driver.platform, ZonePlatform)
    assert sorted(driver.platform.zone_accessories) == [2, 3]
    assert driver.platform.get_accessory(3).display_name == "Living Room"


def test_add_platform_invalid_config(driver):
    driver.config.zones.append({"id": "1"})
    with pytest.raises(ZoneConfigError):
        driver.add_platform()


def test_get_accessories(driver):
    driver.add_platform()
    hap_rep = driver.get_accessories()
    assert [acc["aid"] for acc in hap_rep["accessories"]] == [2, 3]
    without_values = driver.get_accessories(include_value=False)
    switch = without_values["accessories"][0]["services"][1]
    assert all("value" not in char for char in switch["characteristics"])


def test_accessories_hash_ignores_values(driver):
    driver.add_platform()
    before = driver.accessories_hash
    driver.platform.get_characteristic(2, IID_VOLUME).set_value(80)
    assert driver.accessories_hash == before


def test_get_characteristics(driver):
    driver.add_platform(
        ZonePlatform(driver, driver.config, backend=RecordingBackend(True, 30))
    )
    result = _run(
        driver,
        driver.async_get_characteristics(
            ["2.{}".format(IID_ON), "3.{}".format(IID_VOLUME), "9.9", "2.99", "2.2"]
        ),
    )
    assert result == {
        "characteristics": [
            {"aid": 2, "iid": IID_ON, "value": True, "status": 0},
            {"aid": 3, "iid": IID_VOLUME, "value": 30, "status": 0},
            {
                "aid": 9,
                "iid": 9,
                "status": HAP_SERVER_STATUS.RESOURCE_DOES_NOT_EXIST,
            },
            {
                "aid": 2,
                "iid": 99,
                "status": HAP_SERVER_STATUS.RESOURCE_DOES_NOT_EXIST,
            },
            {
                "aid": 2,
                "iid": IID_IDENTIFY,
                "status": HAP_SERVER_STATUS.WRITE_ONLY_CHARACTERISTIC,
            },
        ]
    }


def test_get_characteristics_stub_defaults(driver):
    driver.add_platform()
    result = _run(driver, driver.async_get_characteristics(["2.9", "2.10"]))
    assert [char["value"] for char in result["characteristics"]] == [False, 50]


def test_get_characteristics_failing_zone(driver):
    """Test that a failing zone only fails its own characteristics."""
    driver.add_platform(
        ZonePlatform(driver, driver.config, backend=FailingBackend({"2"}))
    )
    result = _run(driver, driver.async_get_characteristics(["2.10", "3.10"]))
    assert result["characteristics"] == [
        {"aid": 2, "iid": 10, "value": 42, "status": 0},
        {
            "aid": 3,
            "iid": 10,
            "status": HAP_SERVER_STATUS.SERVICE_COMMUNICATION_FAILURE,
        },
    ]


def test_get_characteristics_timeout(driver):
    config = PlatformConfig(zones=[{"id": "1"}], timeout=0.01)
    driver.add_platform(ZonePlatform(driver, config, backend=SlowBackend()))
    result = _run(driver, driver.async_get_characteristics(["2.10"]))
    assert result["characteristics"] == [
        {"aid": 2, "iid": 10, "status": HAP_SERVER_STATUS.OPERATION_TIMED_OUT}
    ]


def test_set_characteristics(driver):
    backend = RecordingBackend()
    driver.add_platform(ZonePlatform(driver, driver.config, backend=backend))
    query = {
        "characteristics": [
            {"aid": 2, "iid": IID_VOLUME, "value": 75},
            {"aid": 3, "iid": IID_ON, "value": 0},
        ]
    }
    assert _run(driver, driver.async_set_characteristics(query, CLIENT)) is None
    assert backend.set_calls == [
        ("1", CapabilityKind.VOLUME, 75),
        ("2", CapabilityKind.POWER, False),
    ]
    assert driver.platform.get_characteristic(2, IID_VOLUME).value == 75


def test_set_characteristics_failures(driver):
    backend = RecordingBackend()
    driver.add_platform(ZonePlatform(driver, driver.config, backend=backend))
    query = {
        "characteristics": [
            {"aid": 2, "iid": IID_VOLUME, "value": 150},
            {"aid": 2, "iid": IID_MANUFACTURER, "value": "ACME"},
            {"aid": 9, "iid": 9, "value": 1},
            {"aid": 3, "iid": IID_VOLUME, "value": 40},
        ]
    }
    result = _run(driver, driver.async_set_characteristics(query, CLIENT))
    assert result == {
        "characteristics": [
            {
                "aid": 2,
                "iid": IID_VOLUME,
                "status": HAP_SERVER_STATUS.INVALID_VALUE_IN_REQUEST,
            },
            {
                "aid": 2,
                "iid": IID_MANUFACTURER,
                "status": HAP_SERVER_STATUS.READ_ONLY_CHARACTERISTIC,
            },
            {"aid": 9, "iid": 9, "status": HAP_SERVER_STATUS.RESOURCE_DOES_NOT_EXIST},
            {"aid": 3, "iid": IID_VOLUME, "status": HAP_SERVER_STATUS.SUCCESS},
        ]
    }
    # The out of range volume never reached the zone
    assert [call[0] for call in backend.set_calls] == ["2"]
    assert driver.platform.get_characteristic(2, IID_VOLUME).value == 0


def test_set_characteristics_backend_failure(driver):
    driver.add_platform(
        ZonePlatform(driver, driver.config, backend=FailingBackend({"1"}))
    )
    query = {"characteristics": [{"aid": 2, "iid": IID_ON, "value": True}]}
    result = _run(driver, driver.async_set_characteristics(query, CLIENT))
    assert result["characteristics"][0]["status"] == (
        HAP_SERVER_STATUS.SERVICE_COMMUNICATION_FAILURE
    )


def test_subscriptions(driver):
    driver.add_platform()
    query = {
        "characteristics": [
            {"aid": 2, "iid": IID_VOLUME, "ev": True},
            {"aid": 2, "iid": IID_MANUFACTURER, "ev": True},
        ]
    }
    result = _run(driver, driver.async_set_characteristics(query, CLIENT))
    assert result["characteristics"][1]["status"] == (
        HAP_SERVER_STATUS.NOTIFICATION_NOT_SUPPORTED
    )
    assert driver.topics == {"2.10": {CLIENT}}

    query = {"characteristics": [{"aid": 2, "iid": IID_VOLUME, "ev": False}]}
    assert _run(driver, driver.async_set_characteristics(query, CLIENT)) is None
    assert driver.topics == {}


def test_async_subscribe_client_topic(driver):
    topic = "any"
    driver.async_subscribe_client_topic(CLIENT, topic, True)
    assert driver.topics == {topic: {CLIENT}}
    driver.async_subscribe_client_topic(CLIENT, topic, False)
    assert driver.topics == {}
    driver.async_subscribe_client_topic(CLIENT, "invalid", False)
    assert driver.topics == {}


def test_connection_lost(driver):
    other = ("4.5.6.7", 8)
    driver.async_subscribe_client_topic(CLIENT, "2.9", True)
    driver.async_subscribe_client_topic(CLIENT, "2.10", True)
    driver.async_subscribe_client_topic(other, "2.10", True)
    driver.connection_lost(CLIENT)
    assert driver.topics == {"2.10": {other}}


def test_publish(driver):
    driver.http_server = Mock()
    driver.http_server.push_event.return_value = True
    data = {"aid": 2, "iid": 10, "value": 20}
    driver.publish(data)
    assert not driver.http_server.push_event.called

    driver.async_subscribe_client_topic(CLIENT, "2.10", True)
    driver.publish(data)
    driver.http_server.push_event.assert_called_once_with(data, CLIENT, False)

    driver.http_server.push_event.reset_mock()
    driver.publish(data, CLIENT)
    assert not driver.http_server.push_event.called


def test_send_event_drops_stale_clients(driver):
    driver.http_server = Mock()
    driver.http_server.push_event.return_value = False
    driver.async_subscribe_client_topic(CLIENT, "2.10", True)
    driver.async_send_event("2.10", {"aid": 2, "iid": 10, "value": 1}, None, True)
    assert driver.topics == {}


def test_send_event_after_stop(driver):
    driver.http_server = Mock()
    driver.aio_stop_event = MagicMock(is_set=MagicMock(return_value=True))
    driver.async_subscribe_client_topic(CLIENT, "2.10", True)
    driver.async_send_event("2.10", {"aid": 2, "iid": 10, "value": 1}, None, True)
    assert not driver.http_server.push_event.called


def test_update_from_zone_reaches_subscribers(driver):
    driver.add_platform()
    driver.http_server = Mock()
    driver.http_server.push_event.return_value = True
    driver.async_subscribe_client_topic(CLIENT, "3.10", True)
    acc = driver.platform.get_accessory(3)
    _run(driver, acc.async_update_capability("volume", 35))
    driver.http_server.push_event.assert_called_once_with(
        {"aid": 3, "iid": 10, "value": 35}, CLIENT, False
    )


def test_mdns_service_info(driver):
    driver.add_platform()
    mdns_info = ZoneMDNSServiceInfo(driver)
    assert mdns_info.type == "_audiozone._tcp.local."
    assert mdns_info.name == "AudioZone DDEEFF._audiozone._tcp.local."
    assert mdns_info.server == "AudioZone-DDEEFF.local."
    assert mdns_info.port == 51900
    assert mdns_info.addresses == [b"\x7f\x00\x00\x01"]
    advert = mdns_info._get_advert_data()  # pylint: disable=protected-access
    assert advert == {
        "md": "AudioZone",
        "pn": "AudioZone",
        "id": "AA:BB:CC:DD:EE:FF",
        "pv": "1.0.0",
        "c#": driver.accessories_hash[:8],
        "zn": "2",
    }


@pytest.mark.parametrize(
    "name, mdns_name, mdns_server",
    [
        (
            "--h a p p y--",
            "h a p p y DDEEFF._audiozone._tcp.local.",
            "h-a-p-p-y-DDEEFF.local.",
        ),
        (
            "[@@@Audio@@@] Zones",
            "Audio Zones DDEEFF._audiozone._tcp.local.",
            "Audio-Zones-DDEEFF.local.",
        ),
    ],
)
def test_mdns_name_sanity(driver, name, mdns_name, mdns_server):
    driver.config.name = name
    mdns_info = ZoneMDNSServiceInfo(driver)
    assert mdns_info.name == mdns_name
    assert mdns_info.server == mdns_server


def test_start_stop(driver, async_zeroconf):
    _run(driver, driver.async_start())
    assert driver.platform is not None
    driver.http_server.async_start.assert_awaited_once_with(driver.loop)
    async_zeroconf.async_register_service.assert_awaited_once_with(
        driver.mdns_service_info, cooperating_responders=True
    )
    assert driver.platform.get_characteristic(2, IID_VOLUME).value == 50

    _run(driver, driver.async_stop())
    async_zeroconf.async_unregister_service.assert_awaited_once_with(
        driver.mdns_service_info
    )
    async_zeroconf.async_close.assert_awaited_once()
    assert driver.aio_stop_event.is_set()
    assert driver.stop_event.is_set()
    assert not driver.loop.is_closed()


def test_stop_before_start(driver, async_zeroconf):
    _run(driver, driver.async_stop())
    assert not async_zeroconf.async_unregister_service.called


def test_external_zeroconf(platform_config):
    zeroconf = Mock()
    with patch("audiozone.driver.ZoneServer"):
        driver = ZoneDriver(
            loop=MagicMock(), config=platform_config, async_zeroconf_instance=zeroconf
        )
    assert driver.advertiser is zeroconf


def test_addresses(platform_config):
    with patch("audiozone.driver.ZoneServer") as server:
        driver = ZoneDriver(
            loop=MagicMock(),
            config=platform_config,
            listen_address="0.0.0.0",
            advertised_address="192.168.1.2",
        )
    assert driver.address == "192.168.1.2"
    assert driver.port == 51900
    server.assert_called_once_with(("0.0.0.0", 51900), driver)


def test_call_add_job_with_none(driver):
    with pytest.raises(ValueError):
        driver.add_job(None)


@pytest.mark.asyncio
async def test_call_async_add_job(platform_config):
    with patch("audiozone.driver.ZoneServer"):
        driver = ZoneDriver(loop=asyncio.get_event_loop(), config=platform_config)
    called = []

    async def coro_test():
        called.append("coro")

    await driver.async_add_job(coro_test)
    await driver.async_add_job(coro_test())

    @util.callback
    def callback_test():
        called.append("callback")

    driver.async_add_job(callback_test)
    await asyncio.sleep(0)

    def sync_test():
        called.append("sync")

    await driver.async_add_job(sync_test)
    assert called == ["coro", "coro", "callback", "sync"]


def test_signal_handler(driver):
    with patch.object(driver, "stop") as stop:
        driver.signal_handler(None, None)
    stop.assert_called_once_with()

    with patch.object(driver, "stop", side_effect=RuntimeError), pytest.raises(
        RuntimeError
    ):
        driver.signal_handler(None, None)


def test_stop_schedules_async_stop(driver):
    with patch.object(driver, "async_stop", new_callable=AsyncMock) as async_stop:
        driver.stop()
        _run(driver, asyncio.sleep(0.01))
    async_stop.assert_awaited_once()
