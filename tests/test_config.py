"""Tests for audiozone.config."""
import json
from unittest.mock import patch

import pytest

from audiozone.config import PlatformConfig, find_platform, load_config
from audiozone.const import DEFAULT_PORT, DEFAULT_TIMEOUT
from audiozone.zone import ZoneConfigError

LIGHTS = [{"id": "1", "name": "Kitchen"}, {"id": "2", "name": "Living Room"}]


def test_defaults():
    config = PlatformConfig()
    assert config.name == "AudioZone"
    assert config.zones == []
    assert config.port == DEFAULT_PORT
    assert config.timeout == DEFAULT_TIMEOUT
    assert config.address == "127.0.0.1"
    assert len(config.mac) == 17
    assert config.mac == config.mac
    assert "AudioZone" in repr(config)


def test_from_dict_lights():
    config = PlatformConfig.from_dict(
        {"platform": "AudioZone", "name": "House", "lights": LIGHTS, "port": "51901"}
    )
    assert config.name == "House"
    assert config.zones == LIGHTS
    assert config.port == 51901


def test_from_dict_zones_alias():
    config = PlatformConfig.from_dict({"zones": LIGHTS, "timeout": 2})
    assert config.zones == LIGHTS
    assert config.timeout == 2.0


def test_from_dict_lights_wins():
    config = PlatformConfig.from_dict({"lights": LIGHTS[:1], "zones": LIGHTS})
    assert config.zones == LIGHTS[:1]


def test_from_dict_without_zones(caplog):
    config = PlatformConfig.from_dict({"platform": "AudioZone"})
    assert config.zones == []
    assert "no zones will be exposed" in caplog.text


@pytest.mark.parametrize(
    "json_dict",
    [
        None,
        [],
        {"lights": {"id": "1"}},
        {"lights": [], "timeout": "soon"},
        {"lights": [], "timeout": 0},
        {"lights": [], "port": "http"},
    ],
)
def test_from_dict_invalid(json_dict):
    with pytest.raises(ZoneConfigError):
        PlatformConfig.from_dict(json_dict)


def test_find_platform():
    entry = {"platform": "AudioZone", "lights": LIGHTS}
    content = {"platforms": [{"platform": "Other"}, entry]}
    assert find_platform(content) is entry
    assert find_platform(entry) is entry
    with pytest.raises(ZoneConfigError):
        find_platform({"platforms": [{"platform": "Other"}]})


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "bridge": {"name": "Homebridge"},
                "platforms": [{"platform": "AudioZone", "lights": LIGHTS}],
            }
        )
    )
    config = load_config(str(path))
    assert config.zones == LIGHTS


def test_load_config_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{lights: ")
    with pytest.raises(ZoneConfigError):
        load_config(str(path))


def test_address_from_util():
    with patch("audiozone.util.get_local_address", return_value="10.0.0.2"):
        assert PlatformConfig().address == "10.0.0.2"
    assert PlatformConfig(address="10.0.0.3").address == "10.0.0.3"
