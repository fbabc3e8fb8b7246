import json

import pytest

from cooling_control.config import ConfigStore, DaemonConfig, config_from_dict, config_to_dict
from cooling_control.errors import ConfigError

SAMPLE = {
    "update_interval_ms": 500,
    "policy": "curve",
    "policy_settings": {"curves": [{"control": "cpu_fan", "sensor": "cpu", "points": [[30, 20], [80, 100]]}]},
    "controls": [
        {
            "identifier": "nct6775/pwm2",
            "alias": "cpu_fan",
            "step_up": 5,
            "min_start": 35,
            "rpm_sensor": "nct6775/fan2_input",
            "rpm_calibration": [{"control": 0, "rpm": 0}, {"control": 100, "rpm": 1800}],
        }
    ],
    "sensors": [{"identifier": "coretemp/temp1_input", "alias": "cpu"}],
}


def test_defaults_fill_missing_fields():
    config = config_from_dict(SAMPLE)
    control = config.controls[0]
    assert config.update_interval_ms == 500
    assert control.step_up == 5
    assert control.step_down == 8
    assert control.min_start == 35
    assert control.min_stop == 20
    assert not control.zero_rpm
    assert control.rpm_calibration[1].rpm == 1800
    assert config.sensors[0].alias == "cpu"
    assert config.hwmon_root == "/sys/class/hwmon"


def test_store_round_trip(tmp_path):
    store = ConfigStore(tmp_path / "nested" / "config.json")
    config = config_from_dict(SAMPLE)
    config.controls[0].min_stop = 22
    store.save(config)

    loaded = store.load()
    assert loaded == config
    assert json.loads((tmp_path / "nested" / "config.json").read_text())["controls"][0]["min_stop"] == 22
    assert list((tmp_path / "nested").iterdir()) == [tmp_path / "nested" / "config.json"]


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        ConfigStore(tmp_path / "absent.json").load()


def test_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{ not json")
    with pytest.raises(ConfigError, match="not valid JSON"):
        ConfigStore(path).load()


@pytest.mark.parametrize("patch", [
    {"controls": [{"alias": "fan"}]},
    {"controls": [{"identifier": "chip/pwm1", "alias": "fan", "step_up": "fast"}]},
    {"sensors": [{"identifier": "chip/temp1_input"}]},
    {"update_interval_ms": 0},
])
def test_invalid_entries(patch):
    data = dict(SAMPLE)
    data.update(patch)
    with pytest.raises(ConfigError):
        config_from_dict(data)


def test_duplicate_aliases_rejected():
    data = dict(SAMPLE)
    data["controls"] = [
        {"identifier": "chip/pwm1", "alias": "fan"},
        {"identifier": "chip/pwm2", "alias": "fan"},
    ]
    with pytest.raises(ConfigError, match="Duplicate control alias"):
        config_from_dict(data)


def test_top_level_must_be_object():
    with pytest.raises(ConfigError):
        config_from_dict([])


def test_serialization_uses_snake_case():
    data = config_to_dict(DaemonConfig())
    assert "update_interval_ms" in data
    assert data["controls"] == []
