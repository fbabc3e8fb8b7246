import pytest

from cooling_control.adapters import DEFAULT_CONTROL_VALUE, HwmonAdapter


@pytest.fixture
def sysfs(tmp_path):
    chip = tmp_path / "hwmon2"
    chip.mkdir()
    (chip / "name").write_text("nct6775\n")
    (chip / "pwm1").write_text("51\n")
    (chip / "pwm1_enable").write_text("2\n")
    (chip / "pwm2").write_text("255\n")
    (chip / "fan1_input").write_text("900\n")

    cpu = tmp_path / "hwmon0"
    cpu.mkdir()
    (cpu / "name").write_text("coretemp\n")
    (cpu / "temp1_input").write_text("45000\n")
    return tmp_path


def test_reads_are_scaled(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    assert adapter.get_sensor_values({"coretemp/temp1_input", "nct6775/fan1_input"}) == {
        "coretemp/temp1_input": 45.0,
        "nct6775/fan1_input": 900.0,
    }
    assert adapter.get_control_values({"nct6775/pwm1", "hwmon2/pwm2"}) == {
        "nct6775/pwm1": 20.0,
        "hwmon2/pwm2": 100.0,
    }


def test_missing_values_are_none(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    assert adapter.get_sensor_values({"nct6775/fan9_input", "nochip/temp1_input", "nct6775"}) == {
        "nct6775/fan9_input": None,
        "nochip/temp1_input": None,
        "nct6775": None,
    }


def test_set_claims_and_release_restores(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    enable = sysfs / "hwmon2" / "pwm1_enable"

    assert adapter.set_controls({"nct6775/pwm1": 50}) == {"nct6775/pwm1": True}
    assert (sysfs / "hwmon2" / "pwm1").read_text() == "128"
    assert enable.read_text() == "1"

    assert adapter.set_controls({"nct6775/pwm1": 150}) == {"nct6775/pwm1": True}
    assert (sysfs / "hwmon2" / "pwm1").read_text() == "255"

    assert adapter.release_controls({"nct6775/pwm1"}) == {"nct6775/pwm1": True}
    assert enable.read_text() == "2"


def test_pwm_without_enable_file(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    assert adapter.set_controls({"nct6775/pwm2": 0}) == {"nct6775/pwm2": True}
    assert (sysfs / "hwmon2" / "pwm2").read_text() == "0"
    assert adapter.set_controls({"nct6775/pwm2": DEFAULT_CONTROL_VALUE}) == {"nct6775/pwm2": True}


def test_only_pwm_attributes_are_controls(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    assert adapter.set_controls({"nct6775/fan1_input": 50, "ghost/pwm1": 50}) == {
        "nct6775/fan1_input": False,
        "ghost/pwm1": False,
    }


def test_duplicate_chip_names_use_directory(sysfs):
    twin = sysfs / "hwmon5"
    twin.mkdir()
    (twin / "name").write_text("coretemp\n")
    (twin / "temp1_input").write_text("60000\n")

    adapter = HwmonAdapter(str(sysfs))
    values = adapter.get_sensor_values({"coretemp/temp1_input", "hwmon5/temp1_input"})
    assert values == {"coretemp/temp1_input": 45.0, "hwmon5/temp1_input": 60.0}


def test_resume_rescans(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    (sysfs / "hwmon2").rename(sysfs / "hwmon7")
    adapter.resume()
    assert adapter.get_control_values({"nct6775/pwm1"}) == {"nct6775/pwm1": 20.0}


def test_list_all_sensors_logs_chips(sysfs, caplog):
    caplog.set_level("INFO")
    HwmonAdapter(str(sysfs)).list_all_sensors()
    assert "coretemp/temp1_input = 45.0" in caplog.text
    assert "nct6775/pwm1 = 20.0" in caplog.text


def test_resume_reclaims_manual_mode(sysfs):
    adapter = HwmonAdapter(str(sysfs))
    enable = sysfs / "hwmon2" / "pwm1_enable"
    adapter.set_controls({"nct6775/pwm1": 40})
    assert enable.read_text() == "1"

    # firmware hands the channel back to automatic across suspend
    adapter.suspend()
    enable.write_text("2\n")
    adapter.resume()

    assert adapter.set_controls({"nct6775/pwm1": 60}) == {"nct6775/pwm1": True}
    assert enable.read_text() == "1"
    assert (sysfs / "hwmon2" / "pwm1").read_text() == "153"

    # release restores the mode found before the first claim
    enable.write_text("5\n")
    adapter.release_controls({"nct6775/pwm1"})
    assert enable.read_text() == "2"
