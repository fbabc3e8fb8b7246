import pytest

from cooling_control.regulator import ControlRegulator

from conftest import make_control


def regulator(previous=None, **kwargs):
    defaults = dict(step_up=0, step_down=0, min_start=0, min_stop=0)
    defaults.update(kwargs)
    reg = ControlRegulator([make_control("fan", **defaults)])
    if previous is not None:
        reg.reset({"fan": previous})
    return reg


@pytest.mark.parametrize("previous,proposed,step,expected", [
    (20, 50, 10, 30),
    (20, 25, 10, 25),
    (20, 30, 10, 30),
    (0, 100, 8, 8),
])
def test_step_up_limits_increase(previous, proposed, step, expected):
    reg = regulator(previous, step_up=step)
    assert reg.regulate("fan", proposed) == expected


@pytest.mark.parametrize("previous,proposed,step,expected", [
    (80, 20, 10, 70),
    (80, 75, 10, 75),
    (30, 0, 50, 0),
])
def test_step_down_limits_decrease(previous, proposed, step, expected):
    reg = regulator(previous, step_down=step)
    assert reg.regulate("fan", proposed) == expected


def test_zero_step_disables_limiting():
    reg = regulator(10)
    assert reg.regulate("fan", 100) == 100
    assert reg.regulate("fan", 0) == 0


def test_min_start_when_stopped():
    reg = regulator(0, min_start=30, min_stop=20)
    assert reg.regulate("fan", 10) == 30
    assert reg.state("fan").is_running


def test_min_stop_when_running():
    reg = regulator(50, min_start=30, min_stop=20)
    assert reg.regulate("fan", 10) == 20


def test_zero_always_passes_through():
    reg = regulator(50, min_start=30, min_stop=20)
    assert reg.regulate("fan", 0) == 0
    assert not reg.state("fan").is_running
    assert reg.regulate("fan", 0, force=True) == 0


def test_hysteresis_applies_after_rate_limit():
    # step_down brings 40 -> 30, still above min_stop
    reg = regulator(40, step_down=10, min_stop=20)
    assert reg.regulate("fan", 5) == 30
    # 22 steps down to 12, which is raised back to min_stop
    reg = regulator(22, step_down=10, min_stop=20)
    assert reg.regulate("fan", 5) == 20


def test_rate_limited_start_is_raised_to_min_start():
    reg = regulator(0, step_up=8, min_start=25)
    assert reg.regulate("fan", 60) == 25


def test_same_value_is_suppressed_unless_forced():
    reg = regulator(0)
    assert reg.regulate("fan", 40) == 40
    assert reg.regulate("fan", 40) is None
    assert reg.regulate("fan", 40, force=True) == 40
    assert reg.regulate("fan", 40, force=True) == 40


def test_suppressed_value_does_not_move_state():
    reg = regulator(50, step_up=10)
    assert reg.regulate("fan", 50) is None
    assert reg.state("fan").previous_value == 50
    assert reg.regulate("fan", 100) == 60


def test_unknown_alias_is_skipped_in_batch():
    flat = dict(step_up=0, step_down=0, min_start=0, min_stop=0)
    reg = ControlRegulator([make_control("a", **flat), make_control("b", **flat)])
    reg.reset({"a": 0, "b": 0})
    accepted = reg.regulate_batch({"a": 50, "ghost": 70, "b": 60})
    assert accepted == {"a": 50, "b": 60}


def test_controls_are_regulated_independently():
    reg = ControlRegulator([
        make_control("a", step_up=5, min_start=0, min_stop=0),
        make_control("b", step_up=50, min_start=0, min_stop=0),
    ])
    reg.reset({"a": 10, "b": 10})
    assert reg.regulate_batch({"b": 90, "a": 90}) == {"a": 15, "b": 60}


def test_control_without_initial_reading_is_treated_as_stopped():
    reg = ControlRegulator([make_control("fan", step_up=5, min_start=30, min_stop=20)])
    reg.reset({"fan": None})
    assert reg.state("fan") is None
    assert reg.regulate("fan", 10) == 30
    assert reg.state("fan").previous_value == 30


def test_reset_discards_previous_state():
    reg = regulator(50)
    reg.regulate("fan", 70)
    reg.reset({"fan": 0})
    assert reg.snapshot() == {"fan": 0}
    assert not reg.state("fan").is_running


def test_negative_value_stops_the_fan():
    reg = regulator(50, min_start=40, min_stop=20)
    assert reg.regulate("fan", -5) == 0
    assert not reg.state("fan").is_running
    # restarting from standstill needs min_start, not min_stop
    assert reg.regulate("fan", 10) == 40


def test_values_above_full_speed_are_clamped():
    reg = regulator(90, step_down=10)
    assert reg.regulate("fan", 150) == 100
    assert reg.state("fan").previous_value == 100
    assert reg.regulate("fan", 150) is None
    # step_down is measured from what the hardware actually got
    assert reg.regulate("fan", 0) == 90
