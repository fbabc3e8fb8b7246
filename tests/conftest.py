from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set

import pytest

from cooling_control.adapters import DEFAULT_CONTROL_VALUE, PlatformAdapter
from cooling_control.config import ControlConfig, DaemonConfig, RPMCalibrationPoint, SensorConfig


class FakeAdapter(PlatformAdapter):
    """Records every call; values are plain dicts keyed by identifier."""

    name = "fake"

    def __init__(
        self,
        sensors: Optional[Mapping[str, Optional[float]]] = None,
        controls: Optional[Mapping[str, Optional[float]]] = None,
        failing: Iterable[str] = (),
    ):
        self.sensors: Dict[str, Optional[float]] = dict(sensors or {})
        self.controls: Dict[str, Optional[float]] = dict(controls or {})
        self.failing: Set[str] = set(failing)
        self.set_calls: List[Dict[str, float]] = []
        self.released: List[Set[str]] = []
        self.calls: List[str] = []
        self.closed = False
        self.listed = False

    def get_sensor_values(self, identifiers):
        return {i: self.sensors.get(i) for i in identifiers}

    def get_control_values(self, identifiers):
        return {i: self.controls.get(i) for i in identifiers}

    def set_controls(self, values):
        self.set_calls.append(dict(values))
        result = {}
        for identifier, value in values.items():
            if identifier in self.failing:
                result[identifier] = False
                continue
            if value != DEFAULT_CONTROL_VALUE:
                self.controls[identifier] = value
            result[identifier] = True
        return result

    def release_controls(self, identifiers):
        self.calls.append("release")
        self.released.append(set(identifiers))
        return {i: True for i in identifiers}

    def list_all_sensors(self):
        self.listed = True

    def suspend(self):
        self.calls.append("suspend")

    def resume(self):
        self.calls.append("resume")

    def close(self):
        self.calls.append("close")
        self.closed = True


class FakeSleep:
    """Records requested delays instead of sleeping; optionally cancels after N delays."""

    def __init__(self, cancellation=None, cancel_after: Optional[int] = None):
        self.calls: List[float] = []
        self.cancellation = cancellation
        self.cancel_after = cancel_after

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.cancel_after is not None and len(self.calls) >= self.cancel_after:
            self.cancellation.cancel()


def make_control(alias: str, identifier: Optional[str] = None, **kwargs) -> ControlConfig:
    return ControlConfig(identifier=identifier or f"chip/{alias}", alias=alias, **kwargs)


@pytest.fixture
def linear_table() -> List[RPMCalibrationPoint]:
    return [
        RPMCalibrationPoint(control=0, rpm=0),
        RPMCalibrationPoint(control=50, rpm=1000),
        RPMCalibrationPoint(control=100, rpm=2000),
    ]


@pytest.fixture
def daemon_config(linear_table) -> DaemonConfig:
    return DaemonConfig(
        update_interval_ms=10,
        controls=[
            make_control("cpu_fan", "chip/pwm1", step_up=10, step_down=5, min_start=30, min_stop=20, rpm_sensor="chip/fan1_input", rpm_calibration=linear_table),
            make_control("case_fan", "chip/pwm2", step_up=0, step_down=0, min_start=25, min_stop=15, rpm_sensor="chip/fan2_input"),
        ],
        sensors=[
            SensorConfig(identifier="coretemp/temp1_input", alias="cpu"),
            SensorConfig(identifier="chip/fan1_input", alias="cpu_fan_rpm"),
        ],
    )


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter(
        sensors={"coretemp/temp1_input": 55.0, "chip/fan1_input": 900.0, "chip/fan2_input": 700.0},
        controls={"chip/pwm1": 40.0, "chip/pwm2": 0.0},
    )
