from __future__ import annotations

import os
from typing import Iterable, Mapping, Optional

import pandas as pd

from .config import ControlConfig, DaemonConfig, RPMCalibrationPoint
from .errors import ConfigError


class CSVLogger:
    """Appends one row per tick: timestamp, sensor values, applied control values.

    Columns are fixed when the logger is created; values missing in a tick
    are written as empty cells. An existing file must carry the same header.
    """

    def __init__(self, path: str, sensor_aliases: Iterable[str], control_aliases: Iterable[str]):
        self.path = path
        self.sensor_columns = sorted(sensor_aliases)
        self.control_columns = sorted(control_aliases)
        clashes = set(self.sensor_columns) & set(self.control_columns)
        if clashes:
            raise ConfigError(f"CSV log columns clash between sensors and controls: {sorted(clashes)}")
        self.columns = ["timestamp"] + self.sensor_columns + self.control_columns
        self._check_existing_header()

    @classmethod
    def from_config(cls, config: DaemonConfig) -> "CSVLogger":
        return cls(config.csv_log, [s.alias for s in config.sensors], [c.alias for c in config.controls])

    def _has_content(self) -> bool:
        return os.path.exists(self.path) and os.path.getsize(self.path) > 0

    def _check_existing_header(self) -> None:
        if not self._has_content():
            return
        header = list(pd.read_csv(self.path, nrows=0).columns)
        if header != self.columns:
            raise ConfigError(f"CSV log {self.path} has columns {header}, expected {self.columns}")

    def log(self, sensors: Mapping[str, Optional[float]], controls: Mapping[str, float]) -> None:
        row = {"timestamp": pd.Timestamp.now().strftime("%Y-%m-%d %H:%M:%S")}
        row.update({alias: sensors.get(alias) for alias in self.sensor_columns})
        row.update({alias: controls.get(alias) for alias in self.control_columns})
        frame = pd.DataFrame([row], columns=self.columns)
        frame.to_csv(self.path, mode="a", header=not self._has_content(), index=False)


def calibration_to_frame(points: Iterable[RPMCalibrationPoint]) -> pd.DataFrame:
    points = list(points)
    return pd.DataFrame(
        {
            "control": [p.control for p in points],
            "rpm": [p.rpm for p in points],
        }
    )


def format_calibration(control: ControlConfig) -> str:
    header = (
        f"{control.alias} ({control.identifier}) | min_start {control.min_start:g}% "
        f"| min_stop {control.min_stop:g}%"
    )
    if not control.rpm_calibration:
        return f"{header}\n  (no rpm calibration)"
    table = calibration_to_frame(control.rpm_calibration).to_string(index=False)
    return f"{header}\n{table}"
