from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class RPMCalibrationPoint:
    """One measured duty cycle / RPM pair."""

    control: float
    rpm: float


@dataclass
class ControlConfig:
    """Per-actuator regulation parameters."""

    identifier: str
    alias: str
    step_up: float = 8.0  # max percentage points per tick, 0 = unlimited
    step_down: float = 8.0
    min_stop: float = 20.0
    min_start: float = 20.0
    zero_rpm: bool = False
    rpm_sensor: str = ""
    rpm_calibration: List[RPMCalibrationPoint] = field(default_factory=list)


@dataclass
class SensorConfig:
    identifier: str
    alias: str


@dataclass
class DaemonConfig:
    """Top level configuration document."""

    update_interval_ms: int = 1000
    log_level: str = "INFO"
    log_file: Optional[str] = None
    csv_log: Optional[str] = None
    policy: str = "curve"
    script_path: Optional[str] = None
    policy_settings: Dict[str, Any] = field(default_factory=dict)
    hwmon_root: str = "/sys/class/hwmon"
    controls: List[ControlConfig] = field(default_factory=list)
    sensors: List[SensorConfig] = field(default_factory=list)

    def control_by_alias(self) -> Dict[str, ControlConfig]:
        return {c.alias: c for c in self.controls}

    def control_by_identifier(self) -> Dict[str, ControlConfig]:
        return {c.identifier: c for c in self.controls}

    def sensor_by_identifier(self) -> Dict[str, SensorConfig]:
        return {s.identifier: s for s in self.sensors}

    def control_identifiers(self) -> Set[str]:
        return {c.identifier for c in self.controls}

    def sensor_identifiers(self) -> Set[str]:
        return {s.identifier for s in self.sensors}

    def validate(self) -> None:
        if self.update_interval_ms <= 0:
            raise ConfigError("update_interval_ms must be positive")
        _check_unique("control alias", [c.alias for c in self.controls])
        _check_unique("control identifier", [c.identifier for c in self.controls])
        _check_unique("sensor alias", [s.alias for s in self.sensors])
        _check_unique("sensor identifier", [s.identifier for s in self.sensors])


def _check_unique(what: str, values: List[str]) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise ConfigError(f"Duplicate {what} '{value}'")
        seen.add(value)


def _require(entry: Dict[str, Any], key: str, kind: str) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{kind} entry is missing '{key}': {entry}")
    return value


def control_from_dict(entry: Dict[str, Any]) -> ControlConfig:
    defaults = ControlConfig(identifier="", alias="")
    try:
        calibration = [
            RPMCalibrationPoint(control=float(p["control"]), rpm=float(p["rpm"]))
            for p in entry.get("rpm_calibration", [])
        ]
        return ControlConfig(
            identifier=_require(entry, "identifier", "Control"),
            alias=_require(entry, "alias", "Control"),
            step_up=float(entry.get("step_up", defaults.step_up)),
            step_down=float(entry.get("step_down", defaults.step_down)),
            min_stop=float(entry.get("min_stop", defaults.min_stop)),
            min_start=float(entry.get("min_start", defaults.min_start)),
            zero_rpm=bool(entry.get("zero_rpm", defaults.zero_rpm)),
            rpm_sensor=str(entry.get("rpm_sensor") or ""),
            rpm_calibration=calibration,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid control entry {entry}: {exc}") from exc


def config_from_dict(data: Dict[str, Any]) -> DaemonConfig:
    if not isinstance(data, dict):
        raise ConfigError("Configuration document must be a JSON object")
    defaults = DaemonConfig()
    try:
        config = DaemonConfig(
            update_interval_ms=int(data.get("update_interval_ms", defaults.update_interval_ms)),
            log_level=str(data.get("log_level", defaults.log_level)),
            log_file=data.get("log_file"),
            csv_log=data.get("csv_log"),
            policy=str(data.get("policy", defaults.policy)),
            script_path=data.get("script_path"),
            policy_settings=dict(data.get("policy_settings") or {}),
            hwmon_root=str(data.get("hwmon_root", defaults.hwmon_root)),
            controls=[control_from_dict(c) for c in data.get("controls", [])],
            sensors=[
                SensorConfig(
                    identifier=_require(s, "identifier", "Sensor"),
                    alias=_require(s, "alias", "Sensor"),
                )
                for s in data.get("sensors", [])
            ],
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    config.validate()
    return config


def config_to_dict(config: DaemonConfig) -> Dict[str, Any]:
    return asdict(config)


class ConfigStore:
    """Loads and persists the JSON configuration document."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def load(self) -> DaemonConfig:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise ConfigError(f"Configuration file {self.path} not found") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Configuration file {self.path} is not valid JSON: {exc}") from exc
        config = config_from_dict(data)
        logger.info("Configuration loaded from %s", self.path)
        return config

    def save(self, config: DaemonConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ConfigError(f"Failed to save configuration to {self.path}: {exc}") from exc
        logger.info("Configuration saved to %s", self.path)
