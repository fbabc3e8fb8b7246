from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Set

from ..config import DaemonConfig
from .base import DEFAULT_CONTROL_VALUE, PlatformAdapter

logger = logging.getLogger(__name__)


@dataclass
class SimulatedFan:
    """A fan that needs ``start_percent`` to spin up and stalls below ``stop_percent``."""

    control: str
    tach: str
    start_percent: float = 30.0
    stop_percent: float = 20.0
    max_rpm: float = 2000.0
    default_percent: float = 50.0
    percent: float = 50.0
    spinning: bool = True

    @property
    def rpm(self) -> float:
        if not self.spinning:
            return 0.0
        return round(self.max_rpm * self.percent / 100.0)

    def set(self, percent: float) -> None:
        self.percent = max(0.0, min(100.0, percent))
        if self.spinning:
            self.spinning = self.percent >= self.stop_percent
        else:
            self.spinning = self.percent >= self.start_percent


class SimulatedAdapter(PlatformAdapter):
    """In-memory platform for dry runs; fans react instantly to duty changes."""

    name = "simulated"

    def __init__(self, fans: Iterable[SimulatedFan], temperatures: Optional[Mapping[str, float]] = None):
        self.fans: Dict[str, SimulatedFan] = {fan.control: fan for fan in fans}
        self.temperatures: Dict[str, float] = dict(temperatures or {})
        self.suspended = False

    @classmethod
    def from_config(cls, config: DaemonConfig, temperature: float = 45.0) -> "SimulatedAdapter":
        fans = [
            SimulatedFan(control=c.identifier, tach=c.rpm_sensor or f"{c.identifier}:rpm")
            for c in config.controls
        ]
        tachs = {fan.tach for fan in fans}
        temperatures = {s.identifier: temperature for s in config.sensors if s.identifier not in tachs}
        return cls(fans, temperatures)

    def _sensor(self, identifier: str) -> Optional[float]:
        if self.suspended:
            return None
        for fan in self.fans.values():
            if fan.tach == identifier:
                return fan.rpm
        return self.temperatures.get(identifier)

    def get_sensor_values(self, identifiers: Set[str]) -> Dict[str, Optional[float]]:
        return {identifier: self._sensor(identifier) for identifier in identifiers}

    def get_control_values(self, identifiers: Set[str]) -> Dict[str, Optional[float]]:
        result: Dict[str, Optional[float]] = {}
        for identifier in identifiers:
            fan = self.fans.get(identifier)
            result[identifier] = None if fan is None or self.suspended else fan.percent
        return result

    def set_controls(self, values: Mapping[str, float]) -> Dict[str, bool]:
        result = {}
        for identifier, value in values.items():
            fan = self.fans.get(identifier)
            if fan is None or self.suspended:
                result[identifier] = False
                continue
            fan.set(fan.default_percent if value == DEFAULT_CONTROL_VALUE else value)
            logger.debug("[SIM] %s -> %s%% (%s rpm)", identifier, fan.percent, fan.rpm)
            result[identifier] = True
        return result

    def list_all_sensors(self) -> None:
        for fan in self.fans.values():
            logger.info("  %s = %s%%, %s = %s rpm", fan.control, fan.percent, fan.tach, fan.rpm)
        for identifier, value in sorted(self.temperatures.items()):
            logger.info("  %s = %s", identifier, value)

    def suspend(self) -> None:
        self.suspended = True

    def resume(self) -> None:
        self.suspended = False
