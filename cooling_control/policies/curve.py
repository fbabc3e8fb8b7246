from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from ..config import DaemonConfig
from ..errors import ConfigError
from ..models import ControlTarget
from .base import ControlPolicy, register_policy

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK = 100.0


@dataclass
class FanCurve:
    """Piecewise-linear temperature -> percent (or rpm) mapping for one control."""

    control: str
    sensor: str
    points: List[Tuple[float, float]]
    mode: str = "percent"

    def evaluate(self, temperature: float) -> float:
        points = self.points
        if temperature <= points[0][0]:
            return points[0][1]
        if temperature >= points[-1][0]:
            return points[-1][1]
        for (t0, v0), (t1, v1) in zip(points, points[1:]):
            if t0 <= temperature <= t1:
                if t1 == t0:
                    return v0
                return v0 + (v1 - v0) * (temperature - t0) / (t1 - t0)
        return points[-1][1]


def _parse_curve(entry: Mapping) -> FanCurve:
    try:
        points = sorted((float(t), float(v)) for t, v in entry["points"])
        curve = FanCurve(
            control=str(entry["control"]),
            sensor=str(entry["sensor"]),
            points=points,
            mode=str(entry.get("mode", "percent")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid curve definition {entry}: {exc}") from exc
    if not curve.points:
        raise ConfigError(f"Curve for control '{curve.control}' has no points")
    if curve.mode not in ("percent", "rpm"):
        raise ConfigError(f"Curve for control '{curve.control}' has unknown mode '{curve.mode}'")
    return curve


class FanCurvePolicy(ControlPolicy):
    """Temperature curves from the configuration, highest demand wins per control.

    All curves on one control must share a mode. If any sensor feeding a
    control is unavailable, that control gets the fallback percent.
    """

    name = "curve"
    description = "Static temperature curves per control, max of all curves on a control"

    def __init__(self, config: DaemonConfig):
        super().__init__(config)
        settings = config.policy_settings
        self.fallback = float(settings.get("fallback", DEFAULT_FALLBACK))
        self.curves = [_parse_curve(entry) for entry in settings.get("curves", [])]
        self._modes: Dict[str, str] = {}
        for curve in self.curves:
            mode = self._modes.setdefault(curve.control, curve.mode)
            if mode != curve.mode:
                raise ConfigError(f"Curves for control '{curve.control}' mix percent and rpm modes")

    def calculate_controls(self, sensors: Mapping[str, Optional[float]]) -> List[ControlTarget]:
        demands: Dict[str, float] = {}
        failsafe = set()
        for curve in self.curves:
            temperature = sensors.get(curve.sensor)
            if temperature is None:
                logger.warning("Sensor %s unavailable, using fallback %s%% for %s", curve.sensor, self.fallback, curve.control)
                failsafe.add(curve.control)
                continue
            value = curve.evaluate(temperature)
            demands[curve.control] = max(value, demands.get(curve.control, value))

        targets = []
        for alias, mode in self._modes.items():
            if alias in failsafe:
                targets.append(ControlTarget.from_percent(alias, self.fallback))
            elif mode == "rpm":
                targets.append(ControlTarget.from_rpm(alias, demands[alias]))
            else:
                targets.append(ControlTarget.from_percent(alias, demands[alias]))
        return targets


register_policy(FanCurvePolicy)
