from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

from .config import ControlConfig
from .models import ControlState

logger = logging.getLogger(__name__)

PERCENT_MIN = 0.0
PERCENT_MAX = 100.0


class ControlRegulator:
    """Turns proposed control values into values that are safe to apply.

    Keeps one ``ControlState`` per control alias. Each control is limited
    independently: first the per-tick step limits, then the start/stop
    hysteresis floors. Values equal to the last applied one are suppressed
    unless forced.
    """

    def __init__(self, controls: Iterable[ControlConfig]):
        self.controls: Dict[str, ControlConfig] = {c.alias: c for c in controls}
        self._states: Dict[str, ControlState] = {}

    def reset(self, current_values: Mapping[str, Optional[float]]) -> None:
        """Discard all state and re-seed it from live control readings."""
        self._states = {
            alias: ControlState(previous_value=float(value), is_running=value != 0)
            for alias, value in current_values.items()
            if value is not None
        }

    def state(self, alias: str) -> Optional[ControlState]:
        return self._states.get(alias)

    def snapshot(self) -> Dict[str, float]:
        return {alias: s.previous_value for alias, s in self._states.items()}

    def _limit_step(self, control: ControlConfig, previous: float, value: float) -> float:
        if value > previous and control.step_up != 0 and value > previous + control.step_up:
            logger.debug("Limited %s increase to %s%% (step_up %s%%)", control.alias, previous + control.step_up, control.step_up)
            return previous + control.step_up
        if value < previous and control.step_down != 0 and value < previous - control.step_down:
            logger.debug("Limited %s decrease to %s%% (step_down %s%%)", control.alias, previous - control.step_down, control.step_down)
            return previous - control.step_down
        return value

    def _apply_hysteresis(self, control: ControlConfig, running: bool, value: float) -> float:
        if value <= 0:
            return value
        if running and value < control.min_stop:
            logger.debug("Adjusted %s to min stop %s%%", control.alias, control.min_stop)
            return control.min_stop
        if not running and value < control.min_start:
            logger.debug("Adjusted %s to min start %s%%", control.alias, control.min_start)
            return control.min_start
        return value

    def regulate(self, alias: str, proposed: float, force: bool = False) -> Optional[float]:
        """Return the value to send for ``alias`` or ``None`` to skip it this tick."""
        control = self.controls.get(alias)
        if control is None:
            logger.error("Control %s not configured", alias)
            return None

        state = self._states.get(alias)
        # clamp to the hardware range, 0 stays the stop command
        value = max(PERCENT_MIN, min(PERCENT_MAX, float(proposed)))
        if state is None:
            # never observed: no step reference, treat as stopped
            value = self._apply_hysteresis(control, False, value)
        else:
            value = self._limit_step(control, state.previous_value, value)
            value = self._apply_hysteresis(control, state.is_running, value)
            if not force and value == state.previous_value:
                return None

        self._states[alias] = ControlState(previous_value=value, is_running=value > 0)
        return value

    def regulate_batch(self, proposed: Mapping[str, float], force: bool = False) -> Dict[str, float]:
        accepted = {}
        for alias, value in proposed.items():
            regulated = self.regulate(alias, value, force)
            if regulated is not None:
                accepted[alias] = regulated
        return accepted
