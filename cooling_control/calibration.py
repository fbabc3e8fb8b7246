"""
Fan calibration

Drives one control at a time through a fixed probing sequence to find the
lowest duty cycle that starts the fan (min_start), the lowest duty cycle
that keeps it spinning (min_stop) and the duty cycle -> RPM curve.
All delays are hardware settling times and are not configurable.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Set

from .adapters import PlatformAdapter
from .cancellation import Cancellation
from .config import ConfigStore, ControlConfig, DaemonConfig, RPMCalibrationPoint
from .errors import CalibrationError, OperationCancelled
from .interpolation import is_sorted_by_rpm

logger = logging.getLogger(__name__)

STOP_POLL_SECONDS = 1.0
STOP_POLL_ATTEMPTS = 10
START_SETTLE_SECONDS = 2.0
STABLE_SETTLE_SECONDS = 6.0
CURVE_SETTLE_FULL_SECONDS = 10.0
CURVE_SETTLE_SECONDS = 6.0
CURVE_SAMPLES = 10
CURVE_SAMPLE_INTERVAL_SECONDS = 0.5
CURVE_STEP = 10


class RPMCalibrator:
    """Unregulated single-control access for calibration, addressed by alias."""

    def __init__(self, config: DaemonConfig, adapter: PlatformAdapter):
        self.adapter = adapter
        self._controls = config.control_by_alias()

    def control(self, alias: str) -> ControlConfig:
        control = self._controls.get(alias)
        if control is None:
            raise CalibrationError(f"Control {alias} not configured")
        return control

    def get_control_value(self, alias: str) -> float:
        control = self.control(alias)
        value = self.adapter.get_control_values({control.identifier}).get(control.identifier)
        if value is None:
            raise CalibrationError(f"Failed to read control value for {alias}")
        return value

    def get_rpm(self, alias: str) -> float:
        control = self.control(alias)
        if not control.rpm_sensor:
            raise CalibrationError(f"Control {alias} has no rpm_sensor configured")
        value = self.adapter.get_sensor_values({control.rpm_sensor}).get(control.rpm_sensor)
        if value is None:
            raise CalibrationError(f"Failed to read rpm sensor {control.rpm_sensor} for {alias}")
        return value

    def set_control(self, alias: str, percent: float) -> None:
        control = self.control(alias)
        result = self.adapter.set_controls({control.identifier: percent})
        if not result.get(control.identifier, False):
            raise CalibrationError(f"Failed to set control {alias} to {percent}%")

    def release_control(self, alias: str) -> bool:
        control = self._controls.get(alias)
        if control is None:
            return False
        result = self.adapter.release_controls({control.identifier})
        if not result.get(control.identifier, False):
            logger.error("Failed to release control %s", alias)
            return False
        return True


class CalibrationEngine:
    """Sequential calibration of one or more controls.

    Any failure aborts the whole run: nothing is persisted and every control
    touched so far is released.
    """

    def __init__(
        self,
        config: DaemonConfig,
        adapter: PlatformAdapter,
        store: Optional[ConfigStore] = None,
        cancellation: Optional[Cancellation] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self.adapter = adapter
        self.store = store
        self.cancellation = cancellation or Cancellation()
        self.sleep = sleep or self.cancellation.sleep
        self.calibrator = RPMCalibrator(config, adapter)
        self._claimed: Set[str] = set()

    def _wait(self, seconds: float) -> None:
        self.cancellation.check()
        self.sleep(seconds)
        self.cancellation.check()

    def _set(self, alias: str, percent: float) -> None:
        self._claimed.add(alias)
        self.calibrator.set_control(alias, percent)

    def stop_control(self, alias: str) -> None:
        self._set(alias, 0)
        for _ in range(STOP_POLL_ATTEMPTS):
            self._wait(STOP_POLL_SECONDS)
            if self.calibrator.get_rpm(alias) == 0:
                return
        logger.warning("Control %s still reports rpm after %d polls, assuming stopped", alias, STOP_POLL_ATTEMPTS)

    def find_min_start(self, alias: str) -> float:
        self.stop_control(alias)
        for candidate in range(0, 101):
            self._set(alias, candidate)
            self._wait(START_SETTLE_SECONDS)
            rpm = self.calibrator.get_rpm(alias)
            if rpm <= 0:
                continue

            # confirm from a standstill
            self.stop_control(alias)
            self._set(alias, candidate)
            self._wait(STABLE_SETTLE_SECONDS)
            stable_rpm = self.calibrator.get_rpm(alias)
            if stable_rpm > 0:
                logger.info("Control %s started at %d%% (%s rpm)", alias, candidate, stable_rpm)
                return float(candidate)
            logger.info("Control %s started at %d%% (%s rpm) but was not stable", alias, candidate, rpm)

        raise CalibrationError(f"Control {alias} failed to start")

    def find_min_stop(self, alias: str) -> float:
        current = int(round(self.calibrator.get_control_value(alias)))
        for candidate in range(current, -1, -1):
            self._set(alias, candidate)
            self._wait(STABLE_SETTLE_SECONDS)
            rpm = self.calibrator.get_rpm(alias)
            if rpm == 0:
                logger.info("Control %s stopped at %d%%", alias, candidate)
                return float(candidate + 1)
        logger.info("Control %s did not stop", alias)
        return 0.0

    def _average_rpm(self, alias: str) -> float:
        total = 0.0
        for _ in range(CURVE_SAMPLES):
            rpm = self.calibrator.get_rpm(alias)
            if rpm == 0:
                return 0.0
            total += rpm
            self._wait(CURVE_SAMPLE_INTERVAL_SECONDS)
        return total / CURVE_SAMPLES

    def calibrate_rpm_curve(self, alias: str) -> List[RPMCalibrationPoint]:
        points: List[RPMCalibrationPoint] = []
        for candidate in range(100, -1, -CURVE_STEP):
            self._set(alias, candidate)
            self._wait(CURVE_SETTLE_FULL_SECONDS if candidate == 100 else CURVE_SETTLE_SECONDS)
            rpm = float(round(self._average_rpm(alias)))
            logger.info("Control %s %d%% => %s rpm", alias, candidate, rpm)
            points.insert(0, RPMCalibrationPoint(control=float(candidate), rpm=rpm))

        if not is_sorted_by_rpm(points):
            raise CalibrationError(
                f"Measured rpm curve for {alias} is not monotonic: "
                + ", ".join(f"{p.control:g}%={p.rpm:g}" for p in points)
            )
        return points

    def calibrate_control(self, alias: str) -> ControlConfig:
        """Run all three phases for ``alias`` and return an updated copy of its config."""
        control = self.calibrator.control(alias)
        logger.info("Calibrating control %s", alias)
        min_start = self.find_min_start(alias)
        min_stop = self.find_min_stop(alias)
        curve = self.calibrate_rpm_curve(alias)
        return replace(control, min_start=min_start, min_stop=min_stop, rpm_calibration=curve)

    def run(self, aliases: Optional[Iterable[str]] = None) -> bool:
        """Calibrate ``aliases`` (all controls when omitted) and persist the results.

        Returns True when every control was calibrated and saved, False when
        the run was aborted. Cancellation releases the claimed controls and
        re-raises ``OperationCancelled``; nothing is persisted.
        """
        aliases = list(aliases) if aliases is not None else [c.alias for c in self.config.controls]
        results: List[ControlConfig] = []
        try:
            for alias in aliases:
                results.append(self.calibrate_control(alias))
        except OperationCancelled:
            logger.info("Calibration cancelled")
            raise
        except CalibrationError as exc:
            logger.error("Calibration aborted: %s", exc)
            return False
        except Exception:
            logger.exception("Unexpected error during calibration")
            return False
        finally:
            self.release()

        by_alias = {c.alias: c for c in results}
        self.config.controls = [by_alias.get(c.alias, c) for c in self.config.controls]
        if self.store is not None:
            self.store.save(self.config)
        return True

    def release(self) -> None:
        for alias in sorted(self._claimed):
            self.calibrator.release_control(alias)
        self._claimed.clear()
