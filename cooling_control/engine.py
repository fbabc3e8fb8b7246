from __future__ import annotations

import logging
import queue
from typing import Dict, List, Optional

from .cancellation import Cancellation
from .data import CSVLogger
from .errors import CalibrationDataError, OperationCancelled
from .interpolation import convert_rpm_to_percent
from .models import ControlTarget, PowerEvent
from .platform import MonitoringPlatform
from .policies import ControlPolicy

logger = logging.getLogger(__name__)


class ControlLoop:
    """Steady-state runtime: sensors -> policy -> regulator -> hardware.

    Power events are posted from any thread and consumed by the loop, which
    waits on the event queue with the tick interval as timeout.
    """

    def __init__(
        self,
        platform: MonitoringPlatform,
        policy: ControlPolicy,
        cancellation: Optional[Cancellation] = None,
        csv_logger: Optional[CSVLogger] = None,
    ):
        self.platform = platform
        self.policy = policy
        self.cancellation = cancellation or Cancellation()
        self.csv_logger = csv_logger
        self.interval = platform.config.update_interval_ms / 1000.0
        self.suspended = False
        # SimpleQueue.put is reentrant, so signal handlers may post events
        self._events: "queue.SimpleQueue[Optional[PowerEvent]]" = queue.SimpleQueue()
        # None wakes the loop so it notices cancellation
        self.cancellation.on_cancel(lambda: self._events.put(None))

    def post_event(self, event: PowerEvent) -> None:
        logger.debug("PowerEvent: %s", event.value)
        self._events.put(event)

    def stop(self) -> None:
        self.cancellation.cancel()

    def _resolve_targets(self, targets: List[ControlTarget]) -> Dict[str, float]:
        controls = self.platform.config.control_by_alias()
        values: Dict[str, float] = {}
        for target in targets:
            if not target.is_rpm:
                values[target.alias] = target.percent
                continue
            control = controls.get(target.alias)
            if control is None:
                logger.error("Control %s not configured", target.alias)
                continue
            try:
                values[target.alias] = convert_rpm_to_percent(control.rpm_calibration, target.rpm)
            except CalibrationDataError as exc:
                logger.error("Cannot convert %s rpm for %s: %s", target.rpm, target.alias, exc)
        return values

    def tick(self) -> None:
        sensors = self.platform.get_sensor_values()
        targets = self.policy.calculate_controls(sensors)
        values = self._resolve_targets(targets)
        logger.debug("Control values: %s", values)
        self.platform.set_controls(values)
        if self.csv_logger is not None:
            self.csv_logger.log(sensors, self.platform.regulator.snapshot())

    def handle_event(self, event: PowerEvent) -> None:
        if event is PowerEvent.SUSPEND and not self.suspended:
            logger.info("System is suspending")
            self.policy.on_suspend()
            self.platform.suspend()
            self.suspended = True
        elif event is PowerEvent.RESUME and self.suspended:
            logger.info("System is resuming")
            self.platform.resume()
            self.policy.on_resume()
            self.suspended = False
        else:
            logger.debug("Ignoring power event %s (suspended=%s)", event.value, self.suspended)

    def _wait(self) -> None:
        self.cancellation.check()
        try:
            event = self._events.get(timeout=self.interval)
        except queue.Empty:
            return
        self.cancellation.check()
        if event is None:
            return
        try:
            self.handle_event(event)
        except Exception:
            logger.exception("Error handling power event %s", event.value)

    def run(self) -> None:
        logger.info("Control loop started (interval %.0f ms, policy %s)", self.interval * 1000, self.policy.name)
        try:
            while not self.cancellation.cancelled:
                if not self.suspended:
                    try:
                        self.tick()
                    except Exception:
                        logger.exception("Error in control loop")
                self._wait()
        except OperationCancelled:
            pass
        except Exception:
            logger.exception("Unexpected error in control loop")
            raise
        finally:
            self.shutdown()
        logger.info("Control loop stopped")

    def shutdown(self) -> None:
        try:
            self.platform.release_controls()
        finally:
            try:
                self.platform.close()
            finally:
                self.policy.close()
