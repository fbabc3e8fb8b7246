from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from .adapters import PlatformAdapter
from .config import DaemonConfig
from .regulator import ControlRegulator

logger = logging.getLogger(__name__)


class MonitoringPlatform:
    """Alias-level view of an adapter with regulated control writes.

    Owns the adapter handle and the regulator state for the configured
    controls. Sensor and control values are exposed by alias.
    """

    def __init__(self, config: DaemonConfig, adapter: PlatformAdapter):
        self.config = config
        self.adapter = adapter
        self._controls_by_alias = config.control_by_alias()
        self._controls_by_identifier = config.control_by_identifier()
        self._sensors_by_identifier = config.sensor_by_identifier()
        self.regulator = ControlRegulator(config.controls)
        self.regulator.reset(self.get_control_values())

    def get_sensor_values(self) -> Dict[str, Optional[float]]:
        values = self.adapter.get_sensor_values(self.config.sensor_identifiers())
        return {
            self._sensors_by_identifier[identifier].alias: value
            for identifier, value in values.items()
            if identifier in self._sensors_by_identifier
        }

    def get_control_values(self) -> Dict[str, Optional[float]]:
        values = self.adapter.get_control_values(self.config.control_identifiers())
        return {
            self._controls_by_identifier[identifier].alias: value
            for identifier, value in values.items()
            if identifier in self._controls_by_identifier
        }

    def set_controls(self, values: Mapping[str, float], force: bool = False) -> Dict[str, bool]:
        """Regulate ``values`` (alias -> percent) and apply the accepted subset."""
        accepted = self.regulator.regulate_batch(values, force)
        if not accepted:
            return {}

        # regulator state is updated before the write result is known
        by_identifier = {self._controls_by_alias[alias].identifier: value for alias, value in accepted.items()}
        result = self.adapter.set_controls(by_identifier)
        for identifier, ok in result.items():
            if not ok:
                logger.error("Failed to set control %s", identifier)
        return {
            self._controls_by_identifier[identifier].alias: ok
            for identifier, ok in result.items()
            if identifier in self._controls_by_identifier
        }

    def release_controls(self) -> Dict[str, bool]:
        result = self.adapter.release_controls(self.config.control_identifiers())
        for identifier, ok in result.items():
            if not ok:
                logger.error("Failed to release control %s", identifier)
        return result

    def list_all_sensors(self) -> None:
        self.adapter.list_all_sensors()

    def suspend(self) -> None:
        self.adapter.suspend()

    def resume(self) -> None:
        """Reopen the adapter, re-snapshot control state and reassert ownership."""
        self.adapter.resume()
        self.regulator.reset(self.get_control_values())
        snapshot = self.regulator.snapshot()
        logger.debug("Re-applying control values after resume: %s", snapshot)
        self.set_controls(snapshot, force=True)

    def close(self) -> None:
        self.adapter.close()
