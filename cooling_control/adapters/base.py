from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional, Set

# Routed through set_controls, returns the control to its default/unmanaged mode.
DEFAULT_CONTROL_VALUE = -9999.0


class PlatformAdapter(ABC):
    """Flat identifier -> value access to hardware sensors and controls.

    ``None`` means the value is unavailable right now, which is distinct from 0.
    """

    name: str = "base"

    @abstractmethod
    def get_sensor_values(self, identifiers: Set[str]) -> Dict[str, Optional[float]]:
        """Read the given sensors."""

    @abstractmethod
    def get_control_values(self, identifiers: Set[str]) -> Dict[str, Optional[float]]:
        """Read the current percent of the given controls."""

    @abstractmethod
    def set_controls(self, values: Mapping[str, float]) -> Dict[str, bool]:
        """Apply percents, returning per-identifier success."""

    def release_controls(self, identifiers: Set[str]) -> Dict[str, bool]:
        return self.set_controls({identifier: DEFAULT_CONTROL_VALUE for identifier in identifiers})

    @abstractmethod
    def list_all_sensors(self) -> None:
        """Log every sensor and control the platform exposes."""

    def suspend(self) -> None:
        pass

    def resume(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
