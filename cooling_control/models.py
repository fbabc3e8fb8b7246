from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class ControlTarget:
    """Policy output for one control: an explicit percent or a target RPM, never both."""

    alias: str
    percent: Optional[float] = None
    rpm: Optional[float] = None

    def __post_init__(self):
        if (self.percent is None) == (self.rpm is None):
            raise ValueError(f"Control target for '{self.alias}' needs exactly one of percent or rpm")

    @classmethod
    def from_percent(cls, alias: str, percent: float) -> "ControlTarget":
        return cls(alias=alias, percent=float(percent))

    @classmethod
    def from_rpm(cls, alias: str, rpm: float) -> "ControlTarget":
        return cls(alias=alias, rpm=float(rpm))

    @property
    def is_rpm(self) -> bool:
        return self.rpm is not None


@dataclass
class ControlState:
    """Runtime state the regulator keeps for one control."""

    previous_value: float
    is_running: bool


class PowerEvent(Enum):
    SUSPEND = "suspend"
    RESUME = "resume"
    STATUS_CHANGE = "status_change"
