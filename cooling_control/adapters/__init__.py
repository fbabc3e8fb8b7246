from .base import DEFAULT_CONTROL_VALUE, PlatformAdapter
from .hwmon import HwmonAdapter
from .simulated import SimulatedAdapter, SimulatedFan

__all__ = [
    "DEFAULT_CONTROL_VALUE",
    "HwmonAdapter",
    "PlatformAdapter",
    "SimulatedAdapter",
    "SimulatedFan",
]
