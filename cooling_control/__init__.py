from .calibration import CalibrationEngine, RPMCalibrator
from .cancellation import Cancellation
from .config import ConfigStore, ControlConfig, DaemonConfig, RPMCalibrationPoint, SensorConfig
from .data import CSVLogger, calibration_to_frame, format_calibration
from .engine import ControlLoop
from .errors import (
    CalibrationDataError,
    CalibrationError,
    ConfigError,
    CoolingControlError,
    NotCalibrated,
    OperationCancelled,
    UnsortedCalibrationData,
)
from .interpolation import convert_rpm_to_percent
from .models import ControlState, ControlTarget, PowerEvent
from .platform import MonitoringPlatform
from .policies import (
    DEFAULT_POLICY,
    FanCurvePolicy,
    ScriptPolicy,
    available_policies,
    build_policy,
    register_policy,
)
from .regulator import ControlRegulator

__all__ = [
    "CSVLogger",
    "CalibrationDataError",
    "CalibrationEngine",
    "CalibrationError",
    "Cancellation",
    "ConfigError",
    "ConfigStore",
    "ControlConfig",
    "ControlLoop",
    "ControlRegulator",
    "ControlState",
    "ControlTarget",
    "CoolingControlError",
    "DEFAULT_POLICY",
    "DaemonConfig",
    "FanCurvePolicy",
    "MonitoringPlatform",
    "NotCalibrated",
    "OperationCancelled",
    "PowerEvent",
    "RPMCalibrationPoint",
    "RPMCalibrator",
    "ScriptPolicy",
    "SensorConfig",
    "UnsortedCalibrationData",
    "available_policies",
    "build_policy",
    "calibration_to_frame",
    "convert_rpm_to_percent",
    "format_calibration",
    "register_policy",
]
