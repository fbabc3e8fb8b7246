from __future__ import annotations


class CoolingControlError(Exception):
    """Base class for all cooling control failures."""


class ConfigError(CoolingControlError):
    """Configuration could not be loaded, validated or persisted."""


class CalibrationDataError(CoolingControlError):
    """A calibration table cannot be used for RPM conversion."""


class NotCalibrated(CalibrationDataError):
    """The calibration table has fewer than two points."""


class UnsortedCalibrationData(CalibrationDataError):
    """The calibration table is not ascending by RPM."""


class CalibrationError(CoolingControlError):
    """A calibration phase failed; the whole run is aborted."""


class OperationCancelled(CoolingControlError):
    """Shutdown was requested while waiting."""
