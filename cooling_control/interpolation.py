"""RPM to duty cycle conversion using a measured calibration table."""
from __future__ import annotations

from typing import Sequence

from .config import RPMCalibrationPoint
from .errors import NotCalibrated, UnsortedCalibrationData


def is_sorted_by_rpm(calibration: Sequence[RPMCalibrationPoint]) -> bool:
    return all(lower.rpm <= upper.rpm for lower, upper in zip(calibration, calibration[1:]))


def convert_rpm_to_percent(calibration: Sequence[RPMCalibrationPoint], target_rpm: float) -> float:
    """Linearly interpolate the control percent that yields ``target_rpm``.

    Targets outside the measured range clamp to the first or last point's
    control value. Raises ``NotCalibrated`` for tables with fewer than two
    points and ``UnsortedCalibrationData`` when the table is not ascending by
    RPM.
    """
    if len(calibration) < 2:
        raise NotCalibrated(f"Calibration table has {len(calibration)} point(s), at least 2 required")
    if not is_sorted_by_rpm(calibration):
        raise UnsortedCalibrationData("Calibration table is not sorted ascending by rpm")

    first, last = calibration[0], calibration[-1]
    if target_rpm < first.rpm:
        return first.control
    if target_rpm > last.rpm:
        return last.control

    for lower, upper in zip(calibration, calibration[1:]):
        if lower.rpm <= target_rpm <= upper.rpm:
            if upper.rpm == lower.rpm:
                return lower.control
            ratio = (target_rpm - lower.rpm) / (upper.rpm - lower.rpm)
            return lower.control + (upper.control - lower.control) * ratio

    raise UnsortedCalibrationData(
        f"Calibration table is not sorted by rpm, cannot place {target_rpm} rpm"
    )
