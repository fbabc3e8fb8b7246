"""
Linux hwmon adapter

Reads temperatures, fan tachometers and PWM duty cycles from
/sys/class/hwmon. Identifiers take the form ``<chip>/<attribute>``,
e.g. ``nct6775/pwm2``, ``nct6775/fan2_input`` or ``coretemp/temp1_input``.
The chip part may also be the hwmon directory name (``hwmon3``) when two
chips share a name.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Mapping, Optional, Set

from .base import DEFAULT_CONTROL_VALUE, PlatformAdapter

logger = logging.getLogger(__name__)

PWM_MAX = 255
PWM_ENABLE_MANUAL = "1"
PWM_ENABLE_AUTO = "2"

_PWM_RE = re.compile(r"^pwm\d+$")


class HwmonAdapter(PlatformAdapter):
    """Sensor/control access through the hwmon sysfs interface."""

    name = "hwmon"

    def __init__(self, root: str = "/sys/class/hwmon"):
        self.root = Path(root)
        self._chips: Dict[str, Path] = {}
        # identifier -> pwmN_enable mode found before we first took manual control
        self._saved_enable: Dict[str, str] = {}
        # identifiers currently in manual mode, forgotten on resume
        self._claimed: Set[str] = set()
        self._scan()

    def _scan(self) -> None:
        chips: Dict[str, Path] = {}
        for hwmon_dir in sorted(self.root.glob("hwmon*")):
            chips[hwmon_dir.name] = hwmon_dir
            chip_name = self._read(hwmon_dir / "name")
            if chip_name is None:
                continue
            if chip_name in chips:
                logger.warning("Duplicate hwmon chip %s at %s, address it as %s", chip_name, hwmon_dir, hwmon_dir.name)
                continue
            chips[chip_name] = hwmon_dir
        self._chips = chips
        logger.debug("Found hwmon chips: %s", sorted(chips))

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text().strip()
        except (IOError, OSError):
            return None

    def _write(self, path: Path, value: str) -> bool:
        try:
            path.write_text(value)
            return True
        except (IOError, OSError) as e:
            logger.error("Failed to write %s to %s: %s", value, path, e)
            return False

    def _resolve(self, identifier: str) -> Optional[Path]:
        chip, _, attribute = identifier.partition("/")
        chip_dir = self._chips.get(chip)
        if chip_dir is None or not attribute:
            return None
        return chip_dir / attribute

    def _read_value(self, identifier: str) -> Optional[float]:
        path = self._resolve(identifier)
        if path is None:
            return None
        raw = self._read(path)
        if raw is None:
            return None
        try:
            value = float(raw)
        except ValueError:
            return None
        if _PWM_RE.match(path.name):
            return value * 100.0 / PWM_MAX
        if path.name.startswith("temp") and path.name.endswith("_input"):
            return value / 1000.0
        return value

    def get_sensor_values(self, identifiers: Set[str]) -> Dict[str, Optional[float]]:
        return {identifier: self._read_value(identifier) for identifier in identifiers}

    def get_control_values(self, identifiers: Set[str]) -> Dict[str, Optional[float]]:
        return {identifier: self._read_value(identifier) for identifier in identifiers}

    def _claim(self, identifier: str, pwm_path: Path) -> bool:
        if identifier in self._claimed:
            return True
        enable_path = pwm_path.with_name(pwm_path.name + "_enable")
        if not enable_path.exists():
            self._saved_enable.setdefault(identifier, PWM_ENABLE_AUTO)
            self._claimed.add(identifier)
            return True
        current = self._read(enable_path) or PWM_ENABLE_AUTO
        if current != PWM_ENABLE_MANUAL and not self._write(enable_path, PWM_ENABLE_MANUAL):
            return False
        self._saved_enable.setdefault(identifier, current)
        self._claimed.add(identifier)
        return True

    def _release(self, identifier: str, pwm_path: Path) -> bool:
        self._claimed.discard(identifier)
        previous = self._saved_enable.pop(identifier, PWM_ENABLE_AUTO)
        enable_path = pwm_path.with_name(pwm_path.name + "_enable")
        if not enable_path.exists():
            return True
        if previous == PWM_ENABLE_MANUAL:
            previous = PWM_ENABLE_AUTO
        return self._write(enable_path, previous)

    def _set_control(self, identifier: str, percent: float) -> bool:
        path = self._resolve(identifier)
        if path is None or not _PWM_RE.match(path.name):
            logger.error("Control %s is not a hwmon pwm attribute", identifier)
            return False
        if percent == DEFAULT_CONTROL_VALUE:
            return self._release(identifier, path)
        if not self._claim(identifier, path):
            return False
        percent = max(0.0, min(100.0, percent))
        return self._write(path, str(int(round(percent * PWM_MAX / 100.0))))

    def set_controls(self, values: Mapping[str, float]) -> Dict[str, bool]:
        return {identifier: self._set_control(identifier, value) for identifier, value in values.items()}

    def list_all_sensors(self) -> None:
        seen = set()
        # chip names first, hwmonN aliases only for chips without a unique name
        for chip, chip_dir in sorted(self._chips.items(), key=lambda item: (item[0] == item[1].name, item[0])):
            if chip_dir in seen:
                continue
            seen.add(chip_dir)
            logger.info("Chip %s (%s)", chip, chip_dir)
            for attr in sorted(chip_dir.iterdir()):
                if attr.name.endswith("_input") or _PWM_RE.match(attr.name):
                    identifier = f"{chip}/{attr.name}"
                    logger.info("  %s = %s", identifier, self._read_value(identifier))

    def resume(self) -> None:
        # hwmonN numbering is not stable across suspend and firmware may
        # have put the pwm channels back into automatic mode
        logger.debug("Rescanning hwmon chips after resume")
        self._scan()
        self._claimed.clear()

    def close(self) -> None:
        self._chips = {}
