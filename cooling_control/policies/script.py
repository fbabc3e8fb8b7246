from __future__ import annotations

import importlib.util
import logging
from typing import List, Mapping, Optional

from ..config import DaemonConfig
from ..errors import ConfigError
from ..models import ControlTarget
from .base import ControlPolicy, register_policy

logger = logging.getLogger(__name__)


class ScriptPolicy(ControlPolicy):
    """Delegates to a user supplied Python file.

    The script must define ``calculate_controls(sensors)`` returning a list of
    ``{"alias": ..., "value": percent}`` or ``{"alias": ..., "rpm": rpm}``
    entries. ``initialize(control_config)``, ``on_suspend()`` and
    ``on_resume()`` are called when present.
    """

    name = "script"
    description = "User Python script exposing calculate_controls(sensors)"

    def __init__(self, config: DaemonConfig):
        super().__init__(config)
        if not config.script_path:
            raise ConfigError("The script policy requires 'script_path'")
        self.module = self._load(config.script_path)

        self._calculate = getattr(self.module, "calculate_controls", None)
        if not callable(self._calculate):
            raise ConfigError(f"Script {config.script_path} does not define calculate_controls(sensors)")
        self._on_suspend = getattr(self.module, "on_suspend", None)
        self._on_resume = getattr(self.module, "on_resume", None)

        initialize = getattr(self.module, "initialize", None)
        if callable(initialize):
            logger.debug("Calling script initialize")
            initialize(config.control_by_alias())

    @staticmethod
    def _load(path: str):
        spec = importlib.util.spec_from_file_location("cooling_control_script", path)
        if spec is None or spec.loader is None:
            raise ConfigError(f"Cannot load control script {path}")
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except FileNotFoundError as exc:
            raise ConfigError(f"Control script {path} not found") from exc
        return module

    def calculate_controls(self, sensors: Mapping[str, Optional[float]]) -> List[ControlTarget]:
        logger.debug("Sensor values: %s", dict(sensors))
        result = self._calculate(dict(sensors))
        if not isinstance(result, (list, tuple)):
            raise TypeError("calculate_controls did not return a list")

        targets = []
        for index, entry in enumerate(result):
            if not isinstance(entry, Mapping):
                logger.error("Invalid script result entry %s: %r", index, entry)
                continue
            alias = entry.get("alias")
            if not isinstance(alias, str):
                logger.error("Script result entry %s is missing 'alias'", index)
                continue
            value, rpm = entry.get("value"), entry.get("rpm")
            if (value is None) == (rpm is None):
                logger.error("Script result for %s must set exactly one of 'value' or 'rpm'", alias)
                continue
            try:
                target = ControlTarget.from_percent(alias, value) if value is not None else ControlTarget.from_rpm(alias, rpm)
            except (TypeError, ValueError):
                logger.error("Script result for %s is not numeric: %r", alias, entry)
                continue
            targets.append(target)

        logger.debug("Control targets: %s", targets)
        return targets

    def on_suspend(self) -> None:
        if callable(self._on_suspend):
            logger.debug("Calling script on_suspend")
            self._on_suspend()

    def on_resume(self) -> None:
        if callable(self._on_resume):
            logger.debug("Calling script on_resume")
            self._on_resume()


register_policy(ScriptPolicy)
