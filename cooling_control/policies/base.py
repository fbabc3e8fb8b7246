from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Type

from ..config import DaemonConfig
from ..models import ControlTarget


class ControlPolicy(ABC):
    """Interface for pluggable control policies."""

    name: str = "base"
    description: str = ""

    def __init__(self, config: DaemonConfig):
        self.config = config

    @abstractmethod
    def calculate_controls(self, sensors: Mapping[str, Optional[float]]) -> List[ControlTarget]:
        """Return the targets for the controls this policy addresses."""

    def on_suspend(self) -> None:
        """Called before the platform is suspended."""

    def on_resume(self) -> None:
        """Called after the platform has resumed and controls were re-applied."""

    def close(self) -> None:
        pass


POLICY_REGISTRY: Dict[str, Type[ControlPolicy]] = {}


def register_policy(policy_cls: Type[ControlPolicy]) -> None:
    POLICY_REGISTRY[policy_cls.name] = policy_cls


def available_policies() -> List[str]:
    return sorted(POLICY_REGISTRY)


def build_policy(name: str, config: DaemonConfig) -> ControlPolicy:
    try:
        policy_cls = POLICY_REGISTRY[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown policy '{name}'. Available: {available_policies()}"
        ) from exc
    return policy_cls(config)
