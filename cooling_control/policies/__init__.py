from .base import ControlPolicy, available_policies, build_policy, register_policy
from .curve import FanCurvePolicy
from .script import ScriptPolicy

DEFAULT_POLICY = FanCurvePolicy.name

__all__ = [
    "ControlPolicy",
    "available_policies",
    "build_policy",
    "register_policy",
    "FanCurvePolicy",
    "ScriptPolicy",
    "DEFAULT_POLICY",
]
