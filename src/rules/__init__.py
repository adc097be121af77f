"""Alert evaluation rules and business logic."""

from .cooldown import COOLDOWN_SECONDS, CooldownLedger
from .engine import CycleReport, PoolAlertEngine
from .normalize import CanonicalMetrics, as_percentage, normalize
from .pools import (
    AlertDecision,
    FirstPassResult,
    PoolAlert,
    PoolRuleConfig,
    build_pool_alert,
    evaluate_first_pass,
    evaluate_second_pass,
    synthetic_holder_count,
)

__all__ = [
    "AlertDecision",
    "COOLDOWN_SECONDS",
    "CanonicalMetrics",
    "CooldownLedger",
    "CycleReport",
    "FirstPassResult",
    "PoolAlert",
    "PoolAlertEngine",
    "PoolRuleConfig",
    "as_percentage",
    "build_pool_alert",
    "evaluate_first_pass",
    "evaluate_second_pass",
    "normalize",
    "synthetic_holder_count",
]
