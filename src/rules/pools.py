"""Threshold rules deciding whether a pool deserves a notification."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Optional

from common.models import AlertPriority, MarketSnapshot, PoolRecord

from .normalize import CanonicalMetrics

# Fee/TVL ratio tiers, in percent.
FEE_TVL_INSTANT_PCT = 20.0
FEE_TVL_HIGH_PCT = 7.0
FEE_TVL_STANDARD_PCT = 3.0

# APR tiers, in percent.
APR_INSTANT_PCT = 500.0
APR_HIGH_PCT = 100.0
APR_STANDARD_PCT = 20.0

# Short window volume must exceed this share of the 30 minute volume.
VOLUME_SURGE_DIVISOR = 3.0

MIN_ORGANIC_SCORE = 80.0
PRICE_DROP_PCT = 3.0

SUPPRESSED_TVL_FLOOR = "tvl_floor"
SUPPRESSED_NO_TRIGGER = "no_trigger"
SUPPRESSED_COOLDOWN = "cooldown"
SUPPRESSED_ORGANIC_SCORE = "organic_score"
SUPPRESSED_VOLATILITY = "volatility"


@dataclass
class PoolRuleConfig:
    """Operator supplied thresholds for the pool rules."""

    min_tvl_usd: float = 5000.0
    fee_tvl_threshold_percent: float = 5.0
    fee_threshold_usd: float = 2000.0


@dataclass(frozen=True)
class FirstPassResult:
    """Outcome of the cheap rules evaluated before any market data lookup."""

    should_alert: bool
    priority: AlertPriority = AlertPriority.STANDARD


@dataclass(frozen=True)
class AlertDecision:
    """Final verdict for a shortlisted pool."""

    pool_id: str
    priority: AlertPriority
    metrics: CanonicalMetrics
    snapshot: MarketSnapshot
    should_notify: bool
    suppressed_by: Optional[str] = None


@dataclass
class PoolAlert:
    """Presentation payload handed to the notification channel.

    ``holders`` is a display placeholder produced by
    :func:`synthetic_holder_count`; no data source provides a real holder
    count for these pools.
    """

    record: PoolRecord
    metrics: CanonicalMetrics
    snapshot: MarketSnapshot
    priority: AlertPriority
    holders: int
    fee_tvl_threshold_pct: float
    created_at: float = field(default_factory=time.time)

    @property
    def pool_id(self) -> str:
        return self.record.address


def evaluate_first_pass(metrics: CanonicalMetrics, config: PoolRuleConfig) -> FirstPassResult:
    """Apply the TVL floor, fee/TVL, APR and volume surge rules.

    A negative result means the pool is not worth a market data lookup.
    """

    if metrics.tvl_usd < config.min_tvl_usd:
        return FirstPassResult(should_alert=False)

    should_alert = False
    priority = AlertPriority.STANDARD

    ratio = metrics.fee_tvl_ratio_pct
    if ratio >= FEE_TVL_INSTANT_PCT:
        should_alert = True
        priority = AlertPriority.INSTANT_ALERT
    elif ratio >= FEE_TVL_HIGH_PCT:
        should_alert = True
        priority = AlertPriority.HIGH_PRIORITY
    elif ratio >= FEE_TVL_STANDARD_PCT or ratio >= config.fee_tvl_threshold_percent:
        should_alert = True

    apr = metrics.apr_pct
    if apr >= APR_INSTANT_PCT:
        should_alert = True
        priority = AlertPriority.INSTANT_ALERT
    elif apr >= APR_HIGH_PCT:
        should_alert = True
        if priority is not AlertPriority.INSTANT_ALERT:
            priority = AlertPriority.HIGH_PRIORITY
    elif apr >= APR_STANDARD_PCT:
        should_alert = True

    volume_5m = metrics.volume_5m_usd
    volume_30m = metrics.volume_30m_usd
    if volume_5m > 0 and volume_30m > 0 and volume_5m > volume_30m / VOLUME_SURGE_DIVISOR:
        should_alert = True

    return FirstPassResult(should_alert=should_alert, priority=priority)


def passes_organic_gate(metrics: CanonicalMetrics, snapshot: MarketSnapshot) -> bool:
    if snapshot.organic_score > MIN_ORGANIC_SCORE:
        return True
    return metrics.apr_pct >= APR_INSTANT_PCT


def passes_volatility_gate(metrics: CanonicalMetrics, snapshot: MarketSnapshot) -> bool:
    # A sharp drop only counts when a real fee signal backs it.
    if snapshot.price_change_5m <= -PRICE_DROP_PCT:
        return metrics.fee_tvl_ratio_pct >= FEE_TVL_STANDARD_PCT
    return True


def evaluate_second_pass(
    pool_id: str,
    metrics: CanonicalMetrics,
    snapshot: MarketSnapshot,
    first_pass: FirstPassResult,
    config: PoolRuleConfig,
    *,
    on_cooldown: bool = False,
) -> AlertDecision:
    """Combine every gate into the final notify/suppress decision."""

    suppressed_by: Optional[str] = None
    if metrics.tvl_usd < config.min_tvl_usd:
        suppressed_by = SUPPRESSED_TVL_FLOOR
    elif not first_pass.should_alert:
        suppressed_by = SUPPRESSED_NO_TRIGGER
    elif on_cooldown:
        suppressed_by = SUPPRESSED_COOLDOWN
    elif not passes_organic_gate(metrics, snapshot):
        suppressed_by = SUPPRESSED_ORGANIC_SCORE
    elif not passes_volatility_gate(metrics, snapshot):
        suppressed_by = SUPPRESSED_VOLATILITY

    return AlertDecision(
        pool_id=pool_id,
        priority=first_pass.priority,
        metrics=metrics,
        snapshot=snapshot,
        should_notify=suppressed_by is None,
        suppressed_by=suppressed_by,
    )


def synthetic_holder_count(tvl_usd: float, rng: random.Random | None = None) -> int:
    """Return a plausible looking holder count for display only.

    This is not a measurement. Holder data is not available from the pool or
    market sources, so the value is derived from TVL plus bounded noise.
    """

    generator = rng or random
    return int(max(tvl_usd, 0.0) // 1000) + generator.randint(0, 499) + 100


def build_pool_alert(
    record: PoolRecord,
    decision: AlertDecision,
    config: PoolRuleConfig,
    *,
    rng: random.Random | None = None,
    now: float | None = None,
) -> PoolAlert:
    return PoolAlert(
        record=record,
        metrics=decision.metrics,
        snapshot=decision.snapshot,
        priority=decision.priority,
        holders=synthetic_holder_count(decision.metrics.tvl_usd, rng),
        fee_tvl_threshold_pct=config.fee_tvl_threshold_percent,
        created_at=time.time() if now is None else now,
    )


__all__ = [
    "AlertDecision",
    "FirstPassResult",
    "PoolAlert",
    "PoolRuleConfig",
    "build_pool_alert",
    "evaluate_first_pass",
    "evaluate_second_pass",
    "passes_organic_gate",
    "passes_volatility_gate",
    "synthetic_holder_count",
]
