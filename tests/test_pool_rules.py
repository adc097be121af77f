"""Tests for the first and second pass pool rules."""

from __future__ import annotations

import random

import pytest

from common.models import AlertPriority, MarketSnapshot
from rules import (
    CanonicalMetrics,
    FirstPassResult,
    PoolRuleConfig,
    evaluate_first_pass,
    evaluate_second_pass,
    synthetic_holder_count,
)

CONFIG = PoolRuleConfig(min_tvl_usd=5000.0, fee_tvl_threshold_percent=5.0)


def metrics(**overrides) -> CanonicalMetrics:
    values = {"tvl_usd": 10_000.0}
    values.update(overrides)
    return CanonicalMetrics(**values)


def snapshot(organic: float = 90.0, change: float = 0.0) -> MarketSnapshot:
    return MarketSnapshot(
        price_change_5m=change, market_cap=1_000_000.0, organic_score=organic, source="dexscreener"
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"fee_tvl_ratio_pct": 99.0},
        {"apr_pct": 10_000.0},
        {"volume_5m_usd": 1_000_000.0, "volume_30m_usd": 1_000_000.0},
        {"fee_tvl_ratio_pct": 25.0, "apr_pct": 600.0},
    ],
)
def test_tvl_floor_blocks_everything(overrides) -> None:
    result = evaluate_first_pass(metrics(tvl_usd=3000.0, **overrides), CONFIG)
    assert result.should_alert is False


@pytest.mark.parametrize(
    ("ratio", "should_alert", "priority"),
    [
        (25.0, True, AlertPriority.INSTANT_ALERT),
        (20.0, True, AlertPriority.INSTANT_ALERT),
        (7.0, True, AlertPriority.HIGH_PRIORITY),
        (3.0, True, AlertPriority.STANDARD),
        (2.9, False, AlertPriority.STANDARD),
    ],
)
def test_fee_tvl_tiers(ratio: float, should_alert: bool, priority: AlertPriority) -> None:
    result = evaluate_first_pass(metrics(fee_tvl_ratio_pct=ratio), CONFIG)
    assert result.should_alert is should_alert
    assert result.priority is priority


def test_configured_threshold_below_three_triggers_standard() -> None:
    config = PoolRuleConfig(min_tvl_usd=5000.0, fee_tvl_threshold_percent=2.0)
    result = evaluate_first_pass(metrics(fee_tvl_ratio_pct=2.5), config)
    assert result == FirstPassResult(should_alert=True, priority=AlertPriority.STANDARD)


@pytest.mark.parametrize(
    ("apr", "ratio", "priority"),
    [
        (500.0, 0.0, AlertPriority.INSTANT_ALERT),
        (500.0, 8.0, AlertPriority.INSTANT_ALERT),
        (150.0, 0.0, AlertPriority.HIGH_PRIORITY),
        (150.0, 3.5, AlertPriority.HIGH_PRIORITY),
        (150.0, 21.0, AlertPriority.INSTANT_ALERT),
        (25.0, 0.0, AlertPriority.STANDARD),
        (25.0, 8.0, AlertPriority.HIGH_PRIORITY),
    ],
)
def test_apr_tiers_never_downgrade(apr: float, ratio: float, priority: AlertPriority) -> None:
    result = evaluate_first_pass(metrics(apr_pct=apr, fee_tvl_ratio_pct=ratio), CONFIG)
    assert result.should_alert is True
    assert result.priority is priority


def test_apr_below_twenty_alone_does_not_alert() -> None:
    assert evaluate_first_pass(metrics(apr_pct=19.9), CONFIG).should_alert is False


def test_volume_surge_sets_flag_without_tier() -> None:
    result = evaluate_first_pass(metrics(volume_5m_usd=400.0, volume_30m_usd=900.0), CONFIG)
    assert result == FirstPassResult(should_alert=True, priority=AlertPriority.STANDARD)


def test_volume_surge_needs_both_windows_and_ratio() -> None:
    assert not evaluate_first_pass(metrics(volume_5m_usd=300.0, volume_30m_usd=900.0), CONFIG).should_alert
    assert not evaluate_first_pass(metrics(volume_5m_usd=500.0, volume_30m_usd=0.0), CONFIG).should_alert


def test_organic_gate_suppresses_low_score() -> None:
    m = metrics(fee_tvl_ratio_pct=5.0, apr_pct=10.0)
    decision = evaluate_second_pass(
        "pool", m, snapshot(organic=50.0), evaluate_first_pass(m, CONFIG), CONFIG
    )
    assert decision.should_notify is False
    assert decision.suppressed_by == "organic_score"


def test_organic_gate_boundary_is_inclusive() -> None:
    m = metrics(fee_tvl_ratio_pct=5.0)
    first = evaluate_first_pass(m, CONFIG)
    assert not evaluate_second_pass("pool", m, snapshot(organic=80.0), first, CONFIG).should_notify
    assert evaluate_second_pass("pool", m, snapshot(organic=80.1), first, CONFIG).should_notify


def test_extreme_apr_overrides_organic_gate() -> None:
    m = metrics(apr_pct=500.0)
    decision = evaluate_second_pass(
        "pool", m, snapshot(organic=50.0), evaluate_first_pass(m, CONFIG), CONFIG
    )
    assert decision.should_notify is True
    assert decision.priority is AlertPriority.INSTANT_ALERT


def test_price_drop_without_fee_signal_is_dampened() -> None:
    m = metrics(fee_tvl_ratio_pct=1.0, apr_pct=50.0)
    decision = evaluate_second_pass(
        "pool", m, snapshot(change=-4.0), evaluate_first_pass(m, CONFIG), CONFIG
    )
    assert decision.should_notify is False
    assert decision.suppressed_by == "volatility"


@pytest.mark.parametrize(
    ("ratio", "change"),
    [(5.0, -4.0), (1.0, 4.0), (1.0, -2.9)],
)
def test_volatility_rule_leaves_other_moves_alone(ratio: float, change: float) -> None:
    m = metrics(fee_tvl_ratio_pct=ratio, apr_pct=50.0)
    decision = evaluate_second_pass(
        "pool", m, snapshot(change=change), evaluate_first_pass(m, CONFIG), CONFIG
    )
    assert decision.should_notify is True


def test_cooldown_and_missing_trigger_suppress() -> None:
    m = metrics(fee_tvl_ratio_pct=10.0)
    first = evaluate_first_pass(m, CONFIG)
    on_cooldown = evaluate_second_pass("pool", m, snapshot(), first, CONFIG, on_cooldown=True)
    assert on_cooldown.suppressed_by == "cooldown"

    quiet = metrics()
    no_trigger = evaluate_second_pass(
        "pool", quiet, snapshot(), evaluate_first_pass(quiet, CONFIG), CONFIG
    )
    assert no_trigger.suppressed_by == "no_trigger"


def test_end_to_end_instant_alert() -> None:
    m = metrics(tvl_usd=10_000.0, fee_tvl_ratio_pct=22.0, apr_pct=50.0)
    first = evaluate_first_pass(m, CONFIG)
    decision = evaluate_second_pass("pool-x", m, snapshot(organic=90.0, change=1.0), first, CONFIG)

    assert decision.should_notify is True
    assert decision.priority is AlertPriority.INSTANT_ALERT
    assert decision.suppressed_by is None
    assert decision.pool_id == "pool-x"


def test_end_to_end_below_floor_never_alerts() -> None:
    m = metrics(tvl_usd=3000.0, fee_tvl_ratio_pct=99.0)
    first = evaluate_first_pass(m, CONFIG)
    decision = evaluate_second_pass("pool-y", m, snapshot(), first, CONFIG)

    assert first.should_alert is False
    assert decision.should_notify is False
    assert decision.suppressed_by == "tvl_floor"


def test_synthetic_holder_count_is_bounded() -> None:
    rng = random.Random(7)
    for _ in range(50):
        holders = synthetic_holder_count(25_000.0, rng)
        assert 125 <= holders <= 624
    assert synthetic_holder_count(-10.0, random.Random(1)) >= 100
