"""Conversion of raw pool records into canonical numeric metrics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from common.models import PoolRecord
from common.numbers import safe_float


@dataclass(frozen=True)
class CanonicalMetrics:
    """Normalised pool metrics consumed by the rule evaluator.

    ``fee_tvl_ratio_pct`` is always expressed in percentage units (0-100).
    """

    tvl_usd: float = 0.0
    fees_30m_usd: float = 0.0
    volume_5m_usd: float = 0.0
    volume_30m_usd: float = 0.0
    fee_tvl_ratio_pct: float = 0.0
    apr_pct: float = 0.0
    base_fee_pct: float = 0.0
    current_price: float | None = None


def _window(values: Mapping[str, Any] | None, key: str) -> float:
    if not isinstance(values, Mapping):
        return 0.0
    return safe_float(values.get(key), 0.0)


def as_percentage(ratio: float) -> float:
    """Scale a ratio to percentage units.

    Values below 1 are treated as fractions and multiplied by 100; anything
    else is assumed to be a percentage already. A genuine 0.5% ratio is
    therefore read as 50%: the source carries no unit tag to tell them apart.
    """

    if ratio < 1:
        return ratio * 100.0
    return ratio


def normalize(record: PoolRecord) -> CanonicalMetrics:
    """Build :class:`CanonicalMetrics` from a raw pool record. Never raises."""

    # An empty or zero liquidity reading defers to ``tvl``.
    tvl_usd = safe_float(record.liquidity, 0.0) or safe_float(record.tvl, 0.0)

    return CanonicalMetrics(
        tvl_usd=tvl_usd,
        fees_30m_usd=_window(record.fees, "min_30"),
        volume_5m_usd=_window(record.volume, "min_5"),
        volume_30m_usd=_window(record.volume, "min_30"),
        fee_tvl_ratio_pct=as_percentage(_window(record.fee_tvl_ratio, "min_30")),
        apr_pct=safe_float(record.apr, 0.0),
        base_fee_pct=safe_float(record.base_fee_percentage, 0.0),
        current_price=safe_float(record.current_price),
    )


__all__ = ["CanonicalMetrics", "as_percentage", "normalize"]
