"""DexScreener market data lookups for shortlisted pools."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import aiohttp

from common.models import NEUTRAL_ORGANIC_SCORE, MarketSnapshot
from common.numbers import safe_float

from .base import HttpJsonClient, MarketDataSource, as_mapping

logger = logging.getLogger(__name__)

TOKENS_ENDPOINT = "https://api.dexscreener.com/latest/dex/tokens"

# Below this many buys+sells the skew is noise and the neutral score is used.
MIN_TXNS_FOR_SCORE = 10
# Transaction count at which activity stops adding to the score.
FULL_ACTIVITY_TXNS = 100
SKEW_PENALTY = 60.0
LOW_ACTIVITY_PENALTY = 20.0


def estimate_organic_score(buys: float, sells: float) -> float:
    """Proxy organic score from buy/sell transaction counts.

    One-sided flow and thin activity both lower the score. With fewer than
    ``MIN_TXNS_FOR_SCORE`` transactions the neutral passing score is returned.
    """

    buys = max(buys, 0.0)
    sells = max(sells, 0.0)
    total = buys + sells
    if total < MIN_TXNS_FOR_SCORE:
        return NEUTRAL_ORGANIC_SCORE

    skew = abs(buys - sells) / total
    activity = min(total / FULL_ACTIVITY_TXNS, 1.0)
    score = 100.0 - SKEW_PENALTY * skew - LOW_ACTIVITY_PENALTY * (1.0 - activity)
    return round(min(max(score, 0.0), 100.0), 1)


def _liquidity_usd(pair: Mapping[str, Any]) -> float:
    return safe_float(as_mapping(pair.get("liquidity")).get("usd")) or 0.0


def select_primary_pair(pairs: object) -> Mapping[str, Any] | None:
    """Pick the most liquid pair from a DexScreener ``pairs`` list."""

    if not isinstance(pairs, list):
        return None
    candidates = [pair for pair in pairs if isinstance(pair, Mapping)]
    if not candidates:
        return None
    return max(candidates, key=_liquidity_usd)


def snapshot_from_pair(pair: Mapping[str, Any]) -> MarketSnapshot:
    price_change = as_mapping(pair.get("priceChange"))
    txns = as_mapping(as_mapping(pair.get("txns")).get("h1"))
    market_cap = safe_float(pair.get("marketCap"))
    if market_cap is None:
        market_cap = safe_float(pair.get("fdv"))

    return MarketSnapshot(
        price_change_5m=safe_float(price_change.get("m5")) or 0.0,
        market_cap=market_cap or 0.0,
        organic_score=estimate_organic_score(
            safe_float(txns.get("buys")) or 0.0,
            safe_float(txns.get("sells")) or 0.0,
        ),
        source="dexscreener",
    )


class DexScreenerClient(HttpJsonClient, MarketDataSource):
    """Look up price momentum, market cap and an organic score per token."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        base_url: str = TOKENS_ENDPOINT,
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__(name="dexscreener", session=session, timeout_seconds=timeout_seconds)
        self.base_url = base_url.rstrip("/")

    async def fetch_snapshot(self, asset_id: str | None) -> MarketSnapshot:
        if not asset_id:
            return MarketSnapshot.fallback()

        try:
            payload = await self._get_json(f"{self.base_url}/{asset_id}")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("DexScreener lookup failed for %s: %s", asset_id, exc)
            return MarketSnapshot.fallback()

        pair = select_primary_pair(as_mapping(payload).get("pairs"))
        if pair is None:
            logger.info("No DexScreener pairs for %s; using fallback snapshot", asset_id)
            return MarketSnapshot.fallback()
        return snapshot_from_pair(pair)


__all__ = [
    "DexScreenerClient",
    "TOKENS_ENDPOINT",
    "estimate_organic_score",
    "select_primary_pair",
    "snapshot_from_pair",
]
