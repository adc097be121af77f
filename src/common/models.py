"""Shared data models and enums used across the project."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

NEUTRAL_ORGANIC_SCORE = 85.0


class AlertPriority(str, Enum):
    """Severity tier attached to a pool alert."""

    STANDARD = "STANDARD"
    HIGH_PRIORITY = "HIGH_PRIORITY"
    INSTANT_ALERT = "INSTANT_ALERT"


class PoolRecord(BaseModel):
    """Raw liquidity pool record as published by the pool source.

    Numeric fields are left loosely typed on purpose: the source mixes numbers,
    numeric strings and nulls, and the normaliser decides what they mean.
    """

    address: str = Field(..., description="On-chain pool address, used as identity")
    name: Optional[str] = Field(None, description="Display name, e.g. SOL-USDC")
    liquidity: Any = Field(None, description="Pool liquidity in USD")
    tvl: Any = Field(None, description="Alternative TVL field used by some payloads")
    fees: dict[str, Any] = Field(
        default_factory=dict, description="Fees in USD keyed by window, e.g. min_30"
    )
    volume: dict[str, Any] = Field(
        default_factory=dict, description="Trading volume in USD keyed by window"
    )
    fee_tvl_ratio: dict[str, Any] = Field(
        default_factory=dict,
        description="Fee/TVL ratio keyed by window, fraction or percentage",
    )
    apr: Any = Field(None, description="Annualised yield estimate in percent")
    base_fee_percentage: Any = Field(None, description="Base swap fee in percent")
    current_price: Any = Field(None, description="Current unit price of the pair")
    mint_x: Optional[str] = Field(
        None, description="Base asset mint used for market data lookups"
    )
    raw: dict[str, Any] = Field(
        default_factory=dict, description="Original payload for debugging"
    )


class MarketSnapshot(BaseModel):
    """Auxiliary market data fetched for a shortlisted pool."""

    price_change_5m: float = Field(0.0, description="Price change over 5 minutes in %")
    market_cap: float = Field(0.0, description="Market capitalisation estimate in USD")
    organic_score: float = Field(
        NEUTRAL_ORGANIC_SCORE,
        ge=0.0,
        le=100.0,
        description="0-100 proxy for non wash-traded activity",
    )
    source: Literal["dexscreener", "fallback"] = Field(
        "fallback", description="Where the snapshot values came from"
    )

    @classmethod
    def fallback(cls) -> "MarketSnapshot":
        """Neutral snapshot used when market data is missing or the lookup fails."""

        return cls(
            price_change_5m=0.0,
            market_cap=0.0,
            organic_score=NEUTRAL_ORGANIC_SCORE,
            source="fallback",
        )


__all__ = ["AlertPriority", "MarketSnapshot", "NEUTRAL_ORGANIC_SCORE", "PoolRecord"]
