"""Data clients for the pool listing and per-token market data.

Modules in this package expose async fetchers that return pydantic models
ready for normalisation and rule evaluation.
"""

from .base import HttpJsonClient, MarketDataSource, PoolSource  # noqa: F401
from .dexscreener import DexScreenerClient, estimate_organic_score  # noqa: F401
from .meteora import MeteoraPoolClient  # noqa: F401

__all__ = [
    "DexScreenerClient",
    "HttpJsonClient",
    "MarketDataSource",
    "MeteoraPoolClient",
    "PoolSource",
    "estimate_organic_score",
]
