"""Common utilities shared across the hot pool alert bot."""

from .config import ConfigError, load_config  # noqa: F401
from .logging import parse_level, setup_logging  # noqa: F401
from .models import (  # noqa: F401
    NEUTRAL_ORGANIC_SCORE,
    AlertPriority,
    MarketSnapshot,
    PoolRecord,
)
from .numbers import safe_float  # noqa: F401

__all__ = [
    "AlertPriority",
    "ConfigError",
    "MarketSnapshot",
    "NEUTRAL_ORGANIC_SCORE",
    "PoolRecord",
    "load_config",
    "parse_level",
    "safe_float",
    "setup_logging",
]
