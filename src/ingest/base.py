"""Base classes and helpers shared by pool and market data clients."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import aiohttp

from common.models import MarketSnapshot, PoolRecord

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
    "Accept": "application/json",
}


class HttpJsonClient:
    """Small wrapper around an optional shared :class:`aiohttp.ClientSession`.

    When no session is injected a private one is created lazily and closed by
    :meth:`close`.
    """

    def __init__(
        self,
        name: str,
        session: aiohttp.ClientSession | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.name = name
        self._session = session
        self._owned_session: Optional[aiohttp.ClientSession] = None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        if self._owned_session is None or self._owned_session.closed:
            self._owned_session = aiohttp.ClientSession()
        return self._owned_session

    async def _get_json(
        self, url: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        session = self._get_session()
        async with session.get(
            url, params=params, headers=DEFAULT_HEADERS, timeout=self._timeout
        ) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def close(self) -> None:
        if self._owned_session is not None and not self._owned_session.closed:
            await self._owned_session.close()
        self._owned_session = None


class PoolSource(ABC):
    """Interface for anything able to list the pools to evaluate."""

    @abstractmethod
    async def fetch_pools(self) -> list[PoolRecord]:
        """Return the pool records for one polling cycle; ``[]`` on failure."""


class MarketDataSource(ABC):
    """Interface for per-asset market data lookups."""

    @abstractmethod
    async def fetch_snapshot(self, asset_id: str | None) -> MarketSnapshot:
        """Return a snapshot for ``asset_id`` or :meth:`MarketSnapshot.fallback`."""


def as_mapping(value: object) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    return {}


__all__ = [
    "DEFAULT_HEADERS",
    "HttpJsonClient",
    "MarketDataSource",
    "PoolSource",
    "as_mapping",
]
