"""Meteora DLMM pool listing client."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

import aiohttp

from common.models import PoolRecord

from .base import HttpJsonClient, PoolSource, as_mapping

logger = logging.getLogger(__name__)

POOLS_ENDPOINT = "https://dlmm-api.meteora.ag/pair/all"


def parse_pool(payload: object) -> PoolRecord | None:
    """Build a :class:`PoolRecord` from one listing entry, or ``None`` if unusable."""

    if not isinstance(payload, Mapping):
        return None
    address = payload.get("address")
    if not address or not isinstance(address, str):
        return None

    name = payload.get("name")
    mint_x = payload.get("mint_x")
    return PoolRecord(
        address=address,
        name=str(name) if name else None,
        liquidity=payload.get("liquidity"),
        tvl=payload.get("tvl"),
        fees=as_mapping(payload.get("fees")),
        volume=as_mapping(payload.get("volume")),
        fee_tvl_ratio=as_mapping(payload.get("fee_tvl_ratio")),
        apr=payload.get("apr"),
        base_fee_percentage=payload.get("base_fee_percentage"),
        current_price=payload.get("current_price"),
        mint_x=str(mint_x) if mint_x else None,
        raw=dict(payload),
    )


def parse_pools(payload: object) -> list[PoolRecord]:
    if not isinstance(payload, list):
        logger.warning("Unexpected Meteora payload type %s; ignoring", type(payload).__name__)
        return []

    records: list[PoolRecord] = []
    skipped = 0
    for item in payload:
        record = parse_pool(item)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug("Skipped %d Meteora entries without an address", skipped)
    return records


class MeteoraPoolClient(HttpJsonClient, PoolSource):
    """Fetch every DLMM pair in a single batch request."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        pools_url: str = POOLS_ENDPOINT,
        timeout_seconds: float = 30.0,
    ) -> None:
        super().__init__(name="meteora-pools", session=session, timeout_seconds=timeout_seconds)
        self.pools_url = pools_url

    async def fetch_pools(self) -> list[PoolRecord]:
        try:
            payload = await self._get_json(self.pools_url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Error fetching Meteora pools: %s", exc)
            return []

        records = parse_pools(payload)
        logger.debug("Fetched %d Meteora pools", len(records))
        return records


__all__ = ["MeteoraPoolClient", "POOLS_ENDPOINT", "parse_pool", "parse_pools"]
