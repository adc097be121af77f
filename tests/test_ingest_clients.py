"""Unit tests for the Meteora and DexScreener clients."""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import pytest

from common.models import NEUTRAL_ORGANIC_SCORE, MarketSnapshot
from ingest.dexscreener import (
    DexScreenerClient,
    estimate_organic_score,
    select_primary_pair,
    snapshot_from_pair,
)
from ingest.meteora import MeteoraPoolClient, parse_pool, parse_pools


class _FakeResponse:
    def __init__(self, payload: Any = None, error: Exception | None = None) -> None:
        self._payload = payload
        self._error = error

    async def __aenter__(self) -> "_FakeResponse":
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    def raise_for_status(self) -> None:
        return None

    async def json(self, content_type: str | None = None) -> Any:
        return self._payload


class _FakeSession:
    def __init__(self, payload: Any = None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.urls: list[str] = []

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.urls.append(url)
        return _FakeResponse(self.payload, self.error)


METEORA_ENTRY = {
    "address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
    "name": "JUP-SOL",
    "mint_x": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",
    "liquidity": "85432.12",
    "fees": {"min_30": 412.5},
    "volume": {"min_5": 1200, "min_30": 40000},
    "fee_tvl_ratio": {"min_30": 0.48},
    "apr": 33.1,
    "base_fee_percentage": "0.2",
    "current_price": 0.00532,
}


def test_parse_pool_maps_listing_fields() -> None:
    record = parse_pool(METEORA_ENTRY)

    assert record is not None
    assert record.address == METEORA_ENTRY["address"]
    assert record.name == "JUP-SOL"
    assert record.mint_x == METEORA_ENTRY["mint_x"]
    assert record.fee_tvl_ratio == {"min_30": 0.48}
    assert record.raw["apr"] == 33.1


def test_parse_pools_skips_unusable_entries() -> None:
    payload = [METEORA_ENTRY, {"name": "no address"}, "garbage", {"address": "x", "fees": "bad"}]

    records = parse_pools(payload)

    assert [record.address for record in records] == [METEORA_ENTRY["address"], "x"]
    assert records[1].fees == {}
    assert parse_pools({"error": "unexpected"}) == []


def test_meteora_client_returns_records() -> None:
    async def _run() -> None:
        session = _FakeSession(payload=[METEORA_ENTRY])
        client = MeteoraPoolClient(session=session, pools_url="https://example.test/pairs")

        records = await client.fetch_pools()

        assert len(records) == 1
        assert session.urls == ["https://example.test/pairs"]

    asyncio.run(_run())


def test_meteora_client_degrades_to_empty_on_error() -> None:
    async def _run() -> None:
        session = _FakeSession(error=aiohttp.ClientConnectionError("boom"))
        client = MeteoraPoolClient(session=session)

        assert await client.fetch_pools() == []

    asyncio.run(_run())


@pytest.mark.parametrize(
    ("buys", "sells", "expected"),
    [
        (0, 0, NEUTRAL_ORGANIC_SCORE),
        (4, 5, NEUTRAL_ORGANIC_SCORE),
        (100, 100, 100.0),
        (50, 50, 100.0),
        (10, 10, 84.0),
        (150, 50, 70.0),
        (200, 0, 40.0),
    ],
)
def test_estimate_organic_score(buys: float, sells: float, expected: float) -> None:
    assert estimate_organic_score(buys, sells) == pytest.approx(expected)


DEX_PAIRS = [
    {
        "pairAddress": "thin",
        "liquidity": {"usd": 1000},
        "priceChange": {"m5": 9.0},
        "txns": {"h1": {"buys": 1, "sells": 1}},
        "fdv": 10,
    },
    {
        "pairAddress": "deep",
        "liquidity": {"usd": 250000},
        "priceChange": {"m5": -3.5},
        "txns": {"h1": {"buys": 60, "sells": 40}},
        "marketCap": 4_200_000,
        "fdv": 5_000_000,
    },
]


def test_select_primary_pair_prefers_liquidity() -> None:
    pair = select_primary_pair(DEX_PAIRS)
    assert pair is not None and pair["pairAddress"] == "deep"
    assert select_primary_pair(None) is None
    assert select_primary_pair([]) is None


def test_snapshot_from_pair_reads_market_fields() -> None:
    snapshot = snapshot_from_pair(DEX_PAIRS[1])

    assert snapshot.source == "dexscreener"
    assert snapshot.price_change_5m == pytest.approx(-3.5)
    assert snapshot.market_cap == 4_200_000
    assert snapshot.organic_score == pytest.approx(88.0)


def test_snapshot_falls_back_to_fdv() -> None:
    assert snapshot_from_pair(DEX_PAIRS[0]).market_cap == 10


@pytest.mark.asyncio
async def test_dexscreener_client_uses_token_endpoint() -> None:
    session = _FakeSession(payload={"pairs": DEX_PAIRS})
    client = DexScreenerClient(session=session, base_url="https://example.test/tokens/")

    snapshot = await client.fetch_snapshot("MINT123")

    assert session.urls == ["https://example.test/tokens/MINT123"]
    assert snapshot.market_cap == 4_200_000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "session",
    [
        _FakeSession(payload={"pairs": None}),
        _FakeSession(payload={"schemaVersion": "1.0.0"}),
        _FakeSession(error=asyncio.TimeoutError()),
        _FakeSession(error=aiohttp.ServerDisconnectedError()),
    ],
)
async def test_dexscreener_client_falls_back(session: _FakeSession) -> None:
    client = DexScreenerClient(session=session)

    snapshot = await client.fetch_snapshot("MINT123")

    assert snapshot == MarketSnapshot.fallback()


@pytest.mark.asyncio
async def test_dexscreener_client_skips_empty_identifier() -> None:
    session = _FakeSession(payload={"pairs": DEX_PAIRS})
    client = DexScreenerClient(session=session)

    assert await client.fetch_snapshot(None) == MarketSnapshot.fallback()
    assert session.urls == []


def test_snapshot_from_pair_rejects_non_finite_values() -> None:
    snapshot = snapshot_from_pair(
        {
            "priceChange": {"m5": "NaN"},
            "marketCap": "inf",
            "fdv": 2_000_000,
            "txns": {"h1": {"buys": float("nan"), "sells": "-inf"}},
        }
    )

    assert snapshot.price_change_5m == 0.0
    assert snapshot.market_cap == 2_000_000
    assert snapshot.organic_score == NEUTRAL_ORGANIC_SCORE


def test_select_primary_pair_ignores_infinite_liquidity() -> None:
    pairs = [{"pairAddress": "bogus", "liquidity": {"usd": "inf"}}, DEX_PAIRS[1]]
    assert select_primary_pair(pairs)["pairAddress"] == "deep"
