"""Polling cycle tying pool rules, market data and alert delivery together."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from common.models import MarketSnapshot, PoolRecord
from ingest.base import MarketDataSource, PoolSource

from .cooldown import CooldownLedger
from .normalize import CanonicalMetrics, normalize
from .pools import (
    FirstPassResult,
    PoolAlert,
    PoolRuleConfig,
    build_pool_alert,
    evaluate_first_pass,
    evaluate_second_pass,
)

logger = logging.getLogger(__name__)

DEFAULT_SEND_DELAY_SECONDS = 4.0


@dataclass
class CycleReport:
    """Counters describing one polling cycle."""

    pools_seen: int = 0
    shortlisted: int = 0
    cooldown_skipped: int = 0
    suppressed: int = 0
    sent: int = 0
    failed: int = 0


@dataclass
class _Candidate:
    record: PoolRecord
    metrics: CanonicalMetrics
    first_pass: FirstPassResult


class PoolAlertEngine:
    """Run polling cycles and hand surviving alerts to ``alert_callback``.

    ``alert_callback`` must return ``True`` only when the notification was
    delivered; only then does the pool enter its cooldown window.
    """

    def __init__(
        self,
        pool_source: PoolSource,
        market_source: MarketDataSource,
        config: PoolRuleConfig,
        alert_callback: Callable[[PoolAlert], Awaitable[bool]],
        ledger: CooldownLedger | None = None,
        *,
        poll_interval_seconds: float = 60.0,
        send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._pool_source = pool_source
        self._market_source = market_source
        self._config = config
        self._alert_callback = alert_callback
        self.ledger = ledger if ledger is not None else CooldownLedger()
        self.poll_interval_seconds = poll_interval_seconds
        self.send_delay_seconds = send_delay_seconds
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._stopped = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def config(self) -> PoolRuleConfig:
        return self._config

    def start(self) -> asyncio.Task[None]:
        """Begin running cycles back to back with ``poll_interval_seconds`` between them."""

        if self._task is not None:
            raise RuntimeError("PoolAlertEngine already running")
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name="pool-alert-engine")
        return self._task

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the polling loop once the cycle in progress has finished.

        With ``timeout`` set, a cycle still running after that many seconds is
        cancelled.
        """

        if self._task is None:
            return
        self._stopped.set()
        task = self._task
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Polling cycle still running after %.1fs; cancelling", timeout)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None

    async def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Error in polling cycle")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def run_cycle(self) -> CycleReport:
        """Evaluate every pool once and deliver the alerts that survive all rules."""

        report = CycleReport()
        started = self._clock()
        self.ledger.prune(started)
        logger.info("Checking pools for hot activity")

        try:
            records = await self._pool_source.fetch_pools()
        except Exception:
            logger.exception("Pool source failed; no candidates this cycle")
            records = []

        candidates = self._shortlist(records, started, report)
        if not candidates:
            logger.info("No hot pools found in this cycle.")
            return report

        for candidate in candidates:
            await self._process_candidate(candidate, report)

        logger.info(
            "Cycle complete: %d pools, %d shortlisted, %d on cooldown, "
            "%d suppressed, %d sent, %d failed",
            report.pools_seen,
            report.shortlisted,
            report.cooldown_skipped,
            report.suppressed,
            report.sent,
            report.failed,
        )
        return report

    def _shortlist(
        self, records: list[PoolRecord], now: float, report: CycleReport
    ) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        for record in records:
            report.pools_seen += 1
            metrics = normalize(record)
            first_pass = evaluate_first_pass(metrics, self._config)
            if not first_pass.should_alert:
                continue
            if self.ledger.is_on_cooldown(record.address, now):
                report.cooldown_skipped += 1
                continue
            candidates.append(_Candidate(record, metrics, first_pass))
        report.shortlisted = len(candidates)
        return candidates

    async def _process_candidate(self, candidate: _Candidate, report: CycleReport) -> None:
        record = candidate.record
        snapshot = await self._fetch_snapshot(record)
        decision = evaluate_second_pass(
            record.address,
            candidate.metrics,
            snapshot,
            candidate.first_pass,
            self._config,
            on_cooldown=self.ledger.is_on_cooldown(record.address, self._clock()),
        )
        if not decision.should_notify:
            report.suppressed += 1
            logger.debug("Suppressed %s (%s)", record.address, decision.suppressed_by)
            return

        alert = build_pool_alert(
            record, decision, self._config, rng=self._rng, now=self._clock()
        )
        try:
            delivered = await self._alert_callback(alert)
        except Exception:
            logger.exception("Alert callback raised for pool %s", record.address)
            delivered = False
        if delivered:
            self.ledger.record_alert(record.address, self._clock())
            report.sent += 1
            logger.info("Alert sent for pool %s (%s)", record.name, record.address)
        else:
            report.failed += 1
            logger.warning("Alert delivery failed for pool %s; no cooldown set", record.address)

        await self._sleep(self.send_delay_seconds)

    async def _fetch_snapshot(self, record: PoolRecord) -> MarketSnapshot:
        try:
            return await self._market_source.fetch_snapshot(record.mint_x)
        except Exception:
            logger.exception("Market data lookup crashed for %s", record.address)
            return MarketSnapshot.fallback()


__all__ = ["CycleReport", "DEFAULT_SEND_DELAY_SECONDS", "PoolAlertEngine"]
