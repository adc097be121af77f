"""Telegram integration for delivering pool alerts and handling commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import Iterable

from telegram import LinkPreviewOptions, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    AIORateLimiter,
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
)

from common import AlertPriority, MarketSnapshot, PoolRecord, load_config
from rules import PoolAlert, PoolRuleConfig, normalize

logger = logging.getLogger(__name__)

PRIORITY_TAGS: dict[AlertPriority, str] = {
    AlertPriority.STANDARD: "🟢 STANDARD ALERT",
    AlertPriority.HIGH_PRIORITY: "🟡 HIGH PRIORITY",
    AlertPriority.INSTANT_ALERT: "🔴 INSTANT ALERT",
}

METEORA_POOL_URL = "https://app.meteora.ag/dlmm/{address}"
DEXSCREENER_URL = "https://dexscreener.com/solana/{address}"

RECENT_POOLS_LIMIT = 50
STATUS_POOLS_SHOWN = 10


@dataclass
class TelegramAlertState:
    """Mutable in-memory state shared between commands and alert delivery.

    ``recent_alerts`` maps pool address to the time of its latest delivered
    alert, oldest first, and never holds more than ``RECENT_POOLS_LIMIT`` pools.
    """

    chat_id: int
    recent_alerts: OrderedDict[str, float] = field(default_factory=OrderedDict)
    sent_count: int = 0
    failed_count: int = 0
    last_alert_at: datetime | None = None
    rules: PoolRuleConfig | None = None

    def record_alert(self, alert: PoolAlert) -> None:
        self.recent_alerts[alert.pool_id] = alert.created_at
        self.recent_alerts.move_to_end(alert.pool_id)
        while len(self.recent_alerts) > RECENT_POOLS_LIMIT:
            self.recent_alerts.popitem(last=False)
        self.sent_count += 1
        self.last_alert_at = datetime.fromtimestamp(alert.created_at, tz=timezone.utc)

    def record_failure(self) -> None:
        self.failed_count += 1


def format_number(value: float) -> str:
    """Compact USD-style number: ``1.2M``, ``3.4K`` or two decimals."""

    if value >= 1e6:
        return f"{value / 1e6:.1f}M"
    if value >= 1e3:
        return f"{value / 1e3:.1f}K"
    return f"{value:.2f}"


def format_alert_message(alert: PoolAlert, *, prefix: str = "") -> str:
    """Build the HTML Telegram message for a pool alert."""

    record = alert.record
    metrics = alert.metrics
    snapshot = alert.snapshot
    name = escape(record.name or "Unknown")
    address = escape(record.address)

    tvl = f"${format_number(metrics.tvl_usd)}" if metrics.tvl_usd else "N/A"
    price = f"{metrics.current_price:.4e}" if metrics.current_price else "N/A"
    change = snapshot.price_change_5m
    trend_icon = "📉" if change < 0 else "📈"
    sign = "+" if change > 0 else ""

    tag = PRIORITY_TAGS[alert.priority]
    header = f"🚨 <b>{tag}</b>"
    if prefix.strip():
        header = f"{escape(prefix.strip())} {header}"

    lines = [
        header,
        "",
        "📊 <b>Pool Info</b>",
        f"• Name: {name}",
        "• Address:",
        f"<code>{address}</code>",
        f"• Fee/TVL Ratio: {metrics.fee_tvl_ratio_pct:.2f}% ⚡",
        f"• Threshold: {alert.fee_tvl_threshold_pct:g}%",
        "",
        "💰 <b>Financial Data</b>",
        f"• TVL: {tvl}",
        f"• 30m Fees: ${format_number(metrics.fees_30m_usd)}",
        f"• 30m Volume: ${format_number(metrics.volume_30m_usd)}",
        f"• Holders: {alert.holders:,}",
        f"• APR: {format_number(metrics.apr_pct)}%",
        f"• Base Fee: {metrics.base_fee_pct:g}%",
        "",
        "📈 <b>Market Performance</b>",
        f"• Market Cap: ${format_number(snapshot.market_cap)}",
        f"• 5m Price Change: {trend_icon} {sign}{change:.2f}%",
        f"• Organic Score: {snapshot.organic_score:.1f}",
        "",
        "💰 <b>Price</b>",
        f"• {name}: {price}",
        "",
        (
            f'🔗 <a href="{METEORA_POOL_URL.format(address=address)}">Meteora</a> | '
            f'<a href="{DEXSCREENER_URL.format(address=address)}">Chart</a>'
        ),
    ]
    return "\n".join(lines)


def build_status_message(state: TelegramAlertState) -> str:
    """Return the /status command body."""

    last_alert = state.last_alert_at.isoformat() if state.last_alert_at else "Never"
    newest = list(reversed(state.recent_alerts))[:STATUS_POOLS_SHOWN]
    recent = ", ".join(newest) or "None"
    hidden = len(state.recent_alerts) - len(newest)
    if hidden > 0:
        recent += f" (+{hidden} more)"
    lines = [
        "Hot pool bot status:",
        f"- Alerts sent: {state.sent_count}",
        f"- Failed sends: {state.failed_count}",
        f"- Recent pools: {recent}",
        f"- Last alert: {last_alert}",
    ]
    if state.rules is not None:
        lines.append(
            "- Thresholds: min TVL ${tvl:,.0f} | fee/TVL {ratio:g}% | fees ${fees:,.0f}".format(
                tvl=state.rules.min_tvl_usd,
                ratio=state.rules.fee_tvl_threshold_percent,
                fees=state.rules.fee_threshold_usd,
            )
        )
    return "\n".join(lines)


class TelegramAlertBot:
    """Deliver pool alerts to a single chat with /ping and /status commands."""

    def __init__(
        self,
        token: str,
        state: TelegramAlertState,
        *,
        alert_prefix: str = "",
        dry_run: bool = False,
    ) -> None:
        self._token = token
        self.state = state
        self.alert_prefix = alert_prefix
        self.dry_run = dry_run
        self._application: Application | None = None

    async def start(self) -> None:
        if self.dry_run:
            logger.info("Telegram bot running in dry-run mode; not starting polling")
            return
        if self._application is not None:
            return

        self._application = (
            ApplicationBuilder()
            .token(self._token)
            .rate_limiter(AIORateLimiter())
            .build()
        )
        self._application.add_handler(CommandHandler("ping", self._handle_ping))
        self._application.add_handler(CommandHandler("status", self._handle_status))

        await self._application.initialize()
        await self._application.start()
        await self._application.updater.start_polling()
        logger.info("Telegram bot polling started")

    async def stop(self) -> None:
        if self._application is None:
            return
        await self._application.updater.stop()
        await self._application.stop()
        await self._application.shutdown()
        self._application = None
        logger.info("Telegram bot stopped")

    async def send_alert(self, alert: PoolAlert) -> bool:
        """Send or print a formatted alert. Returns ``True`` only on delivery."""

        message = format_alert_message(alert, prefix=self.alert_prefix)

        if self.dry_run:
            print(f"[DRY-RUN] {message}")
            self.state.record_alert(alert)
            return True

        if self._application is None:
            raise RuntimeError("Telegram bot has not been started")

        try:
            await self._application.bot.send_message(
                chat_id=self.state.chat_id,
                text=message,
                parse_mode=ParseMode.HTML,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
        except TelegramError as exc:
            logger.error("Failed to send message for pool %s: %s", alert.pool_id, exc)
            self.state.record_failure()
            return False

        self.state.record_alert(alert)
        return True

    async def _authorised_reply(self, update: Update, text: str) -> None:
        if update.effective_chat is None or update.effective_chat.id != self.state.chat_id:
            logger.debug("Ignoring command from unauthorised chat")
            return
        if self.dry_run:
            print(f"[DRY-RUN] {text}")
            return
        if self._application is None:
            raise RuntimeError("Telegram bot not started")
        try:
            await self._application.bot.send_message(chat_id=self.state.chat_id, text=text)
        except TelegramError as exc:
            logger.error("Failed to reply to command: %s", exc)

    async def _handle_ping(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._authorised_reply(update, "Pong! Meteora hot pool bot is active.")

    async def _handle_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._authorised_reply(update, build_status_message(self.state))


def _sample_alert(rules: PoolRuleConfig) -> PoolAlert:
    record = PoolRecord(
        address="5rCf1DM8LjKTw4YqhnoLcngyZYeNnQqztScTogYHAS6",
        name="SOL-USDC",
        liquidity="125000",
        fees={"min_30": 3100.5},
        volume={"min_5": 42000, "min_30": 98000},
        fee_tvl_ratio={"min_30": 0.0248},
        apr=180.4,
        base_fee_percentage="0.25",
        current_price=0.0000123456,
        mint_x="So11111111111111111111111111111111111111112",
    )
    snapshot = MarketSnapshot(
        price_change_5m=4.2, market_cap=1_250_000, organic_score=91.5, source="dexscreener"
    )
    return PoolAlert(
        record=record,
        metrics=normalize(record),
        snapshot=snapshot,
        priority=AlertPriority.HIGH_PRIORITY,
        holders=1337,
        fee_tvl_threshold_pct=rules.fee_tvl_threshold_percent,
    )


async def _run_cli(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    telegram_cfg = config.get("telegram", {})
    token = telegram_cfg.get("bot_token") or args.token
    chat_id = telegram_cfg.get("chat_id") or args.chat_id

    if not args.dry_run and not token:
        raise SystemExit("Telegram token missing. Provide via config or --token.")
    if not chat_id:
        raise SystemExit("Telegram chat id missing. Provide via config or --chat-id.")

    rules = PoolRuleConfig()
    state = TelegramAlertState(chat_id=int(chat_id), rules=rules)
    bot = TelegramAlertBot(
        token=token or "",
        state=state,
        alert_prefix=telegram_cfg.get("alert_prefix", ""),
        dry_run=args.dry_run,
    )

    await bot.start()
    try:
        delivered = await bot.send_alert(_sample_alert(rules))
        print(f"Sample alert delivered: {delivered}")
        print(build_status_message(state))
    finally:
        await bot.stop()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a sample pool alert to Telegram")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML config with telegram settings",
    )
    parser.add_argument("--token", help="Override Telegram bot token")
    parser.add_argument("--chat-id", help="Override Telegram chat id")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the sample alert without contacting Telegram",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    asyncio.run(_run_cli(args))


if __name__ == "__main__":
    main()


__all__ = [
    "TelegramAlertBot",
    "TelegramAlertState",
    "build_status_message",
    "format_alert_message",
    "format_number",
]
