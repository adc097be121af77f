"""Async runtime harness that ties the pool source, rules, and alert delivery together."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping

import aiohttp

from alerts import TelegramAlertBot, TelegramAlertState
from common import ConfigError, load_config, parse_level, setup_logging
from ingest import DexScreenerClient, MeteoraPoolClient
from ingest.dexscreener import TOKENS_ENDPOINT
from ingest.meteora import POOLS_ENDPOINT
from rules import CooldownLedger, PoolAlertEngine, PoolRuleConfig
from rules.engine import DEFAULT_SEND_DELAY_SECONDS

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = {"your_bot_token_here", "your_chat_group_id_here"}
# A cycle still delivering alerts after this long is cancelled on shutdown.
SHUTDOWN_GRACE_SECONDS = 60.0


@dataclass
class PollingSettings:
    poll_interval_seconds: float = 60.0
    send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS


@dataclass
class SourceSettings:
    pools_url: str = POOLS_ENDPOINT
    pools_timeout_seconds: float = 30.0
    market_url: str = TOKENS_ENDPOINT
    market_timeout_seconds: float = 10.0


def _as_mapping(value: object) -> MutableMapping[str, Any]:
    if isinstance(value, MutableMapping):
        return value
    return {}


def _as_float(value: object, default: float, *, name: str, minimum: float = 0.0) -> float:
    """Parse a numeric setting; missing means ``default``, garbage is fatal."""

    if value is None or value == "":
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be numeric, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{name} must be >= {minimum:g}, got {number:g}")
    return number


def _is_missing(value: str) -> bool:
    value = value.strip()
    return not value or value.startswith("${") or value in PLACEHOLDER_VALUES


def _build_rule_config(config: Mapping[str, Any]) -> PoolRuleConfig:
    rules = _as_mapping(config.get("rules"))
    pools_cfg = _as_mapping(rules.get("pools"))
    defaults = PoolRuleConfig()
    return PoolRuleConfig(
        min_tvl_usd=_as_float(
            pools_cfg.get("min_tvl_usd"), defaults.min_tvl_usd, name="rules.pools.min_tvl_usd"
        ),
        fee_tvl_threshold_percent=_as_float(
            pools_cfg.get("fee_tvl_threshold_percent"),
            defaults.fee_tvl_threshold_percent,
            name="rules.pools.fee_tvl_threshold_percent",
        ),
        fee_threshold_usd=_as_float(
            pools_cfg.get("fee_threshold_usd"),
            defaults.fee_threshold_usd,
            name="rules.pools.fee_threshold_usd",
        ),
    )


def _build_polling_settings(config: Mapping[str, Any]) -> PollingSettings:
    app_cfg = _as_mapping(config.get("app"))
    minutes = _as_float(
        app_cfg.get("poll_interval_minutes"), 1.0, name="app.poll_interval_minutes"
    )
    if minutes <= 0:
        raise ConfigError("app.poll_interval_minutes must be positive")
    return PollingSettings(
        poll_interval_seconds=minutes * 60.0,
        send_delay_seconds=_as_float(
            app_cfg.get("send_delay_seconds"),
            DEFAULT_SEND_DELAY_SECONDS,
            name="app.send_delay_seconds",
        ),
    )


def _build_source_settings(config: Mapping[str, Any]) -> SourceSettings:
    sources = _as_mapping(config.get("sources"))
    meteora_cfg = _as_mapping(sources.get("meteora"))
    dex_cfg = _as_mapping(sources.get("dexscreener"))
    defaults = SourceSettings()
    return SourceSettings(
        pools_url=str(meteora_cfg.get("pools_url") or defaults.pools_url),
        pools_timeout_seconds=_as_float(
            meteora_cfg.get("timeout_seconds"),
            defaults.pools_timeout_seconds,
            name="sources.meteora.timeout_seconds",
        ),
        market_url=str(dex_cfg.get("base_url") or defaults.market_url),
        market_timeout_seconds=_as_float(
            dex_cfg.get("timeout_seconds"),
            defaults.market_timeout_seconds,
            name="sources.dexscreener.timeout_seconds",
        ),
    )


def _log_level_from_config(config: Mapping[str, Any]) -> tuple[int, Path | None]:
    logging_cfg = _as_mapping(config.get("logging"))
    level = parse_level(logging_cfg.get("level"))
    file_value = logging_cfg.get("file")
    log_file = Path(file_value) if isinstance(file_value, (str, Path)) else None
    return level, log_file


def _build_telegram_bot(
    config: Mapping[str, Any], rules: PoolRuleConfig, *, telegram_dry_run: bool
) -> TelegramAlertBot:
    telegram_cfg = _as_mapping(config.get("telegram"))

    token = str(telegram_cfg.get("bot_token") or "")
    chat_id_raw = telegram_cfg.get("chat_id")
    chat_id = str(chat_id_raw) if chat_id_raw is not None else ""
    prefix = str(telegram_cfg.get("alert_prefix") or "")

    if _is_missing(token) and not telegram_dry_run:
        raise ConfigError("Please configure telegram.bot_token (TELEGRAM_BOT_TOKEN)")
    if _is_missing(chat_id):
        if not telegram_dry_run:
            raise ConfigError("Please configure telegram.chat_id (TELEGRAM_CHAT_ID)")
        chat_id = "0"

    try:
        chat_id_int = int(chat_id)
    except ValueError:
        raise ConfigError(f"Invalid Telegram chat id {chat_id!r}") from None

    state = TelegramAlertState(chat_id=chat_id_int, rules=rules)
    return TelegramAlertBot(
        token=token,
        state=state,
        alert_prefix=prefix,
        dry_run=telegram_dry_run,
    )


class BotRuntime:
    """Coordinate the pool source, rule engine, and Telegram delivery."""

    def __init__(
        self,
        config_path: Path,
        telegram_dry_run: bool = False,
        run_once: bool = False,
    ) -> None:
        self.config_path = config_path
        self.telegram_dry_run = telegram_dry_run
        self.run_once = run_once
        self._stop_event = asyncio.Event()

    async def run(self) -> None:
        config = load_config(self.config_path)

        level, log_file = _log_level_from_config(config)
        setup_logging(level, log_file)
        logger.info("Starting bot runtime", extra={"config": str(self.config_path)})

        rules = _build_rule_config(config)
        polling = _build_polling_settings(config)
        sources = _build_source_settings(config)
        telegram_bot = _build_telegram_bot(
            config, rules, telegram_dry_run=self.telegram_dry_run
        )

        async with aiohttp.ClientSession() as session:
            engine = PoolAlertEngine(
                pool_source=MeteoraPoolClient(
                    session=session,
                    pools_url=sources.pools_url,
                    timeout_seconds=sources.pools_timeout_seconds,
                ),
                market_source=DexScreenerClient(
                    session=session,
                    base_url=sources.market_url,
                    timeout_seconds=sources.market_timeout_seconds,
                ),
                config=rules,
                alert_callback=telegram_bot.send_alert,
                ledger=CooldownLedger(),
                poll_interval_seconds=polling.poll_interval_seconds,
                send_delay_seconds=polling.send_delay_seconds,
            )

            await telegram_bot.start()
            try:
                if self.run_once:
                    await engine.run_cycle()
                    return
                await self._run_until_stopped(engine)
            finally:
                await telegram_bot.stop()
                logger.info("Bot runtime stopped")

    async def _run_until_stopped(self, engine: PoolAlertEngine) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, self._stop_event.set)

        logger.info(
            "Polling every %.0f seconds", engine.poll_interval_seconds
        )
        engine.start()
        try:
            await self._stop_event.wait()
        finally:
            await engine.stop(timeout=SHUTDOWN_GRACE_SECONDS)

    def stop(self) -> None:
        self._stop_event.set()


async def run_bot(
    config_path: str, telegram_dry_run: bool = False, run_once: bool = False
) -> None:
    runtime = BotRuntime(
        Path(config_path), telegram_dry_run=telegram_dry_run, run_once=run_once
    )
    await runtime.run()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the Meteora hot pool alert bot")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--telegram-dry-run",
        action="store_true",
        help="Do not contact Telegram; print messages locally",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single polling cycle and exit",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(
            run_bot(args.config, telegram_dry_run=args.telegram_dry_run, run_once=args.once)
        )
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from None


if __name__ == "__main__":  # pragma: no cover - CLI execution path
    main()
