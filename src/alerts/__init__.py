"""Alert delivery helpers for Telegram."""

from .telegram import (  # noqa: F401
    TelegramAlertBot,
    TelegramAlertState,
    build_status_message,
    format_alert_message,
    format_number,
)

__all__ = [
    "TelegramAlertBot",
    "TelegramAlertState",
    "build_status_message",
    "format_alert_message",
    "format_number",
]
