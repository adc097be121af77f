"""Per-pool cooldown bookkeeping used to deduplicate notifications."""

from __future__ import annotations

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

COOLDOWN_SECONDS = 5 * 60


class CooldownLedger:
    """Track when each pool was last alerted.

    Entries are written only after a notification was delivered, so a failed
    send leaves the pool eligible on the next cycle. Timestamps are plain
    epoch seconds supplied by the caller.
    """

    def __init__(
        self,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        retention_multiplier: float = 4.0,
    ) -> None:
        if cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be positive")
        if retention_multiplier < 1:
            raise ValueError("retention_multiplier must be at least 1")
        self.cooldown_seconds = float(cooldown_seconds)
        self.retention_seconds = self.cooldown_seconds * retention_multiplier
        self._last_alert: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._last_alert)

    def __contains__(self, pool_id: object) -> bool:
        return pool_id in self._last_alert

    def last_alerted(self, pool_id: str) -> Optional[float]:
        return self._last_alert.get(pool_id)

    def is_on_cooldown(self, pool_id: str, now: float) -> bool:
        """Return ``True`` while ``pool_id`` is inside its cooldown window."""

        last = self._last_alert.get(pool_id)
        if last is None:
            return False
        return now - last < self.cooldown_seconds

    def record_alert(self, pool_id: str, now: float) -> None:
        """Start the cooldown window for ``pool_id`` at ``now``."""

        self._last_alert[pool_id] = now

    def prune(self, now: float) -> int:
        """Forget entries far past their cooldown window. Returns the count removed."""

        expired = [
            pool_id
            for pool_id, last in self._last_alert.items()
            if now - last >= self.retention_seconds
        ]
        for pool_id in expired:
            del self._last_alert[pool_id]
        if expired:
            logger.debug("Pruned %d expired cooldown entries", len(expired))
        return len(expired)


__all__ = ["COOLDOWN_SECONDS", "CooldownLedger"]
