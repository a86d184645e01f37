"""
ascend.engine.cooldowns — Per-user award cooldown tracker
==========================================================

Message and reaction awards are rate-limited per ``(guild_id, user_id)``.
State is in-memory and process-local; entries older than six hours are
swept so the maps stay bounded.  Sweeping never changes behavior because
configured cooldowns are always far shorter than the retention window.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Lock

from ascend.constants import (
    COOLDOWN_RETENTION_SECONDS,
    COOLDOWN_SWEEP_INTERVAL_SECONDS,
)

logger = logging.getLogger(__name__)

CooldownKey = tuple[int, int]


class CooldownTracker:
    """Tracks the last awarded timestamp per ``(guild_id, user_id)``.

    Thread-safe.  Timestamps are plain epoch seconds; callers may pass
    ``now`` explicitly (tests, replay) or let the tracker read the clock.
    """

    def __init__(
        self,
        *,
        retention_seconds: float = COOLDOWN_RETENTION_SECONDS,
        sweep_interval_seconds: float = COOLDOWN_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._lock = Lock()
        self._last_award: dict[CooldownKey, float] = {}
        self._retention = retention_seconds
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep = time.time()

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_award)

    def try_acquire(
        self, key: CooldownKey, cooldown_seconds: float, now: float | None = None
    ) -> bool:
        """Return True and record *now* if *key*'s cooldown has elapsed.

        A refused attempt does not reset the window: the cooldown always
        runs from the last *awarded* event.
        """
        now = time.time() if now is None else now
        with self._lock:
            self._maybe_sweep(now)
            last = self._last_award.get(key)
            if last is not None and now - last < max(0.0, cooldown_seconds):
                return False
            self._last_award[key] = now
            return True

    def remaining(
        self, key: CooldownKey, cooldown_seconds: float, now: float | None = None
    ) -> float:
        """Seconds left before *key* may be awarded again (0.0 if ready)."""
        now = time.time() if now is None else now
        with self._lock:
            last = self._last_award.get(key)
        if last is None:
            return 0.0
        return max(0.0, cooldown_seconds - (now - last))

    def sweep(self, now: float | None = None) -> int:
        """Drop entries older than the retention window.  Returns count pruned."""
        now = time.time() if now is None else now
        with self._lock:
            return self._sweep_locked(now)

    def _maybe_sweep(self, now: float) -> None:
        """Periodically clean up expired entries (caller holds the lock)."""
        if now - self._last_sweep < self._sweep_interval:
            return
        self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        self._last_sweep = now
        cutoff = now - self._retention
        stale = [k for k, t in self._last_award.items() if t <= cutoff]
        for k in stale:
            del self._last_award[k]
        return len(stale)


@dataclass
class CooldownRegistry:
    """The independent trackers an award pipeline needs.

    Created once by the bot and handed to every handler, so no module-level
    mutable state exists.
    """

    messages: CooldownTracker = field(default_factory=CooldownTracker)
    reactions: CooldownTracker = field(default_factory=CooldownTracker)

    def sweep(self, now: float | None = None) -> int:
        pruned = self.messages.sweep(now) + self.reactions.sweep(now)
        if pruned:
            logger.debug("Pruned %d expired cooldown entries", pruned)
        return pruned
