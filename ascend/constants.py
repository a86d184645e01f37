"""
ascend.constants — Shared Constants & Helpers
===============================================

Single source of truth for XP limits, settings defaults, and the UTC
time helpers every service uses.  Import from here instead of duplicating
in cogs, services, and the API.
"""

from __future__ import annotations

from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# XP limits
# ---------------------------------------------------------------------------
MAX_SAFE_INT: int = 2**53 - 1
"""Upper bound for any stored XP value (largest exactly representable float)."""

DAY_SECONDS: int = 86_400

# ---------------------------------------------------------------------------
# Guild settings defaults
# ---------------------------------------------------------------------------
DEFAULT_MSG_XP = 5
DEFAULT_REACTION_XP = 2
DEFAULT_VOICE_XP_PER_MINUTE = 1
DEFAULT_MSG_COOLDOWN_SECONDS = 20
DEFAULT_REACTION_COOLDOWN_SECONDS = 10
DEFAULT_DECAY_ENABLED = True
DEFAULT_DECAY_WINDOW_DAYS = 7
DEFAULT_DECAY_MIN_MESSAGES = 20
DEFAULT_DECAY_PERCENT = 0.10
DEFAULT_LEVEL_CURVE_FACTOR = 100

MAX_DECAY_PERCENT = 0.95

DEFAULT_DROP_GRACE_DAYS = 3

# ---------------------------------------------------------------------------
# Cooldown map maintenance
# ---------------------------------------------------------------------------
COOLDOWN_RETENTION_SECONDS = 6 * 3600
COOLDOWN_SWEEP_INTERVAL_SECONDS = 600

# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------
LEADERBOARD_DEFAULT_LIMIT = 10
LEADERBOARD_MAX_LIMIT = 20

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite.

    PostgreSQL returns aware values for ``timestamptz``; SQLite drops the
    offset on storage.  Every timestamp Ascend writes is UTC, so a naive
    value is UTC by construction.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
