"""
ascend.services.settings_service — Per-Guild Settings CRUD
===========================================================

Provides typed read/write access to the ``guild_settings`` table.

Bot-side reads are explicit *get-or-create*: the first read for a guild
persists a row of defaults, so every guild the bot serves has exactly one
settings record.  :func:`peek_guild_settings` reads without writing.

Updates go through :class:`SettingsPatch`, which enumerates every
recognized field with its validation rule.  Unknown keys are rejected
with :class:`~ascend.errors.ValidationError`, and the whole patch is
validated before anything is written.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

from sqlalchemy import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ascend.constants import (
    DEFAULT_DECAY_ENABLED,
    DEFAULT_DECAY_MIN_MESSAGES,
    DEFAULT_DECAY_PERCENT,
    DEFAULT_DECAY_WINDOW_DAYS,
    DEFAULT_LEVEL_CURVE_FACTOR,
    DEFAULT_MSG_COOLDOWN_SECONDS,
    DEFAULT_MSG_XP,
    DEFAULT_REACTION_COOLDOWN_SECONDS,
    DEFAULT_REACTION_XP,
    DEFAULT_VOICE_XP_PER_MINUTE,
    MAX_DECAY_PERCENT,
    utcnow,
)
from ascend.database.engine import get_session
from ascend.database.models import GuildSettings
from ascend.errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GuildSettingsData:
    """Detached snapshot of a guild's settings row."""

    guild_id: int
    msg_xp: int
    reaction_xp: int
    voice_xp_per_minute: int
    msg_cooldown_seconds: int
    reaction_cooldown_seconds: int
    decay_enabled: bool
    decay_window_days: int
    decay_min_messages: int
    decay_percent: float
    level_curve_factor: int

    @classmethod
    def from_row(cls, row: GuildSettings) -> GuildSettingsData:
        return cls(
            guild_id=row.guild_id,
            msg_xp=row.msg_xp,
            reaction_xp=row.reaction_xp,
            voice_xp_per_minute=row.voice_xp_per_minute,
            msg_cooldown_seconds=row.msg_cooldown_seconds,
            reaction_cooldown_seconds=row.reaction_cooldown_seconds,
            decay_enabled=bool(row.decay_enabled),
            decay_window_days=row.decay_window_days,
            decay_min_messages=row.decay_min_messages,
            decay_percent=float(row.decay_percent),
            level_curve_factor=row.level_curve_factor,
        )

    @classmethod
    def defaults(cls, guild_id: int) -> GuildSettingsData:
        """The values a new guild starts with."""
        return cls(
            guild_id=guild_id,
            msg_xp=DEFAULT_MSG_XP,
            reaction_xp=DEFAULT_REACTION_XP,
            voice_xp_per_minute=DEFAULT_VOICE_XP_PER_MINUTE,
            msg_cooldown_seconds=DEFAULT_MSG_COOLDOWN_SECONDS,
            reaction_cooldown_seconds=DEFAULT_REACTION_COOLDOWN_SECONDS,
            decay_enabled=DEFAULT_DECAY_ENABLED,
            decay_window_days=DEFAULT_DECAY_WINDOW_DAYS,
            decay_min_messages=DEFAULT_DECAY_MIN_MESSAGES,
            decay_percent=DEFAULT_DECAY_PERCENT,
            level_curve_factor=DEFAULT_LEVEL_CURVE_FACTOR,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Write model
# ---------------------------------------------------------------------------
def _non_negative_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, f"must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(name, f"must be >= 0, got {value}")
    return value


def _positive_int(name: str, value: Any) -> int:
    value = _non_negative_int(name, value)
    if value < 1:
        raise ValidationError(name, f"must be >= 1, got {value}")
    return value


def _decay_fraction(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError(name, f"must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value) or not 0.0 <= value <= MAX_DECAY_PERCENT:
        raise ValidationError(
            name, f"must be between 0 and {MAX_DECAY_PERCENT}, got {value}"
        )
    return value


def _boolean(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(name, f"must be true or false, got {value!r}")
    return value


_VALIDATORS = {
    "msg_xp": _non_negative_int,
    "reaction_xp": _non_negative_int,
    "voice_xp_per_minute": _non_negative_int,
    "msg_cooldown_seconds": _non_negative_int,
    "reaction_cooldown_seconds": _non_negative_int,
    "decay_enabled": _boolean,
    "decay_window_days": _positive_int,
    "decay_min_messages": _non_negative_int,
    "decay_percent": _decay_fraction,
    "level_curve_factor": _positive_int,
}


@dataclass(frozen=True, slots=True)
class SettingsPatch:
    """A partial settings update.  ``None`` means "leave unchanged"."""

    msg_xp: int | None = None
    reaction_xp: int | None = None
    voice_xp_per_minute: int | None = None
    msg_cooldown_seconds: int | None = None
    reaction_cooldown_seconds: int | None = None
    decay_enabled: bool | None = None
    decay_window_days: int | None = None
    decay_min_messages: int | None = None
    decay_percent: float | None = None
    level_curve_factor: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SettingsPatch:
        """Build a patch from a plain dict, rejecting unrecognized keys."""
        unknown = sorted(set(data) - set(_VALIDATORS))
        if unknown:
            raise ValidationError(
                unknown[0], f"unrecognized setting(s): {', '.join(unknown)}"
            )
        return cls(**{k: v for k, v in data.items()})

    def changes(self) -> dict[str, Any]:
        """Validated ``field → value`` for every field that is set.

        Raises :class:`ValidationError` on the first invalid value.
        """
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = _VALIDATORS[f.name](f.name, value)
        return out


# ---------------------------------------------------------------------------
# Get-or-create
# ---------------------------------------------------------------------------
def get_or_create_settings(session: Session, guild_id: int) -> GuildSettings:
    """Fetch the guild's settings row, inserting defaults if absent.

    The insert runs in a SAVEPOINT so a concurrent first read that wins
    the race does not abort the outer transaction.
    """
    row = session.get(GuildSettings, guild_id)
    if row is not None:
        return row

    try:
        with session.begin_nested():   # SAVEPOINT
            row = GuildSettings(guild_id=guild_id, updated_at=utcnow())
            session.add(row)
            session.flush()
        logger.info("Created default settings for guild %d", guild_id)
    except IntegrityError:
        row = session.get(GuildSettings, guild_id, populate_existing=True)
        if row is None:
            raise
    return row


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def get_guild_settings(engine: Engine, guild_id: int) -> GuildSettingsData:
    """Return the guild's settings, persisting defaults on first access."""
    with get_session(engine) as session:
        row = get_or_create_settings(session, guild_id)
        return GuildSettingsData.from_row(row)


def peek_guild_settings(engine: Engine, guild_id: int) -> GuildSettingsData:
    """Return the guild's settings without creating a row.

    Unknown guilds read as the defaults.  Used by the HTTP API, which
    must not write.
    """
    with get_session(engine) as session:
        row = session.get(GuildSettings, guild_id)
        if row is None:
            return GuildSettingsData.defaults(guild_id)
        return GuildSettingsData.from_row(row)


def update_guild_settings(
    engine: Engine,
    guild_id: int,
    patch: SettingsPatch | Mapping[str, Any],
) -> GuildSettingsData:
    """Apply *patch* and return the updated settings.

    The patch is fully validated before the transaction opens, so a
    :class:`ValidationError` leaves the stored settings untouched.
    """
    if not isinstance(patch, SettingsPatch):
        patch = SettingsPatch.from_mapping(patch)
    changes = patch.changes()

    with get_session(engine) as session:
        row = get_or_create_settings(session, guild_id)
        for key, value in changes.items():
            setattr(row, key, value)
        if changes:
            row.updated_at = utcnow()
            logger.info(
                "Updated settings for guild %d: %s",
                guild_id, ", ".join(f"{k}={v}" for k, v in changes.items()),
            )
        session.flush()
        return GuildSettingsData.from_row(row)
