"""
ascend.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- guild_settings           — Per-guild XP / decay / level-curve tunables
- user_scores              — Durable per-(guild, user) XP counter
- activity_log             — Append-only activity journal for windowed counts
- level_roles              — Per-guild level → role mappings with drop grace
- role_drop_state          — Per-(guild, user, role) "below level since" timers
- allowed_command_channels — Per-guild command channel allow-list
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ascend.constants import (
    DEFAULT_DECAY_ENABLED,
    DEFAULT_DECAY_MIN_MESSAGES,
    DEFAULT_DECAY_PERCENT,
    DEFAULT_DECAY_WINDOW_DAYS,
    DEFAULT_DROP_GRACE_DAYS,
    DEFAULT_LEVEL_CURVE_FACTOR,
    DEFAULT_MSG_COOLDOWN_SECONDS,
    DEFAULT_MSG_XP,
    DEFAULT_REACTION_COOLDOWN_SECONDS,
    DEFAULT_REACTION_XP,
    DEFAULT_VOICE_XP_PER_MINUTE,
)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Ascend ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActivityKind(enum.StrEnum):
    """Kinds of activity recorded in the activity log."""
    MESSAGE = "message"
    REACTION = "reaction"
    VOICE_MINUTE = "voice_minute"


# ---------------------------------------------------------------------------
# GuildSettings: one row per guild, created lazily
# ---------------------------------------------------------------------------
class GuildSettings(Base):
    __tablename__ = "guild_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    # Award amounts
    msg_xp: Mapped[int] = mapped_column(Integer, default=DEFAULT_MSG_XP)
    reaction_xp: Mapped[int] = mapped_column(Integer, default=DEFAULT_REACTION_XP)
    voice_xp_per_minute: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_VOICE_XP_PER_MINUTE
    )

    # Cooldowns
    msg_cooldown_seconds: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MSG_COOLDOWN_SECONDS
    )
    reaction_cooldown_seconds: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_REACTION_COOLDOWN_SECONDS
    )

    # Decay
    decay_enabled: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_DECAY_ENABLED)
    decay_window_days: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_DECAY_WINDOW_DAYS
    )
    decay_min_messages: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_DECAY_MIN_MESSAGES
    )
    decay_percent: Mapped[float] = mapped_column(Float, default=DEFAULT_DECAY_PERCENT)

    # Level curve: XP for level L is L² × factor
    level_curve_factor: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_LEVEL_CURVE_FACTOR
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GuildSettings guild={self.guild_id} factor={self.level_curve_factor}>"


# ---------------------------------------------------------------------------
# UserScore: one row per guild member, never deleted
# ---------------------------------------------------------------------------
class UserScore(Base):
    __tablename__ = "user_scores"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_user_scores_guild_xp", "guild_id", "xp"),
    )

    def __repr__(self) -> str:
        return f"<UserScore guild={self.guild_id} user={self.user_id} xp={self.xp}>"


# ---------------------------------------------------------------------------
# ActivityRecord: append-only activity journal
# ---------------------------------------------------------------------------
class ActivityRecord(Base):
    __tablename__ = "activity_log"

    # SQLite only autoincrements an INTEGER PRIMARY KEY.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("ix_activity_recent", "guild_id", "user_id", "kind", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityRecord id={self.id} user={self.user_id} kind={self.kind}>"


# ---------------------------------------------------------------------------
# LevelRole: level → role mapping with drop grace
# ---------------------------------------------------------------------------
class LevelRole(Base):
    __tablename__ = "level_roles"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    role_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    required_level: Mapped[int] = mapped_column(Integer, nullable=False)
    drop_grace_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_DROP_GRACE_DAYS
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<LevelRole guild={self.guild_id} role={self.role_id} "
            f"level={self.required_level} grace={self.drop_grace_days}>"
        )


# ---------------------------------------------------------------------------
# RoleDropState: when a member first fell below a role's level
# ---------------------------------------------------------------------------
class RoleDropState(Base):
    __tablename__ = "role_drop_state"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    role_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    below_since: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_role_drop_state_guild_role", "guild_id", "role_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<RoleDropState guild={self.guild_id} user={self.user_id} "
            f"role={self.role_id} below_since={self.below_since}>"
        )


# ---------------------------------------------------------------------------
# AllowedCommandChannel: empty set means commands are allowed everywhere
# ---------------------------------------------------------------------------
class AllowedCommandChannel(Base):
    __tablename__ = "allowed_command_channels"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<AllowedCommandChannel guild={self.guild_id} channel={self.channel_id}>"
