"""
ascend.services.award_service — Message, Reaction & Voice Awards
=================================================================

Shared service module called by the bot cogs (and directly by tests).

Pipeline per event::

    eligibility (rate > 0, cooldown) → add_xp → log_activity → level_from_xp

Role synchronization needs the member's live roles, so it happens in the
bot layer after these functions return.  Everything here is synchronous;
cogs call it through :func:`~ascend.database.engine.run_db`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from sqlalchemy import Engine

from ascend.constants import utcnow
from ascend.database.models import ActivityKind
from ascend.engine.cooldowns import CooldownRegistry, CooldownTracker
from ascend.engine.events import AwardResult, VoiceAward, VoiceMemberState
from ascend.engine.levels import level_from_xp
from ascend.engine.voice import eligible_voice_members
from ascend.services.score_service import add_xp, get_xp, log_activity
from ascend.services.settings_service import get_guild_settings

logger = logging.getLogger(__name__)


def _record_award(
    engine: Engine,
    tracker: CooldownTracker,
    *,
    guild_id: int,
    user_id: int,
    amount: int,
    cooldown_seconds: int,
    level_factor: int,
    kind: ActivityKind,
    now: datetime,
) -> AwardResult:
    """Shared body of the message and reaction award paths."""
    if amount <= 0:
        xp = get_xp(engine, guild_id, user_id)
        return AwardResult(False, xp, level_from_xp(xp, level_factor))

    if not tracker.try_acquire((guild_id, user_id), cooldown_seconds, now.timestamp()):
        logger.debug(
            "%s cooldown active for user %d in guild %d",
            kind.value, user_id, guild_id,
        )
        xp = get_xp(engine, guild_id, user_id)
        return AwardResult(False, xp, level_from_xp(xp, level_factor))

    new_xp = add_xp(engine, guild_id, user_id, amount, now=now)
    log_activity(engine, guild_id, user_id, kind, 1, now=now)

    new_level = level_from_xp(new_xp, level_factor)
    logger.debug(
        "Awarded %d XP (%s) to user %d in guild %d → %d XP, level %d",
        amount, kind.value, user_id, guild_id, new_xp, new_level,
    )
    return AwardResult(True, new_xp, new_level)


def record_message_event(
    engine: Engine,
    cooldowns: CooldownRegistry,
    guild_id: int,
    user_id: int,
    now: datetime | None = None,
) -> AwardResult:
    """Award message XP if the guild pays for messages and the cooldown allows."""
    settings = get_guild_settings(engine, guild_id)
    return _record_award(
        engine,
        cooldowns.messages,
        guild_id=guild_id,
        user_id=user_id,
        amount=settings.msg_xp,
        cooldown_seconds=settings.msg_cooldown_seconds,
        level_factor=settings.level_curve_factor,
        kind=ActivityKind.MESSAGE,
        now=now or utcnow(),
    )


def record_reaction_add_event(
    engine: Engine,
    cooldowns: CooldownRegistry,
    guild_id: int,
    user_id: int,
    now: datetime | None = None,
) -> AwardResult:
    """Award reaction XP to the reacting member.  Removals are never penalized."""
    settings = get_guild_settings(engine, guild_id)
    return _record_award(
        engine,
        cooldowns.reactions,
        guild_id=guild_id,
        user_id=user_id,
        amount=settings.reaction_xp,
        cooldown_seconds=settings.reaction_cooldown_seconds,
        level_factor=settings.level_curve_factor,
        kind=ActivityKind.REACTION,
        now=now or utcnow(),
    )


def run_voice_tick(
    engine: Engine,
    guild_id: int,
    channels: Mapping[int, Iterable[VoiceMemberState]],
    now: datetime | None = None,
    *,
    afk_channel_id: int | None = None,
) -> list[VoiceAward]:
    """Credit one voice minute to every eligible member of *guild_id*.

    *channels* maps voice channel id → the members currently in it.
    A failure for one member is logged and the tick continues.
    """
    now = now or utcnow()
    settings = get_guild_settings(engine, guild_id)
    amount = max(0, settings.voice_xp_per_minute)
    if amount <= 0:
        return []

    awards: list[VoiceAward] = []
    for channel_id, user_ids in eligible_voice_members(
        channels, afk_channel_id=afk_channel_id
    ).items():
        for user_id in user_ids:
            try:
                new_xp = add_xp(engine, guild_id, user_id, amount, now=now)
                log_activity(
                    engine, guild_id, user_id, ActivityKind.VOICE_MINUTE, 1, now=now
                )
            except Exception:
                logger.exception(
                    "Failed awarding voice XP in guild %d for user %d in channel %d",
                    guild_id, user_id, channel_id,
                )
                continue
            awards.append(VoiceAward(
                user_id=user_id,
                channel_id=channel_id,
                new_xp=new_xp,
                new_level=level_from_xp(new_xp, settings.level_curve_factor),
            ))

    if awards:
        logger.info(
            "Voice tick: %d member(s) credited in guild %d", len(awards), guild_id
        )
    return awards
