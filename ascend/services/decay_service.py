"""
ascend.services.decay_service — Daily XP Decay
===============================================

Members who sent fewer than ``decay_min_messages`` messages in the last
``decay_window_days`` lose ``decay_percent`` of their XP::

    new_xp = floor(xp × (1 - clamp(decay_percent, 0, 0.95)))

Only message activity counts toward the threshold; reactions and voice
minutes do not.  Each member is processed independently, so one failure
is logged and the pass moves on.  The bot layer re-syncs level roles for
every returned :class:`~ascend.engine.events.DecayChange`.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from sqlalchemy import Engine

from ascend.constants import MAX_DECAY_PERCENT, utcnow
from ascend.database.models import ActivityKind
from ascend.engine.events import DecayChange
from ascend.engine.levels import level_from_xp
from ascend.services.score_service import all_scores, count_in_window, set_xp
from ascend.services.settings_service import get_guild_settings

logger = logging.getLogger(__name__)


def effective_decay_percent(value) -> float:
    """Clamp a stored decay fraction into ``[0, 0.95]`` (NaN → 0)."""
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(pct):
        return 0.0
    return min(MAX_DECAY_PERCENT, max(0.0, pct))


def decayed_xp(xp: int, decay_percent: float) -> int:
    return math.floor(xp * (1 - effective_decay_percent(decay_percent)))


def run_decay_pass(
    engine: Engine,
    guild_id: int,
    now: datetime | None = None,
) -> list[DecayChange]:
    """Decay every insufficiently active member of *guild_id*.

    Returns the members whose XP actually changed.
    """
    now = now or utcnow()
    settings = get_guild_settings(engine, guild_id)
    if not settings.decay_enabled:
        logger.debug("Decay disabled for guild %d — skipping", guild_id)
        return []

    changes: list[DecayChange] = []
    scores = all_scores(engine, guild_id)
    for score in scores:
        try:
            messages = count_in_window(
                engine,
                guild_id,
                score.user_id,
                ActivityKind.MESSAGE,
                settings.decay_window_days,
                now=now,
            )
            if messages >= settings.decay_min_messages:
                continue

            new_xp = decayed_xp(score.xp, settings.decay_percent)
            if new_xp == score.xp:
                continue

            set_xp(engine, guild_id, score.user_id, new_xp, now=now)
        except Exception:
            logger.exception(
                "Decay failed for user %d in guild %d", score.user_id, guild_id,
            )
            continue

        changes.append(DecayChange(
            user_id=score.user_id,
            old_xp=score.xp,
            new_xp=new_xp,
            new_level=level_from_xp(new_xp, settings.level_curve_factor),
        ))

    logger.info(
        "Decay pass complete for guild %d: %d of %d member(s) decayed "
        "(window=%dd, min_messages=%d, percent=%.2f)",
        guild_id, len(changes), len(scores),
        settings.decay_window_days, settings.decay_min_messages,
        effective_decay_percent(settings.decay_percent),
    )
    return changes
