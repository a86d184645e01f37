"""
ascend.services.command_channel_service — Command channel allow-list
=====================================================================

A guild with no allowed channels accepts slash commands everywhere.
Once at least one channel is added, commands are only answered there.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.exc import IntegrityError

from ascend.constants import utcnow
from ascend.database.engine import get_session
from ascend.database.models import AllowedCommandChannel

logger = logging.getLogger(__name__)


def add_allowed_channel(engine: Engine, guild_id: int, channel_id: int) -> bool:
    """Allow commands in *channel_id*.  Returns False if it was already allowed."""
    with get_session(engine) as session:
        if session.get(AllowedCommandChannel, (guild_id, channel_id)) is not None:
            return False
        try:
            with session.begin_nested():
                session.add(AllowedCommandChannel(
                    guild_id=guild_id, channel_id=channel_id, created_at=utcnow(),
                ))
                session.flush()
        except IntegrityError:
            return False
    logger.info("Command channel %d allowed in guild %d", channel_id, guild_id)
    return True


def remove_allowed_channel(engine: Engine, guild_id: int, channel_id: int) -> bool:
    with get_session(engine) as session:
        result = session.execute(
            delete(AllowedCommandChannel).where(
                AllowedCommandChannel.guild_id == guild_id,
                AllowedCommandChannel.channel_id == channel_id,
            )
        )
        removed = bool(result.rowcount)
    if removed:
        logger.info("Command channel %d removed in guild %d", channel_id, guild_id)
    return removed


def list_allowed_channels(engine: Engine, guild_id: int) -> list[int]:
    with get_session(engine) as session:
        return list(session.scalars(
            select(AllowedCommandChannel.channel_id)
            .where(AllowedCommandChannel.guild_id == guild_id)
            .order_by(AllowedCommandChannel.channel_id)
        ).all())


def is_command_allowed(engine: Engine, guild_id: int, channel_id: int | None) -> bool:
    """True if commands may run in *channel_id* of *guild_id*."""
    with get_session(engine) as session:
        total = session.scalar(
            select(func.count())
            .select_from(AllowedCommandChannel)
            .where(AllowedCommandChannel.guild_id == guild_id)
        ) or 0
        if total == 0:
            return True
        if channel_id is None:
            return False
        return session.get(AllowedCommandChannel, (guild_id, channel_id)) is not None
