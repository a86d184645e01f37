"""
ascend.bot.cogs.events — Message & Reaction XP
===============================================

Listens for ``on_message`` and ``on_raw_reaction_add`` and runs them
through the award pipeline.

Pipeline:
1. Gate checks (bot author, DM).
2. ``record_*_event`` on a background thread via ``run_db`` (cooldown,
   atomic XP add, activity log).
3. If XP changed, re-sync the member's level roles.

Reaction removals are ignored: XP is never taken back for them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from ascend.database.engine import run_db
from ascend.services.award_service import record_message_event, record_reaction_add_event
from ascend.services.role_actions import sync_member_roles

if TYPE_CHECKING:
    from ascend.bot.core import AscendBot

logger = logging.getLogger(__name__)


class ActivityEvents(commands.Cog, name="ActivityEvents"):
    """Awards XP for messages and reactions."""

    def __init__(self, bot: AscendBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s",
                message.id, message.author.id,
            )

    async def _handle_message(self, message: discord.Message) -> None:
        """Inner message handler (separated for error isolation)."""
        if message.author.bot or message.guild is None:
            return

        result = await run_db(
            record_message_event,
            self.bot.engine,
            self.bot.cooldowns,
            message.guild.id,
            message.author.id,
        )
        if not result.awarded:
            return

        logger.debug(
            "Message XP: %s → %d XP (level %d)",
            message.author.display_name, result.new_xp, result.new_level,
        )
        if isinstance(message.author, discord.Member):
            await sync_member_roles(self.bot.engine, message.author, result.new_level)

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is added, even on uncached messages."""
        try:
            await self._handle_reaction(payload)
        except Exception:
            logger.exception(
                "Error processing reaction on message %s from user %s",
                payload.message_id, payload.user_id,
            )

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        if payload.member is None or payload.member.bot:
            return

        result = await run_db(
            record_reaction_add_event,
            self.bot.engine,
            self.bot.cooldowns,
            payload.guild_id,
            payload.user_id,
        )
        if not result.awarded:
            return

        logger.debug(
            "Reaction XP: user %d → %d XP (level %d)",
            payload.user_id, result.new_xp, result.new_level,
        )
        await sync_member_roles(self.bot.engine, payload.member, result.new_level)


async def setup(bot: AscendBot) -> None:
    await bot.add_cog(ActivityEvents(bot))
