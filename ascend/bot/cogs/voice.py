"""
ascend.bot.cogs.voice — Voice Minute XP
========================================

Every minute, on the minute, snapshot each guild's voice channels and
credit one voice minute to every eligible member (see
:mod:`ascend.engine.voice` for the rules: no bots, not muted/deafened,
not in the AFK channel, at least two eligible members per channel).

A tick that starts while the previous one is still running is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from ascend.constants import utcnow
from ascend.database.engine import run_db
from ascend.engine.events import VoiceMemberState
from ascend.services.award_service import run_voice_tick
from ascend.services.role_actions import sync_member_roles

if TYPE_CHECKING:
    from ascend.bot.core import AscendBot

logger = logging.getLogger(__name__)


def snapshot_voice_channels(guild: discord.Guild) -> dict[int, list[VoiceMemberState]]:
    """Capture ``channel id → member voice states`` for *guild*."""
    channels: dict[int, list[VoiceMemberState]] = {}
    for channel in guild.voice_channels:
        states: list[VoiceMemberState] = []
        for member in channel.members:
            voice = member.voice
            states.append(VoiceMemberState(
                user_id=member.id,
                bot=member.bot,
                self_mute=bool(voice and voice.self_mute),
                server_mute=bool(voice and voice.mute),
                self_deaf=bool(voice and voice.self_deaf),
                server_deaf=bool(voice and voice.deaf),
            ))
        if states:
            channels[channel.id] = states
    return channels


class Voice(commands.Cog, name="Voice"):
    """Credits voice minutes to members talking together."""

    def __init__(self, bot: AscendBot) -> None:
        self.bot = bot
        self._tick_running = False

    async def cog_load(self) -> None:
        self.voice_tick_loop.start()

    async def cog_unload(self) -> None:
        self.voice_tick_loop.cancel()

    @tasks.loop(minutes=1)
    async def voice_tick_loop(self) -> None:
        if self._tick_running:
            logger.warning("Previous voice tick still running — skipping this minute")
            return
        self._tick_running = True
        try:
            now = utcnow()
            for guild in self.bot.guilds:
                try:
                    await self._tick_guild(guild, now)
                except Exception:
                    logger.exception("Voice tick failed for guild %d", guild.id)
        finally:
            self._tick_running = False

    @voice_tick_loop.before_loop
    async def _align_to_minute(self) -> None:
        await self.bot.wait_until_ready()
        now = utcnow()
        delay = 60 - now.second - now.microsecond / 1_000_000
        await asyncio.sleep(delay)

    async def _tick_guild(self, guild: discord.Guild, now) -> None:
        channels = snapshot_voice_channels(guild)
        if not channels:
            return

        awards = await run_db(
            run_voice_tick,
            self.bot.engine,
            guild.id,
            channels,
            now,
            afk_channel_id=guild.afk_channel.id if guild.afk_channel else None,
        )
        for award in awards:
            member = guild.get_member(award.user_id)
            if member is None:
                continue
            try:
                await sync_member_roles(self.bot.engine, member, award.new_level)
            except Exception:
                logger.exception(
                    "Role sync after voice tick failed for user %d in guild %d",
                    award.user_id, guild.id,
                )


async def setup(bot: AscendBot) -> None:
    await bot.add_cog(Voice(bot))
