"""
ascend.bot.cogs.tasks — Periodic Background Tasks
==================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Decay** — daily at ``decay_hour_utc``:00 UTC, decays inactive
  members in every guild and re-syncs their level roles.
- **Cooldown sweep** — every ``cooldown_sweep_minutes``, prunes stale
  cooldown entries so the in-memory maps stay bounded.

Both run in the bot process and reach the database via ``run_db()``.
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from ascend.database.engine import run_db
from ascend.services.decay_service import run_decay_pass
from ascend.services.role_actions import sync_member_roles

if TYPE_CHECKING:
    from ascend.bot.core import AscendBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: AscendBot) -> None:
        self.bot = bot
        self._decay_running = False

    async def cog_load(self) -> None:
        """Apply configured schedules, then start the loops."""
        self.decay_loop.change_interval(
            time=datetime.time(hour=self.bot.cfg.decay_hour_utc, tzinfo=datetime.timezone.utc)
        )
        self.cooldown_sweep_loop.change_interval(minutes=self.bot.cfg.cooldown_sweep_minutes)
        self.decay_loop.start()
        self.cooldown_sweep_loop.start()

    async def cog_unload(self) -> None:
        self.decay_loop.cancel()
        self.cooldown_sweep_loop.cancel()

    # -------------------------------------------------------------------
    # Daily decay
    # -------------------------------------------------------------------
    @tasks.loop(time=datetime.time(hour=4, tzinfo=datetime.timezone.utc))
    async def decay_loop(self) -> None:
        if self._decay_running:
            logger.warning("Previous decay pass still running — skipping")
            return
        self._decay_running = True
        try:
            for guild in self.bot.guilds:
                try:
                    await self._decay_guild(guild)
                except Exception:
                    logger.exception("Decay task failed for guild %d", guild.id)
        finally:
            self._decay_running = False

    @decay_loop.before_loop
    async def _wait_decay(self) -> None:
        await self.bot.wait_until_ready()

    async def _decay_guild(self, guild: discord.Guild) -> None:
        changes = await run_db(run_decay_pass, self.bot.engine, guild.id)
        for change in changes:
            member = guild.get_member(change.user_id)
            if member is None:
                continue
            try:
                await sync_member_roles(self.bot.engine, member, change.new_level)
            except Exception:
                logger.exception(
                    "Role sync after decay failed for user %d in guild %d",
                    change.user_id, guild.id,
                )

    # -------------------------------------------------------------------
    # Cooldown sweep
    # -------------------------------------------------------------------
    @tasks.loop(minutes=10)
    async def cooldown_sweep_loop(self) -> None:
        self.bot.cooldowns.sweep()


async def setup(bot: AscendBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
