"""
ascend.bot.core — Bot Instance & Cog Loader
============================================

Defines :class:`AscendBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), DB engine (``bot.engine``) and
   cooldown registry (``bot.cooldowns``) so every Cog can reach them via
   ``self.bot.*``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production — controlled by the ``DEV_GUILD_ID`` env var).
4. Makes sure every joined guild has a ``guild_settings`` row.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from ascend.config import AscendConfig
from ascend.database.engine import run_db
from ascend.engine.cooldowns import CooldownRegistry
from ascend.services.settings_service import get_guild_settings

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "ascend.bot.cogs.events",
    "ascend.bot.cogs.voice",
    "ascend.bot.cogs.tasks",
    "ascend.bot.cogs.commands",
]


class AscendBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`AscendConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to the XP database.
    """

    def __init__(self, cfg: AscendConfig, engine: Engine) -> None:
        # GUILD_MEMBERS is privileged: needed to resolve members for role
        # sync on reactions and during the decay pass.
        intents = discord.Intents.default()
        intents.members = True
        intents.voice_states = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description="Ascend — activity XP and level roles",
        )

        self.cfg = cfg
        self.engine = engine
        self.cooldowns = CooldownRegistry()

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Called once before the bot connects to Discord.

        One broken Cog shouldn't take down the whole bot, so load failures
        are logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        # --- Slash-command sync ---------------------------------------------
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        # --- Lazily-created settings rows for every guild -------------------
        for guild in self.guilds:
            try:
                await run_db(get_guild_settings, self.engine, guild.id)
            except Exception:
                logger.exception("Could not load settings for guild %d", guild.id)
        logger.info("Serving %d guild(s)", len(self.guilds))

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info("Joined guild %s (ID: %d)", guild.name, guild.id)
        try:
            await run_db(get_guild_settings, self.engine, guild.id)
        except Exception:
            logger.exception("Could not create settings for guild %d", guild.id)

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()
