"""
ascend.bot.cogs.commands — Slash Commands
==========================================

Member commands:
- /xp — a member's XP, level and rank
- /leaderboard — top members by XP (1–20, default 10)

Admin commands (require **Manage Server**):
- /setxp — XP rates and cooldowns
- /setdecay — decay switch, threshold and percent
- /leveltorole set|remove|list — level → role mappings
- /setcommandchannel add|remove|list — command channel allow-list
- /settings — everything above in one view

When a guild has allowed command channels, every command used outside
them is refused with an ephemeral notice.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ascend.constants import (
    LEADERBOARD_DEFAULT_LIMIT,
    LEADERBOARD_MAX_LIMIT,
    MAX_DECAY_PERCENT,
    RANK_BADGES,
)
from ascend.database.engine import run_db
from ascend.engine.levels import level_from_xp, xp_range_for_level
from ascend.errors import ValidationError
from ascend.services.command_channel_service import (
    add_allowed_channel,
    is_command_allowed,
    list_allowed_channels,
    remove_allowed_channel,
)
from ascend.services.level_role_service import (
    delete_level_role,
    list_level_roles,
    upsert_level_role,
)
from ascend.services.score_service import get_xp, rank_of, top_users
from ascend.services.settings_service import (
    SettingsPatch,
    get_guild_settings,
    update_guild_settings,
)

if TYPE_CHECKING:
    from ascend.bot.core import AscendBot

logger = logging.getLogger(__name__)

_MANAGE_GUILD = discord.Permissions(manage_guild=True)


class CommandChannelRestricted(app_commands.CheckFailure):
    """Raised when a command is used outside the guild's allowed channels."""


class NotGuildAdmin(app_commands.CheckFailure):
    """Raised when a non-admin uses an admin command."""


def in_command_channel():
    """Check that the interaction's channel accepts commands."""
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild_id is None:
            return False
        bot: AscendBot = interaction.client  # type: ignore[assignment]
        allowed = await run_db(
            is_command_allowed, bot.engine, interaction.guild_id, interaction.channel_id
        )
        if not allowed:
            raise CommandChannelRestricted()
        return True
    return app_commands.check(predicate)


def is_admin():
    """Check that the user holds the Manage Server permission."""
    async def predicate(interaction: discord.Interaction) -> bool:
        perms = getattr(interaction.user, "guild_permissions", None)
        if perms is None or not perms.manage_guild:
            raise NotGuildAdmin()
        return True
    return app_commands.check(predicate)


def clamp_leaderboard_limit(limit: int | None) -> int:
    if limit is None:
        return LEADERBOARD_DEFAULT_LIMIT
    return max(1, min(LEADERBOARD_MAX_LIMIT, int(limit)))


def decay_fraction_from_percent(percent: float) -> float:
    """``/setdecay`` takes a percentage; storage wants a fraction ≤ 0.95."""
    return max(0.0, min(MAX_DECAY_PERCENT, percent / 100))


def _display_name(guild: discord.Guild | None, user_id: int) -> str:
    member = guild.get_member(user_id) if guild else None
    return member.display_name if member else f"User {user_id}"


class Commands(commands.Cog, name="Commands"):
    """Member and admin slash commands."""

    leveltorole = app_commands.Group(
        name="leveltorole",
        description="Manage level → role mappings.",
        guild_only=True,
        default_permissions=_MANAGE_GUILD,
    )
    setcommandchannel = app_commands.Group(
        name="setcommandchannel",
        description="Restrict which channels accept Ascend commands.",
        guild_only=True,
        default_permissions=_MANAGE_GUILD,
    )

    def __init__(self, bot: AscendBot) -> None:
        self.bot = bot

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        if isinstance(error, CommandChannelRestricted):
            message = "Commands aren't enabled in this channel."
        elif isinstance(error, NotGuildAdmin):
            message = "You don't have permission to use this."
        elif isinstance(error, app_commands.CheckFailure):
            message = "This command can only be used in a server."
        else:
            original = getattr(error, "original", error)
            if isinstance(original, ValidationError):
                message = f"❌ Invalid value — {original}"
            else:
                logger.exception(
                    "Command /%s failed in guild %s",
                    interaction.command.qualified_name if interaction.command else "?",
                    interaction.guild_id,
                    exc_info=original,
                )
                message = "❌ Something went wrong. Please try again later."

        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)

    # -------------------------------------------------------------------
    # /xp
    # -------------------------------------------------------------------
    @app_commands.command(name="xp", description="Show XP and level for yourself or another member.")
    @app_commands.describe(user="The member to look up (defaults to you)")
    @app_commands.guild_only()
    @in_command_channel()
    async def xp(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        target = user or interaction.user
        guild_id = interaction.guild_id or 0
        engine = self.bot.engine

        settings = await run_db(get_guild_settings, engine, guild_id)
        xp = await run_db(get_xp, engine, guild_id, target.id)
        rank = await run_db(rank_of, engine, guild_id, target.id)
        level = level_from_xp(xp, settings.level_curve_factor)
        _, next_at = xp_range_for_level(level, settings.level_curve_factor)

        rank_text = f" — rank **#{rank}**" if rank else ""
        await interaction.response.send_message(
            f"{target.mention}: **{xp:,} XP** (Level **{level}**, next at {next_at:,}){rank_text}",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /leaderboard
    # -------------------------------------------------------------------
    @app_commands.command(name="leaderboard", description="Show the top members by XP.")
    @app_commands.describe(limit=f"How many members to show (1–{LEADERBOARD_MAX_LIMIT})")
    @app_commands.guild_only()
    @in_command_channel()
    async def leaderboard(
        self, interaction: discord.Interaction, limit: int | None = None
    ) -> None:
        guild_id = interaction.guild_id or 0
        limit = clamp_leaderboard_limit(limit)

        settings = await run_db(get_guild_settings, self.bot.engine, guild_id)
        rows = await run_db(top_users, self.bot.engine, guild_id, limit)
        if not rows:
            await interaction.response.send_message(
                "No leaderboard data yet.", ephemeral=True,
            )
            return

        lines = []
        for i, row in enumerate(rows, 1):
            medal = RANK_BADGES[i - 1] if i <= len(RANK_BADGES) else f"**{i}.**"
            lvl = level_from_xp(row.xp, settings.level_curve_factor)
            name = _display_name(interaction.guild, row.user_id)
            lines.append(f"{medal} **{name}** — {row.xp:,} XP (Lv. {lvl})")

        embed = discord.Embed(
            title=f"\U0001f3c6 Leaderboard — Top {limit}",
            description="\n".join(lines),
            color=discord.Color.gold(),
        )
        await interaction.response.send_message(embed=embed)

    # -------------------------------------------------------------------
    # /setxp
    # -------------------------------------------------------------------
    @app_commands.command(name="setxp", description="Set XP rates and cooldowns.")
    @app_commands.describe(
        message="XP per message",
        reaction="XP per reaction added",
        voice="XP per eligible voice minute",
        msgcooldown="Seconds between message awards",
        reactioncooldown="Seconds between reaction awards",
    )
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @is_admin()
    @in_command_channel()
    async def setxp(
        self,
        interaction: discord.Interaction,
        message: Optional[app_commands.Range[int, 0]] = None,
        reaction: Optional[app_commands.Range[int, 0]] = None,
        voice: Optional[app_commands.Range[int, 0]] = None,
        msgcooldown: Optional[app_commands.Range[int, 0]] = None,
        reactioncooldown: Optional[app_commands.Range[int, 0]] = None,
    ) -> None:
        patch = SettingsPatch(
            msg_xp=message,
            reaction_xp=reaction,
            voice_xp_per_minute=voice,
            msg_cooldown_seconds=msgcooldown,
            reaction_cooldown_seconds=reactioncooldown,
        )
        updated = await run_db(
            update_guild_settings, self.bot.engine, interaction.guild_id or 0, patch
        )
        await interaction.response.send_message(
            "Updated XP settings:\n"
            f"- message XP: **{updated.msg_xp}**\n"
            f"- reaction XP: **{updated.reaction_xp}**\n"
            f"- voice XP/min: **{updated.voice_xp_per_minute}**\n"
            f"- message cooldown: **{updated.msg_cooldown_seconds}s**\n"
            f"- reaction cooldown: **{updated.reaction_cooldown_seconds}s**",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /setdecay
    # -------------------------------------------------------------------
    @app_commands.command(name="setdecay", description="Configure XP decay for inactive members.")
    @app_commands.describe(
        enabled="Turn decay on or off",
        messages="Messages needed within the window to avoid decay",
        days="Length of the activity window in days",
        percent="Share of XP removed per decay pass (0–95)",
    )
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @is_admin()
    @in_command_channel()
    async def setdecay(
        self,
        interaction: discord.Interaction,
        enabled: bool | None = None,
        messages: Optional[app_commands.Range[int, 0]] = None,
        days: Optional[app_commands.Range[int, 1]] = None,
        percent: Optional[app_commands.Range[float, 0.0, 95.0]] = None,
    ) -> None:
        patch = SettingsPatch(
            decay_enabled=enabled,
            decay_min_messages=messages,
            decay_window_days=days,
            decay_percent=None if percent is None else decay_fraction_from_percent(percent),
        )
        updated = await run_db(
            update_guild_settings, self.bot.engine, interaction.guild_id or 0, patch
        )
        await interaction.response.send_message(
            "Updated decay:\n"
            f"- enabled: **{updated.decay_enabled}**\n"
            f"- threshold: **{updated.decay_min_messages} messages / "
            f"{updated.decay_window_days} days**\n"
            f"- decay: **{round(updated.decay_percent * 100)}%**",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /leveltorole
    # -------------------------------------------------------------------
    @leveltorole.command(name="set", description="Grant a role at a level.")
    @app_commands.describe(
        role="Role to grant",
        level="Level required",
        dropdays="Days below the level before the role is removed",
    )
    @is_admin()
    @in_command_channel()
    async def leveltorole_set(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        level: app_commands.Range[int, 0],
        dropdays: app_commands.Range[int, 0],
    ) -> None:
        await run_db(
            upsert_level_role, self.bot.engine, interaction.guild_id or 0,
            role.id, level, dropdays,
        )
        await interaction.response.send_message(
            f"Mapped role {role.mention} to **Level {level}** with **{dropdays}** "
            "day(s) grace before removal.",
            ephemeral=True,
        )

    @leveltorole.command(name="remove", description="Stop managing a role.")
    @app_commands.describe(role="Role to unmap")
    @is_admin()
    @in_command_channel()
    async def leveltorole_remove(
        self, interaction: discord.Interaction, role: discord.Role
    ) -> None:
        removed = await run_db(
            delete_level_role, self.bot.engine, interaction.guild_id or 0, role.id
        )
        text = (
            f"Removed mapping for {role.mention}."
            if removed else f"{role.mention} was not mapped to a level."
        )
        await interaction.response.send_message(text, ephemeral=True)

    @leveltorole.command(name="list", description="List level → role mappings.")
    @is_admin()
    @in_command_channel()
    async def leveltorole_list(self, interaction: discord.Interaction) -> None:
        rows = await run_db(list_level_roles, self.bot.engine, interaction.guild_id or 0)
        if not rows:
            await interaction.response.send_message(
                "No level→role mappings configured.", ephemeral=True,
            )
            return
        await interaction.response.send_message(
            "**Level→Role mappings:**\n" + _format_level_roles(rows), ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /setcommandchannel
    # -------------------------------------------------------------------
    @setcommandchannel.command(name="add", description="Allow commands in a channel.")
    @app_commands.describe(channel="Channel to allow")
    @is_admin()
    @in_command_channel()
    async def setcommandchannel_add(
        self, interaction: discord.Interaction, channel: discord.TextChannel
    ) -> None:
        await run_db(add_allowed_channel, self.bot.engine, interaction.guild_id or 0, channel.id)
        await interaction.response.send_message(
            f"Commands are now allowed in {channel.mention}. Once at least one channel "
            "is configured, commands are restricted to allowed channels only.",
            ephemeral=True,
        )

    @setcommandchannel.command(name="remove", description="Remove a channel from the allowed list.")
    @app_commands.describe(channel="Channel to remove")
    @is_admin()
    @in_command_channel()
    async def setcommandchannel_remove(
        self, interaction: discord.Interaction, channel: discord.TextChannel
    ) -> None:
        await run_db(
            remove_allowed_channel, self.bot.engine, interaction.guild_id or 0, channel.id
        )
        await interaction.response.send_message(
            f"Removed {channel.mention} from allowed command channels.", ephemeral=True,
        )

    @setcommandchannel.command(name="list", description="List allowed command channels.")
    @is_admin()
    @in_command_channel()
    async def setcommandchannel_list(self, interaction: discord.Interaction) -> None:
        ids = await run_db(list_allowed_channels, self.bot.engine, interaction.guild_id or 0)
        if not ids:
            await interaction.response.send_message(
                "No allowed channels configured — commands are allowed everywhere.",
                ephemeral=True,
            )
            return
        await interaction.response.send_message(
            "**Allowed command channels:**\n" + "\n".join(f"- <#{cid}>" for cid in ids),
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /settings
    # -------------------------------------------------------------------
    @app_commands.command(name="settings", description="Show this server's Ascend settings.")
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @is_admin()
    @in_command_channel()
    async def settings(self, interaction: discord.Interaction) -> None:
        guild_id = interaction.guild_id or 0
        s = await run_db(get_guild_settings, self.bot.engine, guild_id)
        roles = await run_db(list_level_roles, self.bot.engine, guild_id)
        channels = await run_db(list_allowed_channels, self.bot.engine, guild_id)

        role_text = _format_level_roles(roles) if roles else "(none)"
        chan_text = (
            "\n".join(f"- <#{cid}>" for cid in channels)
            if channels else "(none — commands allowed everywhere)"
        )
        await interaction.response.send_message(
            "**Guild Settings**\n"
            f"XP: message **{s.msg_xp}**, reaction **{s.reaction_xp}**, "
            f"voice/min **{s.voice_xp_per_minute}**\n"
            f"Cooldowns: message **{s.msg_cooldown_seconds}s**, "
            f"reaction **{s.reaction_cooldown_seconds}s**\n"
            f"Levels: factor **{s.level_curve_factor}** "
            "(level = floor(sqrt(xp / factor)))\n"
            f"Decay: **{s.decay_enabled}**, threshold "
            f"**{s.decay_min_messages}/{s.decay_window_days}d**, "
            f"percent **{round(s.decay_percent * 100)}%**\n\n"
            f"**Level → Role mappings**\n{role_text}\n\n"
            f"**Allowed command channels**\n{chan_text}",
            ephemeral=True,
        )


def _format_level_roles(rows) -> str:
    return "\n".join(
        f"- <@&{r.role_id}>: Level **{r.required_level}** "
        f"(remove after **{r.drop_grace_days}** day(s) below)"
        for r in rows
    )


async def setup(bot: AscendBot) -> None:
    await bot.add_cog(Commands(bot))
