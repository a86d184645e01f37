"""
ascend.services.role_actions — Applying Role Plans on Discord
==============================================================

Async bridge between the pure :class:`~ascend.engine.roles.RoleSyncPlan`
and discord.py.  Every requested grant/revoke becomes one explicit
:class:`RoleActionResult`; failures are logged with a permission hint and
returned, never raised.

Only successful actions are confirmed in the database, so a failed revoke
keeps its drop timer and is retried on the member's next sync.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord

from ascend.database.engine import run_db
from ascend.engine.roles import RoleSyncPlan
from ascend.errors import PlatformActionError
from ascend.services.role_sync_service import RoleAction, confirm_role_action, sync_roles

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_AUDIT_REASON = "Ascend level role sync"


class RoleOutcome(enum.StrEnum):
    GRANTED = "granted"
    REVOKED = "revoked"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RoleActionResult:
    role_id: int
    action: RoleAction
    outcome: RoleOutcome
    reason: str | None = None


async def _apply_one(
    engine: Engine,
    member: discord.Member,
    role_id: int,
    action: RoleAction,
) -> RoleActionResult:
    guild = member.guild
    role = guild.get_role(role_id)
    if role is None:
        logger.warning(
            "Mapped role %d no longer exists in guild %d — skipping %s for user %d",
            role_id, guild.id, action.value, member.id,
        )
        return RoleActionResult(role_id, action, RoleOutcome.SKIPPED, "role not found")

    try:
        if action is RoleAction.GRANT:
            await member.add_roles(role, reason=_AUDIT_REASON)
        else:
            await member.remove_roles(role, reason=_AUDIT_REASON)
    except (discord.Forbidden, discord.HTTPException) as exc:
        err = PlatformActionError(
            action.value,
            guild_id=guild.id,
            user_id=member.id,
            role_id=role_id,
            reason=str(exc) or type(exc).__name__,
        )
        logger.error("%s. %s", err, PlatformActionError.HINT)
        return RoleActionResult(role_id, action, RoleOutcome.FAILED, str(err))

    try:
        await run_db(confirm_role_action, engine, guild.id, member.id, role_id, action)
    except Exception:
        # Discord already applied it; the next sync re-derives the state.
        logger.exception(
            "Could not record %s of role %d for user %d in guild %d",
            action.value, role_id, member.id, guild.id,
        )

    outcome = RoleOutcome.GRANTED if action is RoleAction.GRANT else RoleOutcome.REVOKED
    logger.info(
        "Role %d %s for user %d in guild %d", role_id, outcome.value, member.id, guild.id,
    )
    return RoleActionResult(role_id, action, outcome)


async def apply_role_plan(
    engine: Engine,
    member: discord.Member,
    plan: RoleSyncPlan,
) -> list[RoleActionResult]:
    """Perform every grant and revoke in *plan* for *member*."""
    results: list[RoleActionResult] = []
    for role_id in plan.to_grant:
        results.append(await _apply_one(engine, member, role_id, RoleAction.GRANT))
    for role_id in plan.to_revoke:
        results.append(await _apply_one(engine, member, role_id, RoleAction.REVOKE))
    return results


async def sync_member_roles(
    engine: Engine,
    member: discord.Member,
    level: int,
) -> list[RoleActionResult]:
    """Plan and apply level roles for a live guild member.

    Convenience wrapper used by every cog after an XP change.
    """
    if member.bot:
        return []
    held = [r.id for r in member.roles]
    plan = await run_db(sync_roles, engine, member.guild.id, member.id, level, held)
    if not plan.has_actions:
        return []
    return await apply_role_plan(engine, member, plan)
