"""
ascend.services.role_sync_service — Drop Timers & Sync Decisions
=================================================================

Wraps the pure planner in :mod:`ascend.engine.roles` with persistence:

1. :func:`sync_roles` loads the guild's mappings and the member's drop
   timers, plans, writes timer starts/clears, and returns the plan.  It
   never talks to Discord.
2. The caller performs the grants/revokes it asked for.
3. :func:`confirm_role_action` is called for each *successful* grant or
   revoke, clearing the member's timer for that role.

A failed Discord call is simply not confirmed, so the stored state is
unchanged and the next sync plans the same action again.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Collection
from datetime import datetime

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from ascend.constants import as_utc, utcnow
from ascend.database.engine import get_session
from ascend.database.models import LevelRole, RoleDropState
from ascend.engine.roles import LevelRoleRule, RoleSyncPlan, plan_role_sync

logger = logging.getLogger(__name__)


class RoleAction(enum.StrEnum):
    GRANT = "grant"
    REVOKE = "revoke"


# ---------------------------------------------------------------------------
# Timer helpers
# ---------------------------------------------------------------------------
def _set_below_since(
    session: Session,
    guild_id: int,
    user_id: int,
    role_id: int,
    below_since: datetime | None,
    now: datetime,
) -> None:
    row = session.get(RoleDropState, (guild_id, user_id, role_id))
    if row is None:
        if below_since is None:
            return   # absence already means "not tracked"
        session.add(RoleDropState(
            guild_id=guild_id,
            user_id=user_id,
            role_id=role_id,
            below_since=below_since,
            updated_at=now,
        ))
        return
    row.below_since = below_since
    row.updated_at = now


def _load_timers(session: Session, guild_id: int, user_id: int) -> dict[int, datetime]:
    rows = session.scalars(
        select(RoleDropState).where(
            RoleDropState.guild_id == guild_id,
            RoleDropState.user_id == user_id,
            RoleDropState.below_since.is_not(None),
        )
    ).all()
    return {r.role_id: as_utc(r.below_since) for r in rows}


def get_below_since(engine: Engine, guild_id: int, user_id: int) -> dict[int, datetime]:
    """role id → timer start for every running timer of the member."""
    with get_session(engine) as session:
        return _load_timers(session, guild_id, user_id)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def sync_roles(
    engine: Engine,
    guild_id: int,
    user_id: int,
    current_level: int,
    held_role_ids: Collection[int],
    now: datetime | None = None,
) -> RoleSyncPlan:
    """Decide which mapped roles to grant or revoke for a member.

    Timer starts and clears are persisted here; grants and revokes are
    returned for the caller to perform and confirm.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        rules = [
            LevelRoleRule(r.role_id, r.required_level, r.drop_grace_days)
            for r in session.scalars(
                select(LevelRole)
                .where(LevelRole.guild_id == guild_id)
                .order_by(LevelRole.required_level, LevelRole.role_id)
            ).all()
        ]
        if not rules:
            return RoleSyncPlan()

        timers = _load_timers(session, guild_id, user_id)

        plan = plan_role_sync(current_level, rules, held_role_ids, timers, now)

        for role_id in plan.start_timers:
            _set_below_since(session, guild_id, user_id, role_id, now, now)
        for role_id in plan.clear_timers:
            _set_below_since(session, guild_id, user_id, role_id, None, now)

    if plan.start_timers:
        logger.info(
            "User %d in guild %d dropped below level for role(s) %s — grace timer started",
            user_id, guild_id, plan.start_timers,
        )
    return plan


def confirm_role_action(
    engine: Engine,
    guild_id: int,
    user_id: int,
    role_id: int,
    action: RoleAction | str,
    now: datetime | None = None,
) -> None:
    """Record that Discord confirmed a grant or revoke: clear the timer."""
    action = RoleAction(action)
    with get_session(engine) as session:
        _set_below_since(session, guild_id, user_id, role_id, None, now or utcnow())
    logger.debug(
        "Confirmed %s of role %d for user %d in guild %d",
        action.value, role_id, user_id, guild_id,
    )
