"""
ascend.services.level_role_service — Level → Role Mappings
===========================================================

CRUD over ``level_roles``.  Deleting a mapping also deletes every
``role_drop_state`` row for that role so no orphaned timer can revoke a
role that is no longer managed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, delete, select

from ascend.constants import utcnow
from ascend.database.engine import get_session
from ascend.database.models import LevelRole, RoleDropState
from ascend.engine.roles import LevelRoleRule
from ascend.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LevelRoleData:
    role_id: int
    required_level: int
    drop_grace_days: int

    def to_rule(self) -> LevelRoleRule:
        return LevelRoleRule(
            role_id=self.role_id,
            required_level=self.required_level,
            drop_grace_days=self.drop_grace_days,
        )


def _validate(required_level: int, drop_grace_days: int) -> None:
    if isinstance(required_level, bool) or not isinstance(required_level, int):
        raise ValidationError("required_level", f"must be an integer, got {required_level!r}")
    if required_level < 0:
        raise ValidationError("required_level", f"must be >= 0, got {required_level}")
    if isinstance(drop_grace_days, bool) or not isinstance(drop_grace_days, int):
        raise ValidationError("drop_grace_days", f"must be an integer, got {drop_grace_days!r}")
    if drop_grace_days < 0:
        raise ValidationError("drop_grace_days", f"must be >= 0, got {drop_grace_days}")


def upsert_level_role(
    engine: Engine,
    guild_id: int,
    role_id: int,
    required_level: int,
    drop_grace_days: int,
) -> LevelRoleData:
    """Create or update the mapping for *role_id*."""
    _validate(required_level, drop_grace_days)
    now = utcnow()
    with get_session(engine) as session:
        row = session.get(LevelRole, (guild_id, role_id))
        if row is None:
            row = LevelRole(
                guild_id=guild_id,
                role_id=role_id,
                required_level=required_level,
                drop_grace_days=drop_grace_days,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
        else:
            row.required_level = required_level
            row.drop_grace_days = drop_grace_days
            row.updated_at = now

    logger.info(
        "Level role set in guild %d: role %d at level %d (grace %d day(s))",
        guild_id, role_id, required_level, drop_grace_days,
    )
    return LevelRoleData(role_id, required_level, drop_grace_days)


def delete_level_role(engine: Engine, guild_id: int, role_id: int) -> bool:
    """Remove the mapping and its drop timers.  Returns True if it existed."""
    with get_session(engine) as session:
        result = session.execute(
            delete(LevelRole).where(
                LevelRole.guild_id == guild_id, LevelRole.role_id == role_id
            )
        )
        timers = session.execute(
            delete(RoleDropState).where(
                RoleDropState.guild_id == guild_id, RoleDropState.role_id == role_id
            )
        )
        removed = bool(result.rowcount)

    logger.info(
        "Level role removed in guild %d: role %d (mapping=%s, timers cleared=%d)",
        guild_id, role_id, removed, timers.rowcount or 0,
    )
    return removed


def list_level_roles(engine: Engine, guild_id: int) -> list[LevelRoleData]:
    """Every mapping in the guild, lowest required level first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(LevelRole)
            .where(LevelRole.guild_id == guild_id)
            .order_by(LevelRole.required_level, LevelRole.role_id)
        ).all()
        return [
            LevelRoleData(r.role_id, r.required_level, r.drop_grace_days)
            for r in rows
        ]
