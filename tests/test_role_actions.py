"""
tests/test_role_actions.py — Discord Role Applier Tests
========================================================

Discord objects are mocks; the database is the in-memory SQLite engine.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

from ascend.engine.roles import RoleSyncPlan
from ascend.services.level_role_service import upsert_level_role
from ascend.services.role_actions import RoleOutcome, apply_role_plan, sync_member_roles
from ascend.services.role_sync_service import RoleAction, get_below_since, sync_roles

from conftest import GUILD_ID, T0, run_async

ROLE = 7001
USER = 42


def _make_member(*, held: list[int] | None = None, known_roles: list[int] | None = None,
                 bot: bool = False) -> MagicMock:
    """Create a mock guild member whose guild knows *known_roles*."""
    known = {rid: SimpleNamespace(id=rid, name=f"role-{rid}") for rid in ([ROLE] if known_roles is None else known_roles)}
    guild = MagicMock()
    guild.id = GUILD_ID
    guild.get_role = lambda rid: known.get(rid)

    member = MagicMock()
    member.id = USER
    member.bot = bot
    member.guild = guild
    member.roles = [SimpleNamespace(id=rid) for rid in (held or [])]
    member.add_roles = AsyncMock()
    member.remove_roles = AsyncMock()
    return member


def _forbidden() -> discord.Forbidden:
    response = MagicMock(status=403, reason="Forbidden")
    return discord.Forbidden(response, "Missing Permissions")


class TestApplyRolePlan:
    def test_grant_success(self, db_engine):
        member = _make_member()
        plan = RoleSyncPlan(to_grant=[ROLE])

        results = run_async(apply_role_plan(db_engine, member, plan))

        assert [(r.role_id, r.action, r.outcome) for r in results] == [
            (ROLE, RoleAction.GRANT, RoleOutcome.GRANTED)
        ]
        member.add_roles.assert_awaited_once()
        assert member.add_roles.await_args.args[0].id == ROLE

    def test_revoke_success_clears_timer(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, ROLE, 5, 0)
        plan = sync_roles(db_engine, GUILD_ID, USER, 1, [ROLE], T0)
        assert get_below_since(db_engine, GUILD_ID, USER) == {ROLE: T0}

        member = _make_member(held=[ROLE])
        results = run_async(apply_role_plan(db_engine, member, plan))

        assert results[0].outcome is RoleOutcome.REVOKED
        member.remove_roles.assert_awaited_once()
        assert get_below_since(db_engine, GUILD_ID, USER) == {}

    def test_forbidden_revoke_is_reported_and_retained(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, ROLE, 5, 0)
        plan = sync_roles(db_engine, GUILD_ID, USER, 1, [ROLE], T0)

        member = _make_member(held=[ROLE])
        member.remove_roles.side_effect = _forbidden()
        results = run_async(apply_role_plan(db_engine, member, plan))

        assert results[0].outcome is RoleOutcome.FAILED
        assert str(ROLE) in results[0].reason
        # timer survives, so the next pass retries
        assert get_below_since(db_engine, GUILD_ID, USER) == {ROLE: T0}

    def test_http_error_on_grant_is_failed(self, db_engine):
        member = _make_member()
        response = MagicMock(status=500, reason="Server Error")
        member.add_roles.side_effect = discord.HTTPException(response, "oops")

        results = run_async(apply_role_plan(db_engine, member, RoleSyncPlan(to_grant=[ROLE])))
        assert results[0].outcome is RoleOutcome.FAILED

    def test_missing_role_skipped(self, db_engine):
        member = _make_member(known_roles=[])
        results = run_async(apply_role_plan(db_engine, member, RoleSyncPlan(to_grant=[ROLE])))

        assert results[0].outcome is RoleOutcome.SKIPPED
        member.add_roles.assert_not_awaited()

    def test_empty_plan(self, db_engine):
        assert run_async(apply_role_plan(db_engine, _make_member(), RoleSyncPlan())) == []


class TestSyncMemberRoles:
    def test_grants_on_level_up(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, ROLE, 5, 3)
        member = _make_member()

        results = run_async(sync_member_roles(db_engine, member, 6))

        assert [r.outcome for r in results] == [RoleOutcome.GRANTED]

    def test_already_held_is_noop(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, ROLE, 5, 3)
        member = _make_member(held=[ROLE])

        assert run_async(sync_member_roles(db_engine, member, 6)) == []
        member.add_roles.assert_not_awaited()

    def test_bots_ignored(self, db_engine):
        upsert_level_role(db_engine, GUILD_ID, ROLE, 5, 3)
        member = _make_member(bot=True)
        assert run_async(sync_member_roles(db_engine, member, 50)) == []
