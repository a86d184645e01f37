"""
ascend.engine.roles — Level → Role State Machine
=================================================

Pure planner for level-role synchronization.  No Discord I/O, no DB I/O.

Each (member, mapped role) pair sits in one of five states:

=====================  ==========  ==========  =================================
State                  Meets lvl   Holds role  Timer
=====================  ==========  ==========  =================================
QUALIFIED_GRANTED      yes         yes         cleared
QUALIFIED_UNGRANTED    yes         no          cleared, grant requested
UNQUALIFIED_CLEAN      no          no          cleared
UNQUALIFIED_PENDING    no          yes         running, grace not elapsed
UNQUALIFIED_EXPIRED    no          yes         grace elapsed, revoke requested
=====================  ==========  ==========  =================================

A revoke request does not clear the timer: the caller clears it once
Discord confirms the removal.  Until then every pass plans the same
revoke again, so a failed call is retried rather than forgotten.
"""

from __future__ import annotations

import enum
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ascend.constants import as_utc


class RoleState(enum.StrEnum):
    QUALIFIED_GRANTED = "qualified_granted"
    QUALIFIED_UNGRANTED = "qualified_ungranted"
    UNQUALIFIED_CLEAN = "unqualified_clean"
    UNQUALIFIED_PENDING = "unqualified_pending"
    UNQUALIFIED_EXPIRED = "unqualified_expired"


@dataclass(frozen=True, slots=True)
class LevelRoleRule:
    """A level → role mapping as the planner sees it."""

    role_id: int
    required_level: int
    drop_grace_days: int


@dataclass
class RoleSyncPlan:
    """Decisions for one member across every mapped role."""

    states: dict[int, RoleState] = field(default_factory=dict)
    to_grant: list[int] = field(default_factory=list)
    to_revoke: list[int] = field(default_factory=list)
    start_timers: list[int] = field(default_factory=list)
    clear_timers: list[int] = field(default_factory=list)

    @property
    def has_actions(self) -> bool:
        """True when the caller must talk to Discord."""
        return bool(self.to_grant or self.to_revoke)

    @property
    def has_timer_changes(self) -> bool:
        return bool(self.start_timers or self.clear_timers)


def grace_elapsed(
    below_since: datetime, drop_grace_days: int, now: datetime
) -> bool:
    """True when a member has been below level for longer than the grace.

    A grace of zero days means no leniency at all.
    """
    if drop_grace_days <= 0:
        return True
    return as_utc(now) - as_utc(below_since) > timedelta(days=drop_grace_days)


def plan_role_sync(
    level: int,
    rules: Iterable[LevelRoleRule],
    held_role_ids: Collection[int],
    below_since: Mapping[int, datetime | None],
    now: datetime,
) -> RoleSyncPlan:
    """Classify every mapped role and return what must change.

    Parameters
    ----------
    level : the member's current level
    rules : the guild's level → role mappings
    held_role_ids : role ids the member currently holds on Discord
    below_since : role id → timer start (missing or None = no timer)
    now : evaluation time
    """
    plan = RoleSyncPlan()
    held = set(held_role_ids)

    for rule in rules:
        role_id = rule.role_id
        has_role = role_id in held
        since = below_since.get(role_id)

        if level >= rule.required_level:
            if has_role:
                plan.states[role_id] = RoleState.QUALIFIED_GRANTED
            else:
                plan.states[role_id] = RoleState.QUALIFIED_UNGRANTED
                plan.to_grant.append(role_id)
            if since is not None:
                plan.clear_timers.append(role_id)
            continue

        if not has_role:
            plan.states[role_id] = RoleState.UNQUALIFIED_CLEAN
            if since is not None:
                plan.clear_timers.append(role_id)
            continue

        # Below the threshold while still holding the role.
        if since is None:
            plan.start_timers.append(role_id)
            since = now

        if grace_elapsed(since, rule.drop_grace_days, now):
            plan.states[role_id] = RoleState.UNQUALIFIED_EXPIRED
            plan.to_revoke.append(role_id)
        else:
            plan.states[role_id] = RoleState.UNQUALIFIED_PENDING

    return plan
