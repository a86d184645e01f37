"""
ascend.services.score_service — XP Ledger & Activity Log
=========================================================

Durable per-(guild, user) XP counter plus the append-only activity log
used for windowed counts.

``add_xp`` is the hot path.  It is a single transaction: make sure the
row exists (SAVEPOINT + ``IntegrityError`` tolerates a concurrent
insert), then one ``UPDATE … SET xp = CASE …`` that clamps inside the
database.  Concurrent awards for the same member serialize on the row
lock, so there are no lost updates and no application-level locking.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import Engine, case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ascend.constants import DAY_SECONDS, MAX_SAFE_INT, utcnow
from ascend.database.engine import get_session
from ascend.database.models import ActivityKind, ActivityRecord, UserScore
from ascend.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScoreRow:
    user_id: int
    xp: int


# ---------------------------------------------------------------------------
# Value normalization
# ---------------------------------------------------------------------------
def clamp_xp(value) -> int:
    """Floor and clamp any XP-like value into ``[0, MAX_SAFE_INT]``.

    ``None`` and NaN become 0; +inf becomes ``MAX_SAFE_INT``.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return min(MAX_SAFE_INT, max(0, value))
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(as_float):
        return 0
    if math.isinf(as_float):
        return MAX_SAFE_INT if as_float > 0 else 0
    return min(MAX_SAFE_INT, max(0, math.floor(as_float)))


def _clamp_delta(delta) -> int:
    """Coerce *delta* to an int in ``[-MAX_SAFE_INT, MAX_SAFE_INT]``.

    Any wider delta would saturate anyway; bounding it keeps the bound
    parameter inside a 64-bit column type.
    """
    if isinstance(delta, bool):
        return int(delta)
    if isinstance(delta, int):
        return max(-MAX_SAFE_INT, min(MAX_SAFE_INT, delta))
    as_float = float(delta)
    if math.isnan(as_float):
        return 0
    if math.isinf(as_float):
        return MAX_SAFE_INT if as_float > 0 else -MAX_SAFE_INT
    return max(-MAX_SAFE_INT, min(MAX_SAFE_INT, math.floor(as_float)))


# SQL mirror of clamp_xp for the stored column (repairs NULL / out-of-range)
_STORED_XP = case(
    (UserScore.xp.is_(None), 0),
    (UserScore.xp < 0, 0),
    (UserScore.xp > MAX_SAFE_INT, MAX_SAFE_INT),
    else_=UserScore.xp,
)


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------
def _ensure_score_row(
    session: Session, guild_id: int, user_id: int, now: datetime
) -> None:
    """Insert ``(guild_id, user_id, xp=0)`` unless the row already exists."""
    exists = session.scalar(
        select(UserScore.user_id).where(
            UserScore.guild_id == guild_id, UserScore.user_id == user_id
        )
    )
    if exists is not None:
        return
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(UserScore(
                guild_id=guild_id,
                user_id=user_id,
                xp=0,
                created_at=now,
                updated_at=now,
            ))
            session.flush()
    except IntegrityError:
        # A concurrent award created the row first; the outer txn is intact.
        logger.debug("Score row for %d/%d created concurrently", guild_id, user_id)


# ---------------------------------------------------------------------------
# XP mutations
# ---------------------------------------------------------------------------
def add_xp(
    engine: Engine,
    guild_id: int,
    user_id: int,
    delta: int,
    *,
    now: datetime | None = None,
) -> int:
    """Atomically apply a signed *delta* and return the new XP.

    The result is clamped to ``[0, MAX_SAFE_INT]``: an overflowing delta is
    truncated to the remaining headroom and an underflowing one zeroes the
    balance.  Creates the member's row (xp=0) first if needed.
    """
    now = now or utcnow()
    step = _clamp_delta(delta)
    raised = _STORED_XP + step

    with get_session(engine) as session:
        _ensure_score_row(session, guild_id, user_id, now)
        session.execute(
            update(UserScore)
            .where(UserScore.guild_id == guild_id, UserScore.user_id == user_id)
            .values(
                xp=case(
                    (raised > MAX_SAFE_INT, MAX_SAFE_INT),
                    (raised < 0, 0),
                    else_=raised,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        new_xp = session.scalar(
            select(UserScore.xp).where(
                UserScore.guild_id == guild_id, UserScore.user_id == user_id
            )
        )
    return clamp_xp(new_xp)


def set_xp(
    engine: Engine,
    guild_id: int,
    user_id: int,
    xp,
    *,
    now: datetime | None = None,
) -> None:
    """Overwrite the member's XP with *xp*, floored and clamped."""
    now = now or utcnow()
    value = clamp_xp(xp)
    with get_session(engine) as session:
        _ensure_score_row(session, guild_id, user_id, now)
        session.execute(
            update(UserScore)
            .where(UserScore.guild_id == guild_id, UserScore.user_id == user_id)
            .values(xp=value, updated_at=now)
            .execution_options(synchronize_session=False)
        )


def get_xp(engine: Engine, guild_id: int, user_id: int) -> int:
    """Return the member's XP (0 if they have no row yet).

    A corrupt stored value (NULL, negative, beyond ``MAX_SAFE_INT``) is
    normalized and the repaired value written back.
    """
    with get_session(engine) as session:
        row = session.get(UserScore, (guild_id, user_id))
        if row is None:
            return 0
        repaired = clamp_xp(row.xp)
        if row.xp != repaired:
            logger.warning(
                "Repaired corrupt XP for user %d in guild %d: %r → %d",
                user_id, guild_id, row.xp, repaired,
            )
            row.xp = repaired
            row.updated_at = utcnow()
        return repaired


def peek_xp(engine: Engine, guild_id: int, user_id: int) -> int:
    """Like :func:`get_xp`, but a corrupt value is normalized only in the result."""
    with get_session(engine) as session:
        xp = session.scalar(
            select(UserScore.xp).where(
                UserScore.guild_id == guild_id, UserScore.user_id == user_id
            )
        )
    return 0 if xp is None else clamp_xp(xp)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def top_users(engine: Engine, guild_id: int, limit: int = 10) -> list[ScoreRow]:
    """Highest-XP members, ties broken by ascending user id."""
    with get_session(engine) as session:
        rows = session.execute(
            select(UserScore.user_id, UserScore.xp)
            .where(UserScore.guild_id == guild_id)
            .order_by(UserScore.xp.desc(), UserScore.user_id)
            .limit(max(0, int(limit)))
        ).all()
    return [ScoreRow(user_id=r.user_id, xp=clamp_xp(r.xp)) for r in rows]


def all_scores(engine: Engine, guild_id: int) -> list[ScoreRow]:
    """Every score row in the guild, ordered by user id."""
    with get_session(engine) as session:
        rows = session.execute(
            select(UserScore.user_id, UserScore.xp)
            .where(UserScore.guild_id == guild_id)
            .order_by(UserScore.user_id)
        ).all()
    return [ScoreRow(user_id=r.user_id, xp=clamp_xp(r.xp)) for r in rows]


def rank_of(engine: Engine, guild_id: int, user_id: int) -> int | None:
    """1-based leaderboard position, or None if the member has no row."""
    with get_session(engine) as session:
        row = session.get(UserScore, (guild_id, user_id))
        if row is None:
            return None
        xp = clamp_xp(row.xp)
        above = session.scalar(
            select(func.count())
            .select_from(UserScore)
            .where(
                UserScore.guild_id == guild_id,
                (UserScore.xp > xp)
                | ((UserScore.xp == xp) & (UserScore.user_id < user_id)),
            )
        ) or 0
    return above + 1


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------
def log_activity(
    engine: Engine,
    guild_id: int,
    user_id: int,
    kind: ActivityKind | str,
    amount: int = 1,
    *,
    now: datetime | None = None,
) -> bool:
    """Append an activity record.  Returns False (and logs) on failure.

    Runs in its own transaction after the XP change, so a failure here
    never rolls back an award.
    """
    try:
        with get_session(engine) as session:
            session.add(ActivityRecord(
                guild_id=guild_id,
                user_id=user_id,
                kind=ActivityKind(kind).value,
                amount=int(amount),
                created_at=now or utcnow(),
            ))
        return True
    except (StorageError, SQLAlchemyError):
        logger.exception(
            "Activity log write failed (%s) for user %d in guild %d",
            kind, user_id, guild_id,
        )
        return False


def count_in_window(
    engine: Engine,
    guild_id: int,
    user_id: int,
    kind: ActivityKind | str,
    window_days: int,
    *,
    now: datetime | None = None,
) -> int:
    """Sum of ``amount`` for *kind* records within ``[now - window, now]``."""
    now = now or utcnow()
    since = now - timedelta(seconds=max(0, window_days) * DAY_SECONDS)
    with get_session(engine) as session:
        total = session.scalar(
            select(func.coalesce(func.sum(ActivityRecord.amount), 0)).where(
                ActivityRecord.guild_id == guild_id,
                ActivityRecord.user_id == user_id,
                ActivityRecord.kind == ActivityKind(kind).value,
                ActivityRecord.created_at >= since,
                ActivityRecord.created_at <= now,
            )
        )
    return int(total or 0)
