"""
tests/test_score_service.py — XP Ledger & Activity Log Tests
=============================================================
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from ascend.constants import MAX_SAFE_INT
from ascend.database.engine import create_db_engine, init_db
from ascend.database.models import ActivityKind, ActivityRecord, UserScore
from ascend.errors import StorageError
from ascend.services.score_service import (
    add_xp,
    all_scores,
    clamp_xp,
    count_in_window,
    get_xp,
    log_activity,
    peek_xp,
    rank_of,
    set_xp,
    top_users,
)

from conftest import GUILD_ID, T0


def _insert_raw(session, user_id: int, xp: int) -> None:
    session.add(UserScore(
        guild_id=GUILD_ID, user_id=user_id, xp=xp, created_at=T0, updated_at=T0,
    ))
    session.commit()


class TestClampXp:
    @pytest.mark.parametrize("value,expected", [
        (None, 0),
        (-5, 0),
        (12.9, 12),
        (math.nan, 0),
        (math.inf, MAX_SAFE_INT),
        (-math.inf, 0),
        (MAX_SAFE_INT + 10, MAX_SAFE_INT),
        ("junk", 0),
    ])
    def test_clamp(self, value, expected):
        assert clamp_xp(value) == expected


class TestAddXp:
    def test_creates_row_on_first_award(self, db_engine):
        assert get_xp(db_engine, GUILD_ID, 1) == 0
        assert add_xp(db_engine, GUILD_ID, 1, 5, now=T0) == 5
        assert get_xp(db_engine, GUILD_ID, 1) == 5

    def test_accumulates(self, db_engine):
        for _ in range(4):
            add_xp(db_engine, GUILD_ID, 1, 5, now=T0)
        assert get_xp(db_engine, GUILD_ID, 1) == 20

    def test_negative_delta_floors_at_zero(self, db_engine):
        add_xp(db_engine, GUILD_ID, 1, 10, now=T0)
        assert add_xp(db_engine, GUILD_ID, 1, -25, now=T0) == 0

    def test_saturates_at_max(self, db_engine):
        set_xp(db_engine, GUILD_ID, 1, MAX_SAFE_INT - 2, now=T0)
        assert add_xp(db_engine, GUILD_ID, 1, 10, now=T0) == MAX_SAFE_INT

    def test_huge_delta_saturates(self, db_engine):
        assert add_xp(db_engine, GUILD_ID, 1, 10**30, now=T0) == MAX_SAFE_INT

    def test_repairs_corrupt_stored_value(self, db_engine, db_session):
        _insert_raw(db_session, 1, -50)
        assert add_xp(db_engine, GUILD_ID, 1, 5, now=T0) == 5

    def test_guilds_are_isolated(self, db_engine):
        add_xp(db_engine, 1, 7, 5, now=T0)
        assert get_xp(db_engine, 2, 7) == 0

    def test_concurrent_adds_lose_no_updates(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
        init_db(engine)

        def award(_):
            return add_xp(engine, GUILD_ID, 1, 1, now=T0)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(award, range(200)))

        assert get_xp(engine, GUILD_ID, 1) == 200
        assert max(results) == 200
        engine.dispose()


class TestSetAndGet:
    def test_set_floors_and_clamps(self, db_engine):
        set_xp(db_engine, GUILD_ID, 1, 12.9, now=T0)
        assert get_xp(db_engine, GUILD_ID, 1) == 12
        set_xp(db_engine, GUILD_ID, 1, -3, now=T0)
        assert get_xp(db_engine, GUILD_ID, 1) == 0
        set_xp(db_engine, GUILD_ID, 1, math.inf, now=T0)
        assert get_xp(db_engine, GUILD_ID, 1) == MAX_SAFE_INT

    def test_get_missing_does_not_create(self, db_engine):
        assert get_xp(db_engine, GUILD_ID, 99) == 0
        assert all_scores(db_engine, GUILD_ID) == []

    def test_get_repairs_and_writes_back(self, db_engine, db_session):
        _insert_raw(db_session, 1, MAX_SAFE_INT + 100)
        assert get_xp(db_engine, GUILD_ID, 1) == MAX_SAFE_INT

        db_session.expire_all()
        assert db_session.get(UserScore, (GUILD_ID, 1)).xp == MAX_SAFE_INT

    def test_peek_normalizes_without_writing(self, db_engine, db_session):
        _insert_raw(db_session, 1, -7)
        assert peek_xp(db_engine, GUILD_ID, 1) == 0
        assert peek_xp(db_engine, GUILD_ID, 2) == 0

        db_session.expire_all()
        assert db_session.get(UserScore, (GUILD_ID, 1)).xp == -7
        assert db_session.get(UserScore, (GUILD_ID, 2)) is None


class TestLeaderboard:
    def test_ordered_by_xp_then_user_id(self, db_engine):
        set_xp(db_engine, GUILD_ID, 30, 100, now=T0)
        set_xp(db_engine, GUILD_ID, 10, 500, now=T0)
        set_xp(db_engine, GUILD_ID, 20, 100, now=T0)

        rows = top_users(db_engine, GUILD_ID, 10)
        assert [(r.user_id, r.xp) for r in rows] == [(10, 500), (20, 100), (30, 100)]

    def test_limit(self, db_engine):
        for uid in range(1, 6):
            set_xp(db_engine, GUILD_ID, uid, uid * 10, now=T0)
        assert [r.user_id for r in top_users(db_engine, GUILD_ID, 2)] == [5, 4]

    def test_rank_of(self, db_engine):
        set_xp(db_engine, GUILD_ID, 30, 100, now=T0)
        set_xp(db_engine, GUILD_ID, 10, 500, now=T0)
        set_xp(db_engine, GUILD_ID, 20, 100, now=T0)

        assert rank_of(db_engine, GUILD_ID, 10) == 1
        assert rank_of(db_engine, GUILD_ID, 20) == 2
        assert rank_of(db_engine, GUILD_ID, 30) == 3
        assert rank_of(db_engine, GUILD_ID, 99) is None


class TestActivityLog:
    def test_count_in_window(self, db_engine):
        for days_ago in (0, 1, 6, 8, 30):
            log_activity(
                db_engine, GUILD_ID, 1, ActivityKind.MESSAGE,
                now=T0 - timedelta(days=days_ago),
            )
        assert count_in_window(db_engine, GUILD_ID, 1, ActivityKind.MESSAGE, 7, now=T0) == 3

    def test_kinds_are_counted_separately(self, db_engine):
        log_activity(db_engine, GUILD_ID, 1, ActivityKind.MESSAGE, now=T0)
        log_activity(db_engine, GUILD_ID, 1, ActivityKind.REACTION, now=T0)
        log_activity(db_engine, GUILD_ID, 1, "voice_minute", amount=3, now=T0)

        assert count_in_window(db_engine, GUILD_ID, 1, "message", 7, now=T0) == 1
        assert count_in_window(db_engine, GUILD_ID, 1, ActivityKind.REACTION, 7, now=T0) == 1
        assert count_in_window(db_engine, GUILD_ID, 1, ActivityKind.VOICE_MINUTE, 7, now=T0) == 3

    def test_future_records_excluded(self, db_engine):
        log_activity(db_engine, GUILD_ID, 1, ActivityKind.MESSAGE, now=T0 + timedelta(hours=1))
        assert count_in_window(db_engine, GUILD_ID, 1, ActivityKind.MESSAGE, 7, now=T0) == 0

    def test_write_failure_reported_not_raised(self, db_engine):
        with patch(
            "ascend.services.score_service.get_session",
            side_effect=StorageError("database is locked"),
        ):
            assert log_activity(db_engine, GUILD_ID, 1, ActivityKind.MESSAGE, now=T0) is False

    def test_ids_are_sequential_and_wide(self, db_engine, db_session):
        for _ in range(3):
            assert log_activity(db_engine, GUILD_ID, 1, ActivityKind.VOICE_MINUTE, now=T0)

        ids = db_session.scalars(select(ActivityRecord.id).order_by(ActivityRecord.id)).all()
        assert ids == [1, 2, 3]

        id_type = ActivityRecord.__table__.c.id.type
        assert id_type.compile(dialect=postgresql.dialect()) == "BIGINT"
