"""
ascend.api.routes.public — Read-only public endpoints
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from ascend.api.deps import get_engine
from ascend.constants import LEADERBOARD_DEFAULT_LIMIT, LEADERBOARD_MAX_LIMIT
from ascend.engine.levels import level_from_xp, progress_within_level, xp_range_for_level
from ascend.services.level_role_service import list_level_roles
from ascend.services.score_service import peek_xp, rank_of, top_users
from ascend.services.settings_service import peek_guild_settings

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/leaderboard
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/leaderboard")
def get_leaderboard(
    guild_id: int,
    limit: int = Query(LEADERBOARD_DEFAULT_LIMIT, ge=1, le=LEADERBOARD_MAX_LIMIT),
    engine: Engine = Depends(get_engine),
):
    """Top members by XP, ties broken by user id."""
    factor = peek_guild_settings(engine, guild_id).level_curve_factor
    rows = top_users(engine, guild_id, limit)
    return {
        "guild_id": str(guild_id),
        "entries": [
            {
                "rank": i,
                "user_id": str(r.user_id),
                "xp": r.xp,
                "level": level_from_xp(r.xp, factor),
            }
            for i, r in enumerate(rows, 1)
        ],
    }


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/members/{user_id}
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/members/{user_id}")
def get_member(
    guild_id: int,
    user_id: int,
    engine: Engine = Depends(get_engine),
):
    """A member's XP and level.  Unknown members read as 0 XP, unranked."""
    factor = peek_guild_settings(engine, guild_id).level_curve_factor
    xp = peek_xp(engine, guild_id, user_id)
    level = level_from_xp(xp, factor)
    start, next_at = xp_range_for_level(level, factor)
    return {
        "guild_id": str(guild_id),
        "user_id": str(user_id),
        "xp": xp,
        "level": level,
        "level_xp_start": start,
        "xp_for_next": next_at,
        "xp_progress": progress_within_level(xp, level, factor),
        "rank": rank_of(engine, guild_id, user_id),
    }


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/level-roles
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/level-roles")
def get_level_roles(guild_id: int, engine: Engine = Depends(get_engine)):
    return [
        {
            "role_id": str(r.role_id),
            "required_level": r.required_level,
            "drop_grace_days": r.drop_grace_days,
        }
        for r in list_level_roles(engine, guild_id)
    ]


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/settings
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/settings")
def get_settings(guild_id: int, engine: Engine = Depends(get_engine)):
    data = peek_guild_settings(engine, guild_id).to_dict()
    data["guild_id"] = str(guild_id)
    return data
