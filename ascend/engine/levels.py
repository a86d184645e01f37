"""
ascend.engine.levels — Level Curve
===================================

The single canonical implementation of the quadratic level curve::

    xp_required(L) = L² × factor
    level(xp)      = floor(sqrt(xp / factor))

Pure functions, no I/O.  Inputs are clamped rather than rejected: a
negative or non-finite XP counts as 0 and a factor below 1 counts as 1.
"""

from __future__ import annotations

import math

from ascend.constants import DEFAULT_LEVEL_CURVE_FACTOR


def _clean_xp(xp: float) -> int:
    """Clamp *xp* to a non-negative integer (negative / non-finite → 0)."""
    if isinstance(xp, int):
        return max(0, xp)
    try:
        value = float(xp)
    except (TypeError, ValueError, OverflowError):
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return math.floor(value)


def _clean_factor(factor: float | None) -> int:
    if factor is None:
        return DEFAULT_LEVEL_CURVE_FACTOR
    try:
        value = float(factor)
    except (TypeError, ValueError):
        return DEFAULT_LEVEL_CURVE_FACTOR
    if not math.isfinite(value):
        return DEFAULT_LEVEL_CURVE_FACTOR
    return max(1, int(value))


def level_from_xp(xp: float, factor: float | None = DEFAULT_LEVEL_CURVE_FACTOR) -> int:
    """Level reached with *xp* total XP.

    Uses integer square root so large XP values never suffer float rounding:
    ``isqrt(xp // factor)`` equals ``floor(sqrt(xp / factor))`` for
    non-negative integers.
    """
    return math.isqrt(_clean_xp(xp) // _clean_factor(factor))


def xp_for_level(level: int, factor: float | None = DEFAULT_LEVEL_CURVE_FACTOR) -> int:
    """Total XP at which *level* starts."""
    lvl = max(0, int(level))
    return lvl * lvl * _clean_factor(factor)


def xp_range_for_level(
    level: int, factor: float | None = DEFAULT_LEVEL_CURVE_FACTOR
) -> tuple[int, int]:
    """Return ``(start_xp, next_xp)`` — the half-open XP span of *level*."""
    lvl = max(0, int(level))
    return xp_for_level(lvl, factor), xp_for_level(lvl + 1, factor)


def progress_within_level(
    xp: float, level: int, factor: float | None = DEFAULT_LEVEL_CURVE_FACTOR
) -> float:
    """Fraction of the way from *level* to the next one, clamped to [0, 1]."""
    start, nxt = xp_range_for_level(level, factor)
    ratio = (_clean_xp(xp) - start) / max(1, nxt - start)
    return min(1.0, max(0.0, ratio))
