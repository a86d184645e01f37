"""
tests/test_levels.py — Level Curve Tests
=========================================
"""

from __future__ import annotations

import math

from ascend.engine.levels import (
    level_from_xp,
    progress_within_level,
    xp_for_level,
    xp_range_for_level,
)


class TestLevelFromXp:
    def test_thresholds_at_default_factor(self):
        assert level_from_xp(0) == 0
        assert level_from_xp(99) == 0
        assert level_from_xp(100) == 1
        assert level_from_xp(399) == 1
        assert level_from_xp(400) == 2
        assert level_from_xp(900) == 3

    def test_custom_factor(self):
        assert level_from_xp(49, 50) == 0
        assert level_from_xp(50, 50) == 1
        assert level_from_xp(200, 50) == 2

    def test_monotonic(self):
        prev = 0
        for xp in range(0, 20_000, 7):
            lvl = level_from_xp(xp, 100)
            assert lvl >= prev
            prev = lvl

    def test_bad_xp_counts_as_zero(self):
        assert level_from_xp(-500) == 0
        assert level_from_xp(math.nan) == 0
        assert level_from_xp(math.inf) == 0

    def test_factor_below_one_treated_as_one(self):
        assert level_from_xp(4, 0) == 2
        assert level_from_xp(9, -10) == 3

    def test_missing_factor_uses_default(self):
        assert level_from_xp(100, None) == 1

    def test_large_xp_is_exact(self):
        # 10**12 × 100 is a perfect square × factor
        assert level_from_xp(10**12 * 100, 100) == 10**6
        assert level_from_xp(10**12 * 100 - 1, 100) == 10**6 - 1


class TestXpForLevel:
    def test_inverse_of_level_from_xp(self):
        for lvl in range(0, 50):
            start = xp_for_level(lvl, 100)
            assert level_from_xp(start, 100) == lvl
            if start > 0:
                assert level_from_xp(start - 1, 100) == lvl - 1

    def test_range_for_level(self):
        assert xp_range_for_level(0) == (0, 100)
        assert xp_range_for_level(1) == (100, 400)
        assert xp_range_for_level(2, 50) == (200, 450)


class TestProgress:
    def test_halfway(self):
        assert progress_within_level(250, 1, 100) == 0.5

    def test_clamped(self):
        assert progress_within_level(50, 1, 100) == 0.0
        assert progress_within_level(10_000, 1, 100) == 1.0
