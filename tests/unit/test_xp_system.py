"""Unit tests for XP and level calculation (dojo_scoring/gamification/xp_system.py)"""
import pytest

from dojo_scoring.gamification.xp_system import (
    calculate_level,
    calculate_level_from_xp,
    experience_to_next_level,
    level_progress,
)
from dojo_scoring.models.config import DEFAULT_LEVEL_THRESHOLDS

THRESHOLDS = DEFAULT_LEVEL_THRESHOLDS


@pytest.mark.parametrize("xp,expected_level", [
    (0, 1),
    (99, 1),
    (100, 2),
    (249, 2),
    (250, 3),
    (999, 4),
    (1000, 5),
    (106999, 19),
    (107000, 20),
    (10_000_000, 20),
])
def test_calculate_level(xp, expected_level):
    """Test level is the largest index whose threshold has been reached"""
    assert calculate_level(xp, THRESHOLDS) == expected_level


def test_level_is_monotonic_in_xp():
    levels = [calculate_level(xp, THRESHOLDS) for xp in range(0, 20000, 50)]
    assert levels == sorted(levels)


def test_experience_to_next_level():
    assert experience_to_next_level(0, 1, THRESHOLDS) == 100
    assert experience_to_next_level(150, 2, THRESHOLDS) == 100
    assert experience_to_next_level(1000, 5, THRESHOLDS) == 1000


def test_experience_to_next_level_at_max_level_is_zero():
    assert experience_to_next_level(200000, 20, THRESHOLDS) == 0


def test_calculate_level_from_xp():
    info = calculate_level_from_xp(300, THRESHOLDS)

    assert info["current_level"] == 3
    assert info["xp_in_current_level"] == 50
    assert info["xp_to_next_level"] == 200
    assert info["next_level_xp"] == 500


def test_calculate_level_from_xp_max_level():
    info = calculate_level_from_xp(150000, THRESHOLDS)

    assert info["current_level"] == 20
    assert info["xp_to_next_level"] == 0
    assert info["next_level_xp"] == 150000


def test_level_progress_midway():
    """Test 375 XP is halfway from level 3 (250) to level 4 (500)"""
    progress = level_progress(375, THRESHOLDS)

    assert progress.current_level == 3
    assert progress.current_xp == 375
    assert progress.next_level_xp == 500
    assert progress.progress == pytest.approx(50.0)


def test_level_progress_at_max_level_is_complete():
    progress = level_progress(107000, THRESHOLDS)
    assert progress.current_level == 20
    assert progress.progress == 100.0


def test_custom_thresholds():
    thresholds = [0, 10, 20]
    assert calculate_level(15, thresholds) == 2
    assert calculate_level(25, thresholds) == 3
    assert experience_to_next_level(25, 3, thresholds) == 0
