"""
XP and Leveling System

Level calculation against the configured XP threshold table.

Levels are 1-based: level N is reached once experience points reach
level_thresholds[N - 1]. The table starts at 0, so every user is at
least level 1. Past the last threshold there is no next level.
"""

from typing import Dict, Sequence
import logging

from dojo_scoring.models.metrics import LevelProgress

logger = logging.getLogger(__name__)


def calculate_level(experience_points: int, thresholds: Sequence[int]) -> int:
    """
    Largest level whose threshold has been reached

    Args:
        experience_points: Total XP
        thresholds: Non-decreasing XP table starting at 0

    Returns:
        Level (>= 1)
    """
    for index in range(len(thresholds) - 1, -1, -1):
        if experience_points >= thresholds[index]:
            return index + 1
    return 1


def experience_to_next_level(experience_points: int, level: int, thresholds: Sequence[int]) -> int:
    """XP still needed for the next level (0 at the top of the table)"""
    if level >= len(thresholds):
        return 0
    return max(0, thresholds[level] - experience_points)


def calculate_level_from_xp(experience_points: int, thresholds: Sequence[int]) -> Dict[str, int]:
    """
    Calculate level state from total XP

    Returns:
        {
            'current_level': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'next_level_xp': int (total XP of the next level, or current XP at max level)
        }
    """
    level = calculate_level(experience_points, thresholds)
    level_start = thresholds[level - 1] if thresholds else 0
    next_level_xp = thresholds[level] if level < len(thresholds) else experience_points

    return {
        "current_level": level,
        "xp_in_current_level": experience_points - level_start,
        "xp_to_next_level": experience_to_next_level(experience_points, level, thresholds),
        "next_level_xp": next_level_xp,
    }


def level_progress(experience_points: int, thresholds: Sequence[int]) -> LevelProgress:
    """
    Progress through the current level as a percentage

    A user at the last level is reported as 100% complete.
    """
    info = calculate_level_from_xp(experience_points, thresholds)
    level = info["current_level"]

    if level >= len(thresholds):
        progress = 100.0
    else:
        span = thresholds[level] - thresholds[level - 1]
        progress = 100.0 if span <= 0 else info["xp_in_current_level"] / span * 100

    return LevelProgress(
        current_level=level,
        current_xp=experience_points,
        next_level_xp=info["next_level_xp"],
        progress=min(100.0, max(0.0, progress)),
    )
