"""
Point Calculator

Pure functions turning (event type, metadata) into a point value.

Calculation:
1. Base points: custom points if supplied, else point_values[event_type] (0 if unknown)
2. Score bonus: floor(score_pct / 10) * 5 for completion events
3. Multipliers: streak ladder x difficulty x time of day
4. Round half up to an integer

Category assignment is table driven: the first keyword bucket whose
keyword occurs in the event type wins, achievement is the fallback.
"""

import logging
import math
from typing import Optional, Tuple

from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.models.events import SuccessCategory

logger = logging.getLogger(__name__)

# Checked in order; first match wins
CATEGORY_KEYWORDS: Tuple[Tuple[SuccessCategory, Tuple[str, ...]], ...] = (
    (SuccessCategory.FOCUS, ("focus",)),
    (SuccessCategory.STREAK, ("streak",)),
    (SuccessCategory.SOCIAL, ("leaderboard", "helped", "community")),
    (SuccessCategory.ACHIEVEMENT, ("level_up", "badge", "milestone_reached", "personal_best", "challenge")),
    (SuccessCategory.LEARNING, ("quiz", "study", "exam", "question", "session", "perfect_score", "improvement")),
)

DEFAULT_CATEGORY = SuccessCategory.ACHIEVEMENT

COMPLETION_MARKER = "completed"
SCORE_BONUS_STEP = 10  # percent
SCORE_BONUS_POINTS = 5


def category_for_event_type(event_type: str) -> SuccessCategory:
    """
    Derive the category of an event type

    Total: every string maps to exactly one category.

    Args:
        event_type: Event type name, known or not

    Returns:
        SuccessCategory (achievement for unrecognized names)
    """
    name = (event_type or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up"""
    return int(math.floor(value + 0.5))


def score_bonus(event_type: str, score_pct: Optional[float]) -> int:
    """floor(score_pct / 10) * 5 for completion events, else 0"""
    if score_pct is None or COMPLETION_MARKER not in event_type:
        return 0
    return int(score_pct // SCORE_BONUS_STEP) * SCORE_BONUS_POINTS


def base_points(
    config: SuccessMetricsConfig,
    event_type: str,
    metadata=None,
    custom_points: Optional[int] = None,
) -> int:
    """Pre-multiplier points: custom override or table value plus score bonus"""
    if custom_points is not None:
        return custom_points

    points = config.point_values.get(event_type, 0)
    score_pct = getattr(metadata, "score_pct", None)
    return points + score_bonus(event_type, score_pct)


def streak_multiplier(config: SuccessMetricsConfig, streak_length: Optional[int]) -> Optional[float]:
    """
    Multiplier of the largest configured threshold <= streak_length

    Returns:
        The multiplier, or None when no streak applies (missing or zero
        length, or below the smallest threshold)
    """
    if not streak_length or streak_length <= 0:
        return None

    eligible = [threshold for threshold in config.streak_multipliers if threshold <= streak_length]
    if not eligible:
        return None
    return config.streak_multipliers[max(eligible)]


def difficulty_multiplier(config: SuccessMetricsConfig, level: Optional[str]) -> float:
    if not level:
        return 1.0
    return config.difficulty_multipliers.get(level, 1.0)


def time_of_day_multiplier(config: SuccessMetricsConfig, time_of_day: Optional[str]) -> float:
    if not time_of_day:
        return 1.0
    return config.time_of_day_multipliers.get(time_of_day, 1.0)


def calculate_points(
    config: SuccessMetricsConfig,
    event_type: str,
    metadata=None,
    custom_points: Optional[int] = None,
) -> Tuple[int, Optional[float]]:
    """
    Calculate the final points for an event

    Args:
        config: Engine configuration
        event_type: Event type (unknown types score 0 base points)
        metadata: Parsed metadata model, or None
        custom_points: Manual pre-multiplier base, used verbatim

    Returns:
        (points, realized streak multiplier or None)
    """
    points = base_points(config, event_type, metadata, custom_points)

    streak = streak_multiplier(config, getattr(metadata, "streak_length", None))
    factor = streak if streak is not None else 1.0
    factor *= difficulty_multiplier(config, getattr(metadata, "level", None))
    factor *= time_of_day_multiplier(config, getattr(metadata, "time_of_day", None))

    final = round_half_up(points * factor)
    logger.debug(f"Points for {event_type}: base={points} factor={factor:.3f} final={final}")
    return final, streak
