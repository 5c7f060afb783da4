"""Engine configuration model (process-wide, read-only)"""
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dojo_scoring.models.achievement import Achievement
from dojo_scoring.models.events import SuccessCategory
from dojo_scoring.models.leaderboard import Timeframe


DEFAULT_POINT_VALUES: Dict[str, int] = {
    # Learning
    "quiz_completed": 50,
    "study_session_completed": 30,
    "exam_completed": 100,
    "perfect_score": 200,
    "improvement_milestone": 150,
    "question_answered_correct": 5,
    "question_answered_incorrect": 1,
    "session_started": 5,
    "session_finished": 10,

    # Focus
    "focus_session_started": 10,
    "focus_session_completed": 25,
    "focus_milestone_reached": 75,
    "deep_focus_achieved": 100,
    "focus_streak_maintained": 50,

    # Streak
    "daily_streak_started": 20,
    "daily_streak_continued": 15,
    "weekly_streak_achieved": 100,
    "monthly_streak_achieved": 500,
    "streak_milestone": 200,

    # Achievement
    "level_up": 300,
    "badge_earned": 100,
    "milestone_reached": 250,
    "personal_best": 150,
    "challenge_completed": 200,

    # Social
    "leaderboard_position": 100,
    "helped_others": 50,
    "community_contribution": 75,
}

DEFAULT_STREAK_MULTIPLIERS: Dict[int, float] = {
    1: 1.0,
    3: 1.1,
    7: 1.2,
    14: 1.3,
    30: 1.5,
    60: 1.7,
    100: 2.0,
}

DEFAULT_DIFFICULTY_MULTIPLIERS: Dict[str, float] = {
    "Beginner": 1.0,
    "Intermediate": 1.2,
    "Advanced": 1.5,
    "Expert": 2.0,
    # CEFR
    "A1": 1.0,
    "A2": 1.1,
    "B1": 1.3,
    "B2": 1.5,
    "C1": 1.8,
    "C2": 2.0,
    # JLPT
    "N5": 1.0,
    "N4": 1.2,
    "N3": 1.5,
    "N2": 1.8,
    "N1": 2.0,
}

DEFAULT_TIME_OF_DAY_MULTIPLIERS: Dict[str, float] = {
    "morning": 1.1,
    "afternoon": 1.0,
    "evening": 1.0,
    "night": 0.9,
}

DEFAULT_LEVEL_THRESHOLDS: List[int] = [
    0, 100, 250, 500, 1000, 2000, 3500, 5500, 8000, 12000,
    17000, 23000, 30000, 38000, 47000, 57000, 68000, 80000, 93000, 107000,
]


def _default_achievements() -> List[Achievement]:
    # Imported lazily: the gamification package itself depends on this module
    from dojo_scoring.gamification.catalog import DEFAULT_ACHIEVEMENTS
    return list(DEFAULT_ACHIEVEMENTS)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LeaderboardSettings(_ConfigModel):
    max_entries: int = Field(default=100, gt=0)
    update_frequency: float = Field(default=15, gt=0)  # minutes
    categories: List[SuccessCategory] = Field(
        default_factory=lambda: [
            SuccessCategory.LEARNING,
            SuccessCategory.FOCUS,
            SuccessCategory.STREAK,
            SuccessCategory.ACHIEVEMENT,
        ]
    )
    timeframes: List[Timeframe] = Field(default_factory=lambda: list(Timeframe))


class StreakSettings(_ConfigModel):
    daily_requirement: int = Field(default=15, ge=0)  # minutes of activity
    weekly_requirement: int = Field(default=120, ge=0)
    monthly_requirement: int = Field(default=600, ge=0)
    grace_hours: float = Field(default=6, ge=0)


class SuccessMetricsConfig(_ConfigModel):
    """Every multiplier/threshold table of the engine"""

    point_values: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_POINT_VALUES))
    streak_multipliers: Dict[int, float] = Field(default_factory=lambda: dict(DEFAULT_STREAK_MULTIPLIERS))
    difficulty_multipliers: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_DIFFICULTY_MULTIPLIERS))
    time_of_day_multipliers: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_TIME_OF_DAY_MULTIPLIERS))
    level_thresholds: List[int] = Field(default_factory=lambda: list(DEFAULT_LEVEL_THRESHOLDS))
    achievements: List[Achievement] = Field(default_factory=_default_achievements)
    leaderboard_settings: LeaderboardSettings = Field(default_factory=LeaderboardSettings)
    streak_settings: StreakSettings = Field(default_factory=StreakSettings)

    @field_validator("streak_multipliers", "difficulty_multipliers", "time_of_day_multipliers")
    @classmethod
    def _positive_multipliers(cls, value):
        for key, multiplier in value.items():
            if multiplier <= 0:
                raise ValueError(f"multiplier for {key!r} must be positive, got {multiplier}")
        return value

    @field_validator("level_thresholds")
    @classmethod
    def _thresholds_ascending(cls, value):
        if not value or value[0] != 0:
            raise ValueError("level thresholds must start at 0")
        if any(b < a for a, b in zip(value, value[1:])):
            raise ValueError("level thresholds must be non-decreasing")
        return value

    @field_validator("achievements")
    @classmethod
    def _unique_achievement_ids(cls, value):
        ids = [a.id for a in value]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise ValueError(f"duplicate achievement ids: {sorted(duplicates)}")
        return value
