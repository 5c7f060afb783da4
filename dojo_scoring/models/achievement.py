"""Achievement models for gamification"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Any, List
from datetime import datetime


class AchievementCategory(str, Enum):
    """Achievement categories (event categories plus milestone)"""
    LEARNING = "learning"
    FOCUS = "focus"
    STREAK = "streak"
    ACHIEVEMENT = "achievement"
    SOCIAL = "social"
    MILESTONE = "milestone"


class AchievementTier(str, Enum):
    """Achievement tiers/difficulty levels"""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class RequirementType(str, Enum):
    """How a requirement is evaluated"""
    EVENT_COUNT = "event_count"
    STREAK_LENGTH = "streak_length"
    SCORE_THRESHOLD = "score_threshold"
    TIME_SPENT = "time_spent"
    CUSTOM = "custom"


class RequirementTimeframe(str, Enum):
    """Trailing window for event_count requirements"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL_TIME = "all_time"


class AchievementRequirement(BaseModel):
    """One condition of an achievement; all conditions must hold"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: RequirementType
    event_type: Optional[str] = None
    category: Optional[str] = None
    threshold: float
    timeframe: Optional[RequirementTimeframe] = None
    metadata: dict[str, Any] = Field(default_factory=dict)  # custom predicate keys


class Achievement(BaseModel):
    """Achievement definition (configuration, not runtime state)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    description: str = ""
    icon: str = ""
    category: AchievementCategory
    difficulty: AchievementTier
    points: int = Field(ge=0)
    requirements: List[AchievementRequirement]


class AchievementProgress(BaseModel):
    """Progress toward a locked achievement"""
    current: float
    required: float
    percentage: int = Field(ge=0, le=100)
    description: str


class UserAchievement(BaseModel):
    """User's unlocked (or locked, with progress) achievement"""
    achievement: Achievement
    unlocked_at: Optional[datetime] = None
    event_id: Optional[str] = None  # the badge_earned event that awarded it
    progress: Optional[AchievementProgress] = None


class AchievementSummary(BaseModel):
    """A user's achievements: unlocked newest first, locked closest to completion first"""
    unlocked: List[UserAchievement] = Field(default_factory=list)
    locked: Optional[List[UserAchievement]] = None  # only when requested
    total_unlocked: int = 0
    total_achievements: int = 0
    total_points_from_achievements: int = 0
