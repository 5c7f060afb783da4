"""Per-user metrics rollup and derived statistics models"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dojo_scoring.models.achievement import Achievement
from dojo_scoring.models.events import SuccessCategory, SuccessEvent

RECENT_EVENTS_LIMIT = 10

StatsPeriod = Literal["day", "week", "month", "year", "all_time"]
AggregationPeriod = Literal["hour", "day", "week", "month", "year"]


class UserMetrics(BaseModel):
    """Canonical mutable rollup for one user (created lazily on first event)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    total_points: int = 0
    level: int = 1
    experience_points: int = 0
    experience_to_next_level: int = 0

    # Learning
    total_sessions: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    average_score: float = 0.0
    time_spent: int = 0  # minutes

    # Focus
    total_focus_time: float = 0.0  # minutes
    focus_sessions: int = 0
    average_focus_session: float = 0.0
    longest_focus_session: float = 0.0

    # Streak
    current_streak: int = 0
    longest_streak: int = 0
    streak_type: Literal["daily", "weekly", "monthly"] = "daily"
    last_activity_date: Optional[datetime] = None

    # Achievements
    badges_earned: int = 0
    milestones_reached: int = 0
    challenges_completed: int = 0

    # Newest first, at most RECENT_EVENTS_LIMIT
    recent_events: List[SuccessEvent] = Field(default_factory=list)

    # Derived scores
    consistency: float = 0.0  # 0-100
    improvement: float = 0.0  # percentage change
    engagement: float = 0.0  # 0-100

    # Number of log events folded into this rollup (log order)
    events_applied: int = 0

    last_updated: Optional[datetime] = None


class LevelProgress(BaseModel):
    current_level: int
    current_xp: int
    next_level_xp: int
    progress: float = Field(ge=0, le=100)


class StatsTrends(BaseModel):
    """Change versus the immediately preceding period of equal length"""
    points_change: float = 0.0  # percentage
    score_change: float = 0.0  # percentage points
    streak_change: int = 0  # days
    focus_change: float = 0.0  # percentage


class CategoryBreakdown(BaseModel):
    category: SuccessCategory
    points: int
    percentage: float


class PersonalStats(BaseModel):
    """Derived summary computed on demand from the event log"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    period: StatsPeriod

    # Summary
    total_points: int = 0
    total_events: int = 0
    average_daily: float = 0.0

    # Learning
    sessions_completed: int = 0
    questions_answered: int = 0
    average_score: float = 0.0
    time_spent: float = 0.0  # minutes

    # Focus
    focus_time: float = 0.0
    focus_sessions: int = 0
    average_focus_length: float = 0.0

    # Streak
    current_streak: int = 0
    streak_days: int = 0

    level_progress: LevelProgress
    trends: StatsTrends = Field(default_factory=StatsTrends)
    top_categories: List[CategoryBreakdown] = Field(default_factory=list)
    recent_achievements: List[Achievement] = Field(default_factory=list)


class MetricsDataPoint(BaseModel):
    """One time bucket of engine-wide activity"""
    timestamp: datetime
    total_events: int = 0
    total_points: int = 0
    unique_users: int = 0
    average_score: Optional[float] = None
    categories: Dict[str, int] = Field(default_factory=dict)
    event_types: Dict[str, int] = Field(default_factory=dict)


class MetricsAggregation(BaseModel):
    period: AggregationPeriod
    start_date: datetime
    end_date: datetime
    data: List[MetricsDataPoint] = Field(default_factory=list)
