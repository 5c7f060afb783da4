"""
StatsService - Derived Statistics

Everything here is computed on demand from the event log and metrics;
nothing is stored.

- Personal stats for a period, with trends against the preceding period
- Achievement listing with progress, and recommendations
- Engine-wide metrics aggregation in time buckets
"""

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Sequence

from dojo_scoring.exceptions import ValidationError
from dojo_scoring.gamification.achievement_system import EvaluationContext
from dojo_scoring.gamification.catalog import get_achievement_by_id
from dojo_scoring.gamification.xp_system import level_progress
from dojo_scoring.models.achievement import AchievementSummary, UserAchievement
from dojo_scoring.models.events import EventType, SuccessCategory, SuccessEvent
from dojo_scoring.models.metrics import (
    CategoryBreakdown,
    MetricsAggregation,
    MetricsDataPoint,
    PersonalStats,
    StatsTrends,
)
from dojo_scoring.services.success_events_service import SuccessEventsService
from dojo_scoring.utils.datetime_helpers import bucket_start, period_start, to_utc

logger = logging.getLogger(__name__)

STATS_PERIODS = ("day", "week", "month", "year", "all_time")
AGGREGATION_PERIODS = ("hour", "day", "week", "month", "year")
RECOMMENDATION_MIN_PROGRESS = 50
SECONDS_PER_DAY = 86400
MS_PER_MINUTE = 60000


def _percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def _summarize(events: Sequence[SuccessEvent]) -> Dict[str, Any]:
    """Period totals shared by the stats and the trend comparison"""
    learning = [e for e in events if e.category == SuccessCategory.LEARNING]
    focus = [e for e in events if e.category == SuccessCategory.FOCUS]

    correct = sum(1 for e in learning if e.event_type == EventType.QUESTION_ANSWERED_CORRECT.value)
    incorrect = sum(1 for e in learning if e.event_type == EventType.QUESTION_ANSWERED_INCORRECT.value)
    answered = correct + incorrect

    focus_time = sum(getattr(e.metadata, "focus_duration", None) or 0 for e in focus)
    focus_sessions = sum(1 for e in focus if e.event_type == EventType.FOCUS_SESSION_COMPLETED.value)

    streaks = [
        e.metadata.streak_length for e in events
        if e.category == SuccessCategory.STREAK and e.metadata.streak_length is not None
    ]

    return {
        "total_points": sum(e.points for e in events),
        "total_events": len(events),
        "sessions_completed": sum(1 for e in learning if e.event_type == EventType.SESSION_FINISHED.value),
        "questions_answered": answered,
        "average_score": correct / answered * 100 if answered else 0.0,
        "time_spent": sum(getattr(e.metadata, "time_spent", None) or 0 for e in learning) / MS_PER_MINUTE,
        "focus_time": focus_time,
        "focus_sessions": focus_sessions,
        "average_focus_length": focus_time / focus_sessions if focus_sessions else 0.0,
        "best_streak": max(streaks, default=0),
    }


class StatsService:
    """
    Service for derived statistics.

    Responsibilities:
    - Personal stats and trends
    - Achievement progress and recommendations
    - Time-bucketed engine metrics
    """

    def __init__(self, events_service: SuccessEventsService):
        """
        Initialize StatsService.

        Args:
            events_service: Source of events, metrics, configuration and clock
        """
        self.events_service = events_service
        logger.debug("StatsService initialized")

    @property
    def config(self):
        return self.events_service.config

    # ==========================================
    # Personal stats
    # ==========================================

    async def get_personal_stats(self, user_id: str, period: str = "week") -> PersonalStats:
        """
        Summary of a user's activity in a period.

        Args:
            user_id: User identifier
            period: day, week, month, year or all_time

        Returns:
            PersonalStats (zeroed for users without events)

        Raises:
            ValidationError: If the period is unknown
        """
        if period not in STATS_PERIODS:
            raise ValidationError(f"Unknown stats period: {period}", field="period", value=period)

        now = self.events_service.clock()
        start = period_start(period, now)
        metrics = await self.events_service.get_user_metrics(user_id)
        events = await self.events_service.event_store.get_user_events(user_id)

        period_events = [e for e in events if start <= e.timestamp <= now]
        summary = _summarize(period_events)

        # all_time counts days from the first event rather than the epoch
        first_day = start
        if period == "all_time" and events:
            first_day = min(e.timestamp for e in events)
        days = max(1, math.ceil((now - first_day).total_seconds() / SECONDS_PER_DAY))

        trends = StatsTrends()
        if period != "all_time":
            previous_start = start - (now - start)
            previous = _summarize([e for e in events if previous_start <= e.timestamp < start])
            trends = StatsTrends(
                points_change=_percent_change(summary["total_points"], previous["total_points"]),
                score_change=summary["average_score"] - previous["average_score"],
                streak_change=summary["best_streak"] - previous["best_streak"],
                focus_change=_percent_change(summary["focus_time"], previous["focus_time"]),
            )

        return PersonalStats(
            user_id=user_id,
            period=period,
            total_points=summary["total_points"],
            total_events=summary["total_events"],
            average_daily=summary["total_points"] / days,
            sessions_completed=summary["sessions_completed"],
            questions_answered=summary["questions_answered"],
            average_score=summary["average_score"],
            time_spent=summary["time_spent"],
            focus_time=summary["focus_time"],
            focus_sessions=summary["focus_sessions"],
            average_focus_length=summary["average_focus_length"],
            current_streak=metrics.current_streak,
            streak_days=metrics.current_streak,
            level_progress=level_progress(metrics.experience_points, self.config.level_thresholds),
            trends=trends,
            top_categories=self._category_breakdown(period_events, summary["total_points"]),
            recent_achievements=self._recent_achievements(period_events),
        )

    @staticmethod
    def _category_breakdown(events: Sequence[SuccessEvent], total_points: int) -> List[CategoryBreakdown]:
        points_by_category: Dict[SuccessCategory, int] = {}
        for event in events:
            points_by_category[event.category] = points_by_category.get(event.category, 0) + event.points

        breakdown = [
            CategoryBreakdown(
                category=category,
                points=points,
                percentage=points / total_points * 100 if total_points > 0 else 0.0,
            )
            for category, points in points_by_category.items()
        ]
        breakdown.sort(key=lambda b: b.points, reverse=True)
        return breakdown

    def _recent_achievements(self, events: Sequence[SuccessEvent]):
        badges = [e for e in events if e.event_type == EventType.BADGE_EARNED.value]
        badges.sort(key=lambda e: e.timestamp, reverse=True)

        achievements = []
        for badge in badges:
            achievement = get_achievement_by_id(self.config.achievements, badge.metadata.achievement_id)
            if achievement is not None:
                achievements.append(achievement)
        return achievements

    # ==========================================
    # Achievements
    # ==========================================

    async def get_user_achievements(self, user_id: str, include_locked: bool = False) -> AchievementSummary:
        """
        Get user's achievements with progress

        Args:
            user_id: User identifier
            include_locked: Whether to include locked achievements with progress

        Returns:
            AchievementSummary: unlocked newest first; locked (if requested)
            sorted closest to completion first
        """
        events = await self.events_service.event_store.get_user_events(user_id)
        achievements = self.config.achievements

        badges: Dict[str, SuccessEvent] = {}
        for event in events:
            if event.event_type != EventType.BADGE_EARNED.value:
                continue
            achievement_id = event.metadata.achievement_id
            if achievement_id and achievement_id not in badges:
                badges[achievement_id] = event

        unlocked = []
        total_points = 0
        for achievement in achievements:
            badge = badges.get(achievement.id)
            if badge is None:
                continue
            unlocked.append(
                UserAchievement(achievement=achievement, unlocked_at=badge.timestamp, event_id=badge.id)
            )
            total_points += badge.points

        unlocked.sort(key=lambda a: a.unlocked_at, reverse=True)

        summary = AchievementSummary(
            unlocked=unlocked,
            total_unlocked=len(unlocked),
            total_achievements=len(achievements),
            total_points_from_achievements=total_points,
        )

        if include_locked:
            context = EvaluationContext(
                events=events,
                metrics=await self.events_service.get_user_metrics(user_id),
                now=self.events_service.clock(),
                best_rank=await self.events_service.get_best_rank(user_id),
            )
            engine = self.events_service.achievement_engine
            locked = [
                UserAchievement(achievement=achievement, progress=engine.progress(achievement, context))
                for achievement in achievements
                if achievement.id not in badges
            ]
            locked.sort(key=lambda a: a.progress.percentage, reverse=True)
            summary.locked = locked

        return summary

    async def get_achievement_recommendations(self, user_id: str, limit: int = 3) -> List[UserAchievement]:
        """
        Get achievement recommendations (closest to completion)

        Args:
            user_id: User identifier
            limit: Number of recommendations to return

        Returns:
            Locked achievements with at least 50% progress, closest first
        """
        summary = await self.get_user_achievements(user_id, include_locked=True)

        close_to_completion = [
            a for a in summary.locked or []
            if a.progress.percentage >= RECOMMENDATION_MIN_PROGRESS
        ]
        return close_to_completion[:limit]

    # ==========================================
    # Aggregation
    # ==========================================

    async def aggregate_metrics(
        self,
        period: str,
        start_date: datetime,
        end_date: datetime,
    ) -> MetricsAggregation:
        """
        Bucket all events between start_date and end_date (inclusive).

        Args:
            period: Bucket size: hour, day, week, month or year
            start_date: Range start
            end_date: Range end

        Returns:
            MetricsAggregation with one data point per non-empty bucket,
            oldest first

        Raises:
            ValidationError: If the period is unknown
        """
        if period not in AGGREGATION_PERIODS:
            raise ValidationError(f"Unknown aggregation period: {period}", field="period", value=period)

        start_date = to_utc(start_date)
        end_date = to_utc(end_date)
        snapshot = await self.events_service.event_store.snapshot()

        buckets: Dict[datetime, List[SuccessEvent]] = {}
        for user_events in snapshot.values():
            for event in user_events:
                if start_date <= event.timestamp <= end_date:
                    buckets.setdefault(bucket_start(event.timestamp, period), []).append(event)

        data = []
        for timestamp in sorted(buckets):
            events = buckets[timestamp]
            scores = [e.metadata.score_pct for e in events if e.metadata.score_pct is not None]
            data.append(
                MetricsDataPoint(
                    timestamp=timestamp,
                    total_events=len(events),
                    total_points=sum(e.points for e in events),
                    unique_users=len({e.user_id for e in events}),
                    average_score=sum(scores) / len(scores) if scores else None,
                    categories=dict(Counter(e.category.value for e in events)),
                    event_types=dict(Counter(e.event_type for e in events)),
                )
            )

        return MetricsAggregation(period=period, start_date=start_date, end_date=end_date, data=data)
