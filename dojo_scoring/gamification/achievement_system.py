"""
Achievement Rule Engine

Evaluates declarative achievement requirements against a user's event
history and metrics.

Earned state is derived, not stored: an achievement is earned once the
log contains a badge_earned event whose metadata carries its id. The
caller evaluates against the history that already holds the triggering
event (and its level_up) but none of the badges produced by this
evaluation, so an award never sees itself.

Requirement types:
- event_count: matching events (optional event type, category, timeframe) >= threshold
- streak_length: current streak >= threshold
- score_threshold: running average score >= threshold
- time_spent: learning minutes (focus minutes for category "focus") >= threshold
- custom: table-driven predicate on the requirement's metadata key;
  unknown keys are never satisfied
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging

from dojo_scoring.models.achievement import (
    Achievement,
    AchievementProgress,
    AchievementRequirement,
    RequirementTimeframe,
    RequirementType,
)
from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.models.events import EventType, SuccessCategory, SuccessEvent
from dojo_scoring.models.metrics import UserMetrics

logger = logging.getLogger(__name__)

TIMEFRAME_WINDOWS = {
    RequirementTimeframe.DAY: timedelta(days=1),
    RequirementTimeframe.WEEK: timedelta(days=7),
    RequirementTimeframe.MONTH: timedelta(days=30),
}


@dataclass
class EvaluationContext:
    """Everything a requirement evaluator may read"""
    events: Sequence[SuccessEvent]
    metrics: UserMetrics
    now: datetime
    best_rank: Optional[int] = None  # best rank across current leaderboard snapshots
    earned_ids: Set[str] = field(default_factory=set)


def earned_achievement_ids(events: Iterable[SuccessEvent]) -> Set[str]:
    """Ids of achievements already awarded in this event history"""
    earned = set()
    for event in events:
        if event.event_type == EventType.BADGE_EARNED.value:
            achievement_id = getattr(event.metadata, "achievement_id", None)
            if achievement_id:
                earned.add(achievement_id)
    return earned


def badge_metadata(achievement: Achievement) -> Dict[str, str]:
    """Metadata carried by the badge_earned event that awards an achievement"""
    return {
        "achievementId": achievement.id,
        "achievementName": achievement.name,
        "difficulty": achievement.difficulty.value,
    }


# ============================================
# Requirement evaluators
# Each returns (current, required, satisfied)
# ============================================

Measurement = Tuple[float, float, bool]


def _matches(event: SuccessEvent, requirement: AchievementRequirement) -> bool:
    if requirement.event_type and event.event_type != requirement.event_type:
        return False
    if requirement.category and event.category.value != requirement.category:
        return False
    return True


def _measure_event_count(requirement: AchievementRequirement, ctx: EvaluationContext) -> Measurement:
    window = TIMEFRAME_WINDOWS.get(requirement.timeframe)
    cutoff = ctx.now - window if window else None

    count = sum(
        1 for e in ctx.events
        if _matches(e, requirement) and (cutoff is None or e.timestamp >= cutoff)
    )
    return count, requirement.threshold, count >= requirement.threshold


def _measure_streak_length(requirement: AchievementRequirement, ctx: EvaluationContext) -> Measurement:
    current = ctx.metrics.current_streak
    return current, requirement.threshold, current >= requirement.threshold


def _measure_score_threshold(requirement: AchievementRequirement, ctx: EvaluationContext) -> Measurement:
    current = ctx.metrics.average_score
    return current, requirement.threshold, current >= requirement.threshold


def _measure_time_spent(requirement: AchievementRequirement, ctx: EvaluationContext) -> Measurement:
    if requirement.category == SuccessCategory.FOCUS.value:
        current = ctx.metrics.total_focus_time
    else:
        current = ctx.metrics.time_spent
    return current, requirement.threshold, current >= requirement.threshold


# Custom predicates: metadata key -> (value, threshold, ctx) -> Measurement

def _custom_level_reached(value, threshold: float, ctx: EvaluationContext) -> Measurement:
    return ctx.metrics.level, value, ctx.metrics.level >= value


def _custom_total_points(value, threshold: float, ctx: EvaluationContext) -> Measurement:
    return ctx.metrics.total_points, value, ctx.metrics.total_points >= value


def _custom_leaderboard_position(value, threshold: float, ctx: EvaluationContext) -> Measurement:
    # Lower rank is better: current is scaled so rank 20 against a top-10 goal reads 5/10
    if ctx.best_rank is None:
        return 0, value, False
    return value / ctx.best_rank * value, value, ctx.best_rank <= value


def _custom_time_of_day(value, threshold: float, ctx: EvaluationContext) -> Measurement:
    count = sum(1 for e in ctx.events if getattr(e.metadata, "time_of_day", None) == value)
    return count, threshold, count >= threshold


def _custom_improvement(value, threshold: float, ctx: EvaluationContext) -> Measurement:
    return ctx.metrics.improvement, value, ctx.metrics.improvement >= value


CUSTOM_PREDICATES: Dict[str, Callable[..., Measurement]] = {
    "levelReached": _custom_level_reached,
    "totalPoints": _custom_total_points,
    "leaderboardPosition": _custom_leaderboard_position,
    "timeOfDay": _custom_time_of_day,
    "improvementPercentage": _custom_improvement,
}


def _measure_custom(requirement: AchievementRequirement, ctx: EvaluationContext) -> Measurement:
    for key, value in requirement.metadata.items():
        predicate = CUSTOM_PREDICATES.get(key)
        if predicate is None:
            continue
        try:
            return predicate(value, requirement.threshold, ctx)
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.warning(f"Custom requirement {key}={value!r} could not be evaluated: {e}")
            return 0, requirement.threshold, False

    logger.debug(f"No recognized custom requirement key in {sorted(requirement.metadata)}")
    return 0, requirement.threshold, False


EVALUATORS: Dict[RequirementType, Callable[[AchievementRequirement, EvaluationContext], Measurement]] = {
    RequirementType.EVENT_COUNT: _measure_event_count,
    RequirementType.STREAK_LENGTH: _measure_streak_length,
    RequirementType.SCORE_THRESHOLD: _measure_score_threshold,
    RequirementType.TIME_SPENT: _measure_time_spent,
    RequirementType.CUSTOM: _measure_custom,
}


def measure_requirement(requirement: AchievementRequirement, ctx: EvaluationContext) -> Measurement:
    evaluator = EVALUATORS.get(requirement.type)
    if evaluator is None:
        return 0, requirement.threshold, False
    return evaluator(requirement, ctx)


def requirement_met(requirement: AchievementRequirement, ctx: EvaluationContext) -> bool:
    return measure_requirement(requirement, ctx)[2]


class AchievementEngine:
    """Evaluates the configured achievement catalog for one user at a time"""

    def __init__(self, config: SuccessMetricsConfig):
        self.config = config

    @property
    def achievements(self) -> List[Achievement]:
        return self.config.achievements

    def is_unlocked(self, achievement: Achievement, ctx: EvaluationContext) -> bool:
        """All requirements hold (an achievement with no requirements never unlocks)"""
        if not achievement.requirements:
            return False
        return all(requirement_met(r, ctx) for r in achievement.requirements)

    def evaluate(self, ctx: EvaluationContext) -> List[Achievement]:
        """
        Find achievements newly unlocked by the current state

        Args:
            ctx: Event history (after the triggering append, before any new
                badge), metrics, time and leaderboard standing

        Returns:
            Achievements to award, in catalog order
        """
        earned = ctx.earned_ids or earned_achievement_ids(ctx.events)
        newly_unlocked = []

        for achievement in self.achievements:
            if achievement.id in earned:
                continue
            if self.is_unlocked(achievement, ctx):
                newly_unlocked.append(achievement)
                logger.info(
                    f"User {ctx.metrics.user_id} unlocked achievement: {achievement.id} "
                    f"({achievement.name}) +{achievement.points} points"
                )

        return newly_unlocked

    def progress(self, achievement: Achievement, ctx: EvaluationContext) -> AchievementProgress:
        """
        Calculate progress toward an achievement

        Progress is measured on the first unmet requirement (the last
        requirement when all are met).

        Returns:
            AchievementProgress with a 0-100 percentage
        """
        if not achievement.requirements:
            return AchievementProgress(current=0, required=0, percentage=0, description="0/0")

        measured = None
        for requirement in achievement.requirements:
            measured = measure_requirement(requirement, ctx)
            if not measured[2]:
                break

        current, required, satisfied = measured
        if satisfied:
            percentage = 100
        elif required > 0:
            percentage = max(0, min(99, int(current / required * 100)))
        else:
            percentage = 0

        return AchievementProgress(
            current=current,
            required=required,
            percentage=percentage,
            description=f"{_format_number(current)}/{_format_number(required)}",
        )


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"
