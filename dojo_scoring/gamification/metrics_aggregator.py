"""
User Metrics Aggregator

Owns the per-user UserMetrics rollup. Every appended event (including
synthetic level_up and badge_earned events) is applied exactly once.

Per event:
1. Add points to total_points and experience_points
2. Recompute level and XP to next level
3. Category counters (learning, focus, achievement; streak via streak_system)
4. Push onto the 10-entry most-recent buffer
5. Recompute consistency, improvement and engagement
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence
import logging

from dojo_scoring.gamification import streak_system
from dojo_scoring.gamification.points import round_half_up
from dojo_scoring.gamification.xp_system import calculate_level, experience_to_next_level
from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.models.events import EventType, SuccessCategory, SuccessEvent
from dojo_scoring.models.metrics import RECENT_EVENTS_LIMIT, UserMetrics

logger = logging.getLogger(__name__)

DERIVED_WINDOW_DAYS = 30
IMPROVEMENT_SAMPLE = 5  # events per half; needs 2 * IMPROVEMENT_SAMPLE scored learning events
MS_PER_MINUTE = 60000


def new_metrics(user_id: str, config: SuccessMetricsConfig, now: Optional[datetime] = None) -> UserMetrics:
    """Fresh rollup for a user's first event"""
    thresholds = config.level_thresholds
    return UserMetrics(
        user_id=user_id,
        experience_to_next_level=experience_to_next_level(0, 1, thresholds),
        last_updated=now,
    )


def apply_event(
    metrics: UserMetrics,
    event: SuccessEvent,
    history: Sequence[SuccessEvent],
    config: SuccessMetricsConfig,
    now: datetime
) -> int:
    """
    Apply one event to the user's rollup (in place)

    Args:
        metrics: The user's metrics
        event: Event just appended to the log
        history: Full event log for the user, including event
        config: Engine configuration
        now: Current time (derived-score window end)

    Returns:
        The level before this event (compare with metrics.level to detect a level up)
    """
    previous_level = metrics.level

    metrics.total_points += event.points
    metrics.experience_points += event.points

    thresholds = config.level_thresholds
    metrics.level = calculate_level(metrics.experience_points, thresholds)
    metrics.experience_to_next_level = experience_to_next_level(
        metrics.experience_points, metrics.level, thresholds
    )

    _update_category_counters(metrics, event)
    streak_system.record_activity(metrics, event)

    metrics.recent_events.insert(0, event)
    del metrics.recent_events[RECENT_EVENTS_LIMIT:]

    update_derived_scores(metrics, history, now)
    metrics.events_applied += 1
    metrics.last_updated = now

    if metrics.level > previous_level:
        logger.info(f"User {metrics.user_id} reached level {metrics.level} (was {previous_level})")

    return previous_level


def catch_up(
    metrics: UserMetrics,
    history: Sequence[SuccessEvent],
    config: SuccessMetricsConfig
) -> int:
    """
    Apply log events the rollup has not seen yet (in place)

    A metrics save that failed after the events were appended leaves the
    stored rollup behind the log. Replaying the missing tail, each event
    at its own timestamp, restores the totals the save would have written.

    Returns:
        Number of events replayed
    """
    start = metrics.events_applied
    missing = history[start:]
    for offset, event in enumerate(missing, start=start + 1):
        apply_event(metrics, event, history[:offset], config, event.timestamp)

    if missing:
        logger.warning(f"Replayed {len(missing)} event(s) missing from metrics of user {metrics.user_id}")
    return len(missing)


def _update_category_counters(metrics: UserMetrics, event: SuccessEvent) -> None:
    meta = event.metadata
    event_type = event.event_type

    if event.category == SuccessCategory.LEARNING:
        if event_type == EventType.SESSION_FINISHED.value:
            metrics.total_sessions += 1
            if meta.time_spent:
                metrics.time_spent += round_half_up(meta.time_spent / MS_PER_MINUTE)
        elif event_type == EventType.QUESTION_ANSWERED_CORRECT.value:
            metrics.correct_answers += 1
            metrics.total_questions += 1
        elif event_type == EventType.QUESTION_ANSWERED_INCORRECT.value:
            metrics.total_questions += 1

        if metrics.total_questions > 0:
            metrics.average_score = metrics.correct_answers / metrics.total_questions * 100

    elif event.category == SuccessCategory.FOCUS:
        if event_type == EventType.FOCUS_SESSION_COMPLETED.value:
            metrics.focus_sessions += 1
            if meta.focus_duration:
                metrics.total_focus_time += meta.focus_duration
                metrics.longest_focus_session = max(metrics.longest_focus_session, meta.focus_duration)
            metrics.average_focus_session = metrics.total_focus_time / metrics.focus_sessions

    elif event.category == SuccessCategory.ACHIEVEMENT:
        if event_type == EventType.BADGE_EARNED.value:
            metrics.badges_earned += 1
        elif event_type == EventType.MILESTONE_REACHED.value:
            metrics.milestones_reached += 1
        elif event_type == EventType.CHALLENGE_COMPLETED.value:
            metrics.challenges_completed += 1


# ============================================
# Derived scores
# ============================================

def consistency_score(recent: Sequence[SuccessEvent]) -> float:
    """Share of the last 30 days (UTC) with any activity, 0-100"""
    active_days = {e.timestamp.date() for e in recent}
    return min(100.0, len(active_days) / DERIVED_WINDOW_DAYS * 100)


def improvement_score(history: Sequence[SuccessEvent]) -> float:
    """
    Percentage change of mean score_pct: last 5 vs the 5 before

    Uses scored learning events from the full history. Returns 0 with
    fewer than 10 such events or when the older mean is 0.
    """
    scored = [
        e.metadata.score_pct for e in history
        if e.category == SuccessCategory.LEARNING and e.metadata.score_pct is not None
    ]
    if len(scored) < 2 * IMPROVEMENT_SAMPLE:
        return 0.0

    recent = sum(scored[-IMPROVEMENT_SAMPLE:]) / IMPROVEMENT_SAMPLE
    older = sum(scored[-2 * IMPROVEMENT_SAMPLE:-IMPROVEMENT_SAMPLE]) / IMPROVEMENT_SAMPLE
    if older == 0:
        return 0.0
    return (recent - older) / older * 100


def engagement_score(recent: Sequence[SuccessEvent]) -> float:
    """min(100, distinct event types * 10 + events per day * 5) over 30 days"""
    event_types = len({e.event_type for e in recent})
    events_per_day = len(recent) / DERIVED_WINDOW_DAYS
    return min(100.0, event_types * 10 + events_per_day * 5)


def update_derived_scores(metrics: UserMetrics, history: Sequence[SuccessEvent], now: datetime) -> None:
    cutoff = now - timedelta(days=DERIVED_WINDOW_DAYS)
    recent = [e for e in history if e.timestamp >= cutoff]

    metrics.consistency = consistency_score(recent)
    metrics.improvement = improvement_score(history)
    metrics.engagement = engagement_score(recent)
