"""
Streak Tracking System

Tracks current/longest streak and last activity per user.

Streak detection (deciding whether a day counts as active) happens
upstream; callers report the resulting length in metadata.streak_length
on streak events. This module only records that integer and expires it.

Rules:
- Any external event refreshes last_activity_date
- Streak events carrying streak_length overwrite current_streak and
  raise longest_streak when exceeded
- The hourly sweep resets current_streak to 0 once more than
  24 + grace_hours have passed since the last activity (no event emitted)
"""

from datetime import datetime
from typing import Optional
import logging

from dojo_scoring.models.events import SuccessCategory, SuccessEvent
from dojo_scoring.models.metrics import UserMetrics
from dojo_scoring.utils.datetime_helpers import hours_between

logger = logging.getLogger(__name__)

STREAK_WINDOW_HOURS = 24


def record_activity(metrics: UserMetrics, event: SuccessEvent) -> None:
    """
    Update streak state for an ingested event

    Synthetic events (level_up, badge_earned) are not user activity and
    leave last_activity_date untouched.
    """
    if not event.synthetic:
        if metrics.last_activity_date is None or event.timestamp >= metrics.last_activity_date:
            metrics.last_activity_date = event.timestamp

    if event.category != SuccessCategory.STREAK:
        return

    streak_length = event.metadata.streak_length
    if streak_length is not None:
        metrics.current_streak = streak_length
        if streak_length > metrics.longest_streak:
            metrics.longest_streak = streak_length
            logger.info(f"User {metrics.user_id} new best streak: {streak_length}")

    streak_type = getattr(event.metadata, "streak_type", None)
    if streak_type:
        metrics.streak_type = streak_type


def is_streak_expired(
    last_activity: Optional[datetime],
    now: datetime,
    grace_hours: float
) -> bool:
    """True once more than 24 + grace_hours passed since last_activity"""
    if last_activity is None:
        return False
    return hours_between(last_activity, now) > STREAK_WINDOW_HOURS + grace_hours


def expire_streak(metrics: UserMetrics, now: datetime, grace_hours: float) -> bool:
    """
    Reset an active streak whose grace deadline has passed

    Args:
        metrics: User metrics (modified in place)
        now: Sweep time
        grace_hours: Extra hours allowed beyond the 24h window

    Returns:
        True if the streak was reset
    """
    if metrics.current_streak <= 0:
        return False
    if not is_streak_expired(metrics.last_activity_date, now, grace_hours):
        return False

    logger.info(
        f"Streak expired for user {metrics.user_id}: "
        f"{metrics.current_streak} -> 0 (last activity {metrics.last_activity_date})"
    )
    metrics.current_streak = 0
    return True
