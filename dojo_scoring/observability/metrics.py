"""
Prometheus metrics definitions for the scoring engine.

This module defines all metrics collected by the engine, organized by category:
- Ingestion metrics: Events, points, duplicates, latency
- Gamification metrics: Achievements, level-ups, streaks
- Leaderboard metrics: Rebuild outcomes and duration

Metrics are exposed at the /metrics endpoint when main.py starts the
Prometheus HTTP server.
"""

import logging
import os
import sys

from prometheus_client import Counter, Gauge, Histogram, Info

logger = logging.getLogger(__name__)

# =============================================================================
# Ingestion Metrics
# =============================================================================

events_ingested_total = Counter(
    "scoring_events_ingested_total",
    "Total success events appended to the event log",
    ["event_type", "category", "origin"],  # origin: external/synthetic
)

points_awarded_total = Counter(
    "scoring_points_awarded_total",
    "Total points awarded",
    ["category"],
)

duplicates_skipped_total = Counter(
    "scoring_duplicates_skipped_total",
    "Batch events dropped as duplicates",
)

ingestion_duration_seconds = Histogram(
    "scoring_ingestion_duration_seconds",
    "Time to fully process one external event, including follow-ups",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

ingestion_errors_total = Counter(
    "scoring_ingestion_errors_total",
    "Events rejected or failed during ingestion",
    ["error_type"],
)

# =============================================================================
# Gamification Metrics
# =============================================================================

achievements_unlocked_total = Counter(
    "scoring_achievements_unlocked_total",
    "Total achievements unlocked",
    ["difficulty"],
)

level_ups_total = Counter(
    "scoring_level_ups_total",
    "Total level_up events synthesized",
)

streaks_expired_total = Counter(
    "scoring_streaks_expired_total",
    "Streaks reset by the sweep after the grace period",
)

streaks_active = Gauge(
    "scoring_streaks_active",
    "Users with a current streak above zero (as of the last sweep)",
)

# =============================================================================
# Leaderboard Metrics
# =============================================================================

leaderboard_rebuilds_total = Counter(
    "scoring_leaderboard_rebuilds_total",
    "Leaderboard refresh cycles",
    ["status"],  # status: success/failure/skipped
)

leaderboard_rebuild_duration_seconds = Histogram(
    "scoring_leaderboard_rebuild_duration_seconds",
    "Leaderboard refresh duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
)

# =============================================================================
# Application Info
# =============================================================================

app_info = Info(
    "scoring_app",
    "Application information",
)


def init_metrics():
    """
    Initialize metrics with application information.

    This should be called once at application startup to set
    static metadata about the application.
    """
    from dojo_scoring.config import SENTRY_ENVIRONMENT

    app_info.info(
        {
            "version": os.getenv("GIT_COMMIT_SHA", "dev")[:7],
            "environment": SENTRY_ENVIRONMENT,
            "python_version": f"{sys.version_info.major}.{sys.version_info.minor}",
        }
    )

    logger.info("Prometheus metrics initialized")
