"""
Service Layer Package

Services wire the gamification core to its stores:
- SuccessEventsService: Event ingestion, metrics/event/leaderboard queries, streak sweep
- StatsService: Personal stats, achievement progress, metrics aggregation
"""

from dojo_scoring.services.container import ServiceContainer, get_container, init_container
from dojo_scoring.services.success_events_service import SuccessEventsService
from dojo_scoring.services.stats_service import StatsService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "SuccessEventsService",
    "StatsService",
]
