"""
Service Container - Dependency Injection Container

Simple DI container for managing service instances and their dependencies.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from dojo_scoring.db.memory import InMemoryEventStore, InMemoryLeaderboardStore, InMemoryMetricsStore
from dojo_scoring.db.stores import EventStore, LeaderboardStore, MetricsStore
from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Configuration, stores and clock are injected.
    """

    # Infrastructure dependencies (injected)
    config: SuccessMetricsConfig = field(default_factory=SuccessMetricsConfig)
    event_store: EventStore = field(default_factory=InMemoryEventStore)
    metrics_store: MetricsStore = field(default_factory=InMemoryMetricsStore)
    leaderboard_store: LeaderboardStore = field(default_factory=InMemoryLeaderboardStore)
    clock: Clock = now_utc

    # Services (lazy-loaded via properties)
    _success_events_service: Optional[object] = field(default=None, init=False, repr=False)
    _stats_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def success_events_service(self):
        """Get SuccessEventsService instance (lazy-loaded)"""
        if self._success_events_service is None:
            from dojo_scoring.services.success_events_service import SuccessEventsService
            self._success_events_service = SuccessEventsService(
                config=self.config,
                event_store=self.event_store,
                metrics_store=self.metrics_store,
                leaderboard_store=self.leaderboard_store,
                clock=self.clock,
            )
            logger.debug("SuccessEventsService instantiated")
        return self._success_events_service

    @property
    def stats_service(self):
        """Get StatsService instance (lazy-loaded)"""
        if self._stats_service is None:
            from dojo_scoring.services.stats_service import StatsService
            self._stats_service = StatsService(self.success_events_service)
            logger.debug("StatsService instantiated")
        return self._stats_service


# Global container instance (initialized in main.py)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() in main.py before using services."
        )
    return _container


def init_container(
    config: Optional[SuccessMetricsConfig] = None,
    event_store: Optional[EventStore] = None,
    metrics_store: Optional[MetricsStore] = None,
    leaderboard_store: Optional[LeaderboardStore] = None,
    clock: Clock = now_utc,
) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once in main.py after configuration is loaded.

    Args:
        config: Engine configuration (built-in defaults if omitted)
        event_store: Event log backend (in-memory if omitted)
        metrics_store: Metrics backend (in-memory if omitted)
        leaderboard_store: Leaderboard snapshot backend (in-memory if omitted)
        clock: Time source

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(
        config=config or SuccessMetricsConfig(),
        event_store=event_store or InMemoryEventStore(),
        metrics_store=metrics_store or InMemoryMetricsStore(),
        leaderboard_store=leaderboard_store or InMemoryLeaderboardStore(),
        clock=clock,
    )

    logger.info("Service container initialized")
    return _container


def reset_container() -> None:
    """Drop the global container (used by tests)"""
    global _container
    _container = None
