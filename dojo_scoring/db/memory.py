"""
In-memory store implementations

Suitable for a single process (tests, demos, embedding in a bot). State
lives on the instances, so each engine gets its own isolated stores.
"""

import logging
from typing import Dict, List, Optional, Sequence

from dojo_scoring.db.stores import EventStore, LeaderboardStore, MetricsStore
from dojo_scoring.models.events import SuccessEvent
from dojo_scoring.models.leaderboard import Leaderboard
from dojo_scoring.models.metrics import UserMetrics

logger = logging.getLogger(__name__)


class InMemoryEventStore(EventStore):
    """Per-user event lists"""

    def __init__(self):
        self._events: Dict[str, List[SuccessEvent]] = {}

    async def append_many(self, events: Sequence[SuccessEvent]) -> None:
        # Staged copies are swapped in together, so readers never see part of a write
        staged: Dict[str, List[SuccessEvent]] = {}
        for event in events:
            if event.user_id not in staged:
                staged[event.user_id] = list(self._events.get(event.user_id, ()))
            staged[event.user_id].append(event)
        self._events.update(staged)
        logger.debug(f"Appended {len(events)} event(s) for {len(staged)} user(s)")

    async def get_user_events(self, user_id: str) -> List[SuccessEvent]:
        return list(self._events.get(user_id, ()))

    async def snapshot(self) -> Dict[str, Sequence[SuccessEvent]]:
        # Tuples: events are immutable, so a shallow copy is a consistent view
        return {user_id: tuple(events) for user_id, events in self._events.items()}


class InMemoryMetricsStore(MetricsStore):
    """user_id -> UserMetrics"""

    def __init__(self):
        self._metrics: Dict[str, UserMetrics] = {}

    async def get(self, user_id: str) -> Optional[UserMetrics]:
        return self._metrics.get(user_id)

    async def save(self, metrics: UserMetrics) -> None:
        self._metrics[metrics.user_id] = metrics

    async def get_user_ids(self) -> List[str]:
        return list(self._metrics)


class InMemoryLeaderboardStore(LeaderboardStore):
    """key -> latest Leaderboard snapshot"""

    def __init__(self):
        self._leaderboards: Dict[str, Leaderboard] = {}

    async def get(self, key: str) -> Optional[Leaderboard]:
        return self._leaderboards.get(key)

    async def replace_all(self, leaderboards: Dict[str, Leaderboard]) -> None:
        # Swap in a new dict so concurrent readers see either all old or all new
        updated = dict(self._leaderboards)
        updated.update(leaderboards)
        self._leaderboards = updated

    async def get_all(self) -> Dict[str, Leaderboard]:
        return dict(self._leaderboards)
