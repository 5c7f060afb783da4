"""
Storage interfaces for the scoring engine

The algorithms only need three stores:
- EventStore: append-only per-user event log (single source of truth)
- MetricsStore: key-value map of user_id -> UserMetrics
- LeaderboardStore: key-value map of snapshot key -> Leaderboard

A production deployment backs these with a real database; the engine
only relies on append_many() and replace_all() being atomic per call.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from dojo_scoring.models.events import SuccessEvent
from dojo_scoring.models.leaderboard import Leaderboard
from dojo_scoring.models.metrics import UserMetrics


class EventStore(ABC):
    """Append-only per-user event log"""

    @abstractmethod
    async def append_many(self, events: Sequence[SuccessEvent]) -> None:
        """
        Append events atomically

        Either every event becomes visible (in the given order) or none
        does; an external event and its follow-ups are written this way.
        """

    @abstractmethod
    async def get_user_events(self, user_id: str) -> List[SuccessEvent]:
        """All events for user_id in append order (empty list if none)"""

    @abstractmethod
    async def snapshot(self) -> Dict[str, Sequence[SuccessEvent]]:
        """
        Point-in-time copy of every user's log

        Each per-user sequence reflects whole appends only, so readers
        never see half-applied point totals.
        """


class MetricsStore(ABC):
    """Key-value store of per-user metrics rollups"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserMetrics]:
        """Metrics for user_id, or None if never created"""

    @abstractmethod
    async def save(self, metrics: UserMetrics) -> None:
        """Insert or replace metrics for metrics.user_id"""

    @abstractmethod
    async def get_user_ids(self) -> List[str]:
        """Every user id with stored metrics"""


class LeaderboardStore(ABC):
    """Key-value store of the latest leaderboard snapshot per key"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Leaderboard]:
        """Latest snapshot for key, or None"""

    @abstractmethod
    async def replace_all(self, leaderboards: Dict[str, Leaderboard]) -> None:
        """Atomically replace the snapshots for the given keys"""

    @abstractmethod
    async def get_all(self) -> Dict[str, Leaderboard]:
        """Latest snapshot for every key"""
