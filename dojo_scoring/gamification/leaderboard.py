"""
Leaderboard Builder

Rebuilds every (category, timeframe) leaderboard from the event log.

Per key:
1. Cutoff: daily = start of today, weekly = now - 7d, monthly = start of month, all_time = epoch
2. Sum points per user over matching events at or after the cutoff
3. Rank users with a positive total: points descending, then the earlier
   timestamp of the last counted event, then user id
4. Truncate to max_entries, rank = index + 1
5. change = previous rank - new rank (None when absent from the previous snapshot)

All keys are built first and published together with one replace_all
call; if anything fails nothing is published and the previous snapshots
stay visible.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from dojo_scoring.db.stores import EventStore, LeaderboardStore
from dojo_scoring.exceptions import LeaderboardRebuildError
from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.models.events import SuccessCategory, SuccessEvent
from dojo_scoring.models.leaderboard import Leaderboard, LeaderboardEntry, Timeframe, leaderboard_key
from dojo_scoring.utils.datetime_helpers import Clock, now_utc, period_start

logger = logging.getLogger(__name__)

TIMEFRAME_LABELS = {
    Timeframe.DAILY: "Today",
    Timeframe.WEEKLY: "This Week",
    Timeframe.MONTHLY: "This Month",
    Timeframe.ALL_TIME: "All Time",
}


def rank_entries(
    events_by_user: Mapping[str, Sequence[SuccessEvent]],
    category: SuccessCategory,
    start_date: datetime,
    max_entries: int,
    previous: Optional[Leaderboard] = None,
) -> Tuple[LeaderboardEntry, ...]:
    """
    Rank users by points earned in a category since start_date

    Args:
        events_by_user: Snapshot of every user's event log
        category: Category to sum
        start_date: Inclusive cutoff
        max_entries: Maximum entries kept
        previous: Prior snapshot for the same key, for rank change

    Returns:
        Entries sorted by rank (contiguous from 1)
    """
    totals: List[Tuple[str, int, datetime]] = []

    for user_id, events in events_by_user.items():
        points = 0
        last_counted = None
        for event in events:
            if event.category != category or event.timestamp < start_date:
                continue
            points += event.points
            if last_counted is None or event.timestamp > last_counted:
                last_counted = event.timestamp
        if points > 0:
            totals.append((user_id, points, last_counted))

    totals.sort(key=lambda t: (-t[1], t[2], t[0]))

    previous_ranks = {}
    if previous is not None:
        previous_ranks = {entry.user_id: entry.rank for entry in previous.entries}

    entries = []
    for index, (user_id, points, _) in enumerate(totals[:max_entries]):
        rank = index + 1
        previous_rank = previous_ranks.get(user_id)
        entries.append(
            LeaderboardEntry(
                user_id=user_id,
                points=points,
                rank=rank,
                change=previous_rank - rank if previous_rank is not None else None,
            )
        )

    return tuple(entries)


class LeaderboardBuilder:
    """Periodic wholesale rebuild of all configured leaderboards"""

    def __init__(
        self,
        config: SuccessMetricsConfig,
        event_store: EventStore,
        leaderboard_store: LeaderboardStore,
        clock: Clock = now_utc,
    ):
        self.config = config
        self.event_store = event_store
        self.leaderboard_store = leaderboard_store
        self.clock = clock
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def keys(self) -> List[Tuple[SuccessCategory, Timeframe]]:
        settings = self.config.leaderboard_settings
        return [(c, t) for c in settings.categories for t in settings.timeframes]

    def build(
        self,
        events_by_user: Mapping[str, Sequence[SuccessEvent]],
        previous: Mapping[str, Leaderboard],
        now: datetime,
    ) -> Dict[str, Leaderboard]:
        """Build every configured leaderboard from an event snapshot (pure)"""
        max_entries = self.config.leaderboard_settings.max_entries
        built = {}

        for category, timeframe in self.keys():
            key = leaderboard_key(category, timeframe)
            entries = rank_entries(
                events_by_user,
                category,
                period_start(timeframe.value, now),
                max_entries,
                previous.get(key),
            )
            built[key] = Leaderboard(
                id=key,
                name=f"{category.value.title()} - {TIMEFRAME_LABELS[timeframe]}",
                description=f"Top {category.value} performers ({timeframe.value.replace('_', ' ')})",
                category=category,
                timeframe=timeframe,
                entries=entries,
                last_updated=now,
            )

        return built

    async def refresh(self) -> Optional[Dict[str, Leaderboard]]:
        """
        Rebuild and publish all leaderboards

        Returns:
            The published leaderboards, or None when skipped because the
            previous cycle is still running

        Raises:
            LeaderboardRebuildError: If reading or publishing failed; no
                snapshot was replaced
        """
        if self._lock.locked():
            logger.warning("Leaderboard refresh still running, skipping this cycle")
            return None

        async with self._lock:
            now = self.clock()
            try:
                snapshot = await self.event_store.snapshot()
                previous = await self.leaderboard_store.get_all()
                # Ranking every key is CPU bound; keep it off the event loop
                built = await asyncio.to_thread(self.build, snapshot, previous, now)
                await self.leaderboard_store.replace_all(built)
            except Exception as e:
                raise LeaderboardRebuildError(
                    f"Leaderboard refresh failed: {e}",
                    operation="refresh_leaderboards",
                    cause=e,
                )

        logger.info(f"Rebuilt {len(built)} leaderboards across {len(snapshot)} users")
        return built
