"""
Background jobs for the scoring engine.

- LeaderboardRefreshJob: rebuilds every leaderboard each update_frequency minutes
- StreakSweepJob: resets expired streaks (hourly by default)

Both run as asyncio tasks with start()/stop(). A failing cycle is logged
and retried on the next interval; it never stops the loop.
"""

import asyncio
import logging
import time
from typing import Optional

from dojo_scoring.exceptions import ScoringEngineError
from dojo_scoring.observability.metrics import (
    leaderboard_rebuild_duration_seconds,
    leaderboard_rebuilds_total,
)

logger = logging.getLogger(__name__)


class PeriodicJob:
    """
    Background task running run_once() every interval seconds.

    Subclasses implement run_once().
    """

    name = "periodic job"

    def __init__(self, interval: float, run_immediately: bool = False):
        """
        Initialize periodic job.

        Args:
            interval: Seconds between cycles
            run_immediately: Run the first cycle on start instead of after one interval
        """
        self.interval = interval
        self.run_immediately = run_immediately
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background task."""
        if self._running:
            logger.warning(f"{self.name} is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"{self.name} started (interval: {self.interval}s)")

    async def stop(self):
        """Stop the background task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(f"{self.name} stopped")

    async def _loop(self):
        """Main loop."""
        if not self.run_immediately:
            await asyncio.sleep(self.interval)

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in {self.name}: {e}", exc_info=True)

            await asyncio.sleep(self.interval)

    async def run_once(self):
        raise NotImplementedError


class LeaderboardRefreshJob(PeriodicJob):
    """Periodic leaderboard rebuild with skip-if-running guard"""

    name = "Leaderboard refresh"

    def __init__(self, events_service, interval: Optional[float] = None, run_immediately: bool = True):
        """
        Args:
            events_service: SuccessEventsService owning the leaderboard builder
            interval: Seconds between rebuilds (defaults to update_frequency minutes)
            run_immediately: Build once on start so readers get snapshots early
        """
        if interval is None:
            interval = events_service.config.leaderboard_settings.update_frequency * 60
        super().__init__(interval, run_immediately)
        self.events_service = events_service

    async def run_once(self) -> str:
        """
        One refresh cycle.

        Returns:
            "success", "skipped" or "failure"
        """
        started = time.perf_counter()
        try:
            published = await self.events_service.refresh_leaderboards()
        except ScoringEngineError as e:
            # Previous snapshots stay visible; the next cycle retries
            leaderboard_rebuilds_total.labels(status="failure").inc()
            logger.error(f"Leaderboard refresh failed, keeping previous snapshots: {e.message}")
            return "failure"

        if published is None:
            leaderboard_rebuilds_total.labels(status="skipped").inc()
            return "skipped"

        leaderboard_rebuilds_total.labels(status="success").inc()
        leaderboard_rebuild_duration_seconds.observe(time.perf_counter() - started)
        return "success"


class StreakSweepJob(PeriodicJob):
    """Periodic streak expiry sweep"""

    name = "Streak sweep"

    def __init__(self, events_service, interval: float = 3600, run_immediately: bool = False):
        super().__init__(interval, run_immediately)
        self.events_service = events_service

    async def run_once(self) -> int:
        return await self.events_service.run_streak_sweep()
