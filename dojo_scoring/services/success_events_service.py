"""
SuccessEventsService - Event Ingestion and Queries

Entry point for callers (quiz engine, focus timer, chat adapters, streak
detector) and readers (UI, reporting).

Ingestion pipeline for one external event, serialized per user:
1. Point calculation (base, bonus, multipliers)
2. Metrics aggregation on a working copy
3. level_up follow-up when the event crossed a threshold
4. Achievement evaluation (may produce badge_earned follow-ups)
5. A second level_up when badge points crossed a further threshold
6. The event and its follow-ups appended in one atomic write
7. Metrics saved

Follow-ups are aggregated exactly once and never produce further
follow-ups or achievement checks. Nothing reaches the log until the
whole pipeline has run; a rollup left behind by a failed metrics save
is caught up from the log on the next read.

Different users are processed concurrently; one user's events never are.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from dojo_scoring.config import DUPLICATE_WINDOW_SECONDS
from dojo_scoring.db.memory import InMemoryEventStore, InMemoryLeaderboardStore, InMemoryMetricsStore
from dojo_scoring.db.stores import EventStore, LeaderboardStore, MetricsStore
from dojo_scoring.exceptions import ScoringEngineError, StoreError, ValidationError, wrap_store_exception
from dojo_scoring.gamification import metrics_aggregator, streak_system
from dojo_scoring.gamification.achievement_system import AchievementEngine, EvaluationContext, badge_metadata
from dojo_scoring.gamification.leaderboard import LeaderboardBuilder
from dojo_scoring.gamification.points import calculate_points, category_for_event_type
from dojo_scoring.gamification.xp_system import calculate_level
from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.models.events import (
    CreateEventParams,
    EventFilter,
    EventType,
    SuccessCategory,
    SuccessEvent,
    parse_metadata,
)
from dojo_scoring.models.leaderboard import Leaderboard, Timeframe, leaderboard_key
from dojo_scoring.models.metrics import UserMetrics
from dojo_scoring.observability.metrics import (
    duplicates_skipped_total,
    events_ingested_total,
    ingestion_duration_seconds,
    ingestion_errors_total,
    level_ups_total,
    achievements_unlocked_total,
    points_awarded_total,
    streaks_active,
    streaks_expired_total,
)
from dojo_scoring.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)

EventRequest = Union[CreateEventParams, Mapping[str, Any]]


class SuccessEventsService:
    """
    Service for success event ingestion, metrics and leaderboard reads.

    Responsibilities:
    - Event creation (single and batch) with duplicate suppression
    - Per-user serialization of the ingestion pipeline
    - Metrics and event queries
    - Leaderboard reads and refresh
    - Streak expiry sweep
    """

    def __init__(
        self,
        config: Optional[SuccessMetricsConfig] = None,
        event_store: Optional[EventStore] = None,
        metrics_store: Optional[MetricsStore] = None,
        leaderboard_store: Optional[LeaderboardStore] = None,
        clock: Clock = now_utc,
        duplicate_window_seconds: float = DUPLICATE_WINDOW_SECONDS,
    ):
        """
        Initialize SuccessEventsService.

        Args:
            config: Engine configuration (defaults to built-in tables)
            event_store: Append-only event log (in-memory by default)
            metrics_store: Per-user metrics store (in-memory by default)
            leaderboard_store: Leaderboard snapshot store (in-memory by default)
            clock: Returns the current UTC time
            duplicate_window_seconds: Trailing window for skip_duplicates
        """
        self.config = config or SuccessMetricsConfig()
        self.event_store = event_store or InMemoryEventStore()
        self.metrics_store = metrics_store or InMemoryMetricsStore()
        self.leaderboard_store = leaderboard_store or InMemoryLeaderboardStore()
        self.clock = clock
        self.duplicate_window_seconds = duplicate_window_seconds

        self.achievement_engine = AchievementEngine(self.config)
        self.leaderboard_builder = LeaderboardBuilder(
            self.config, self.event_store, self.leaderboard_store, clock
        )
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Dict[str, int] = {}
        logger.debug("SuccessEventsService initialized")

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        """Serialize one user's work; the lock is dropped once nobody holds or awaits it"""
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._user_locks[user_id]

    # ==========================================
    # Ingestion
    # ==========================================

    async def create_event(
        self,
        user_id: str,
        event_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
        custom_points: Optional[int] = None,
    ) -> SuccessEvent:
        """
        Create a success event and run the full scoring pipeline.

        Args:
            user_id: User identifier
            event_type: Event type (unknown types score 0 and count as achievement)
            metadata: Optional metadata mapping (camelCase or snake_case keys);
                malformed fields are dropped individually
            session_id: Optional session identifier
            custom_points: Optional pre-multiplier base overriding the point table

        Returns:
            The created SuccessEvent

        Raises:
            ValidationError: If user_id/event_type is empty or custom_points is negative
            StoreError: If a store operation failed
        """
        params = self._coerce({
            "user_id": user_id,
            "event_type": event_type,
            "metadata": metadata,
            "session_id": session_id,
            "custom_points": custom_points,
        })
        async with self._user_lock(params.user_id):
            return await self._ingest(params)

    async def create_batch(
        self,
        events: Sequence[EventRequest],
        skip_duplicates: bool = False,
        validate_on_error: bool = False,
    ) -> List[SuccessEvent]:
        """
        Create several events.

        Each user's events are processed in input order; different users
        run concurrently.

        Args:
            events: CreateEventParams or plain mappings
            skip_duplicates: Drop events whose type and session id match an
                event of the same user within the duplicate window
            validate_on_error: Log failed events and continue; otherwise a
                user's sequence stops at its first failure and the first
                failure (in input order) is raised once all users finish

        Returns:
            Created events in input order (duplicates and failures omitted)
        """
        results: List[Optional[SuccessEvent]] = [None] * len(events)
        errors: Dict[int, Exception] = {}
        by_user: Dict[str, List[Tuple[int, CreateEventParams]]] = {}

        for index, request in enumerate(events):
            try:
                params = self._coerce(request)
            except ScoringEngineError as e:
                errors[index] = e
                continue
            by_user.setdefault(params.user_id, []).append((index, params))

        async def run_user(items: List[Tuple[int, CreateEventParams]]) -> None:
            for index, params in items:
                try:
                    async with self._user_lock(params.user_id):
                        if skip_duplicates and await self._is_duplicate(params):
                            duplicates_skipped_total.inc()
                            logger.debug(
                                f"Skipping duplicate {params.event_type} for user {params.user_id} "
                                f"(session {params.session_id})"
                            )
                            continue
                        results[index] = await self._ingest(params)
                except Exception as e:
                    errors[index] = e
                    if not validate_on_error:
                        return

        await asyncio.gather(*(run_user(items) for items in by_user.values()))

        for index in sorted(errors):
            error = errors[index]
            if not validate_on_error:
                raise error
            logger.warning(f"Batch event {index} failed, continuing: {error}")

        return [event for event in results if event is not None]

    def _coerce(self, request: EventRequest) -> CreateEventParams:
        if isinstance(request, CreateEventParams):
            return self._validate(request)
        try:
            return self._validate(CreateEventParams.model_validate(request))
        except PydanticValidationError as e:
            ingestion_errors_total.labels(error_type="validation").inc()
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or None
            raise ValidationError(
                f"Malformed event request: {first['msg']}",
                field=field,
                value=first.get("input"),
                operation="ingest",
            )

    @staticmethod
    def _validate(params: CreateEventParams) -> CreateEventParams:
        if not params.user_id or not params.user_id.strip():
            ingestion_errors_total.labels(error_type="validation").inc()
            raise ValidationError("user_id must not be empty", field="user_id", value=params.user_id)
        if not params.event_type or not params.event_type.strip():
            ingestion_errors_total.labels(error_type="validation").inc()
            raise ValidationError(
                "event_type must not be empty",
                field="event_type",
                value=params.event_type,
                user_id=params.user_id,
            )
        if params.custom_points is not None and params.custom_points < 0:
            ingestion_errors_total.labels(error_type="validation").inc()
            raise ValidationError(
                "custom_points must not be negative",
                field="custom_points",
                value=params.custom_points,
                user_id=params.user_id,
            )
        return params

    async def _is_duplicate(self, params: CreateEventParams) -> bool:
        """Same event type and session id within the trailing duplicate window"""
        now = self.clock()
        for event in await self._load_events(params.user_id):
            if (now - event.timestamp).total_seconds() >= self.duplicate_window_seconds:
                continue
            if event.event_type == params.event_type and event.session_id == params.session_id:
                return True
        return False

    async def _ingest(self, params: CreateEventParams) -> SuccessEvent:
        """Run the pipeline for one external event (caller holds the user's lock)"""
        user_id = params.user_id

        with ingestion_duration_seconds.time():
            now = self.clock()
            best_rank = await self._best_rank_for_ingest(user_id)
            history = await self._load_events(user_id)
            metrics = await self._load_metrics(user_id, history)

            event = self._build_event(
                user_id,
                params.event_type,
                params.metadata,
                params.session_id,
                params.custom_points,
                now,
            )
            pending = [event]
            announced_level = self._apply(metrics, event, history, now)

            if metrics.level > announced_level:
                pending.append(self._level_up(metrics, history, announced_level, now))
                announced_level = metrics.level

            context = EvaluationContext(events=history, metrics=metrics, now=now, best_rank=best_rank)
            for achievement in self.achievement_engine.evaluate(context):
                badge = self._build_event(
                    user_id,
                    EventType.BADGE_EARNED.value,
                    badge_metadata(achievement),
                    None,
                    achievement.points,
                    now,
                    synthetic=True,
                )
                pending.append(badge)
                self._apply(metrics, badge, history, now)

            if metrics.level > announced_level:
                pending.append(self._level_up(metrics, history, announced_level, now))

            await self._append_all(pending)
            await self._save_metrics(metrics)

        follow_ups = len(pending) - 1
        logger.info(
            f"Created event: {event.event_type} for user {user_id} (+{event.points} points"
            f"{', ' + str(follow_ups) + ' follow-up(s)' if follow_ups else ''})"
        )
        return event

    def _apply(
        self,
        metrics: UserMetrics,
        event: SuccessEvent,
        history: List[SuccessEvent],
        now,
    ) -> int:
        """Fold an event into the working history and metrics; returns the level before it"""
        history.append(event)
        return metrics_aggregator.apply_event(metrics, event, history, self.config, now)

    def _level_up(
        self,
        metrics: UserMetrics,
        history: List[SuccessEvent],
        previous_level: int,
        now,
    ) -> SuccessEvent:
        """
        Build and apply the level_up follow-up for previous_level -> current level

        The level_up bonus itself can cross further thresholds; new_level
        is the level reached after the bonus, so one event announces the
        whole climb.
        """
        def build(new_level: int) -> SuccessEvent:
            return self._build_event(
                metrics.user_id,
                EventType.LEVEL_UP.value,
                {"newLevel": new_level, "previousLevel": previous_level},
                None,
                None,
                now,
                synthetic=True,
            )

        level_up = build(metrics.level)
        reached = calculate_level(metrics.experience_points + level_up.points, self.config.level_thresholds)
        if reached > metrics.level:
            level_up = build(reached)

        self._apply(metrics, level_up, history, now)
        return level_up

    def _build_event(
        self,
        user_id: str,
        event_type: str,
        raw_metadata: Optional[Mapping[str, Any]],
        session_id: Optional[str],
        custom_points: Optional[int],
        now,
        synthetic: bool = False,
    ) -> SuccessEvent:
        category = category_for_event_type(event_type)
        metadata = parse_metadata(category, raw_metadata)
        points, multiplier = calculate_points(self.config, event_type, metadata, custom_points)

        return SuccessEvent(
            id=str(uuid4()),
            user_id=user_id,
            event_type=event_type,
            category=category,
            points=points,
            timestamp=now,
            metadata=metadata,
            session_id=session_id,
            multiplier=multiplier,
            synthetic=synthetic,
        )

    # ==========================================
    # Store access (backend failures become StoreError)
    # ==========================================

    async def _append_all(self, events: List[SuccessEvent]) -> None:
        try:
            await self.event_store.append_many(events)
        except Exception as e:
            ingestion_errors_total.labels(error_type="store").inc()
            raise wrap_store_exception(
                e, operation="append_events", store="events", user_id=events[0].user_id,
                context={"event_types": [event.event_type for event in events]},
            )

        for event in events:
            origin = "synthetic" if event.synthetic else "external"
            events_ingested_total.labels(
                event_type=event.event_type, category=event.category.value, origin=origin
            ).inc()
            if event.points > 0:
                points_awarded_total.labels(category=event.category.value).inc(event.points)
            if event.event_type == EventType.LEVEL_UP.value:
                level_ups_total.inc()
            elif event.event_type == EventType.BADGE_EARNED.value:
                achievements_unlocked_total.labels(difficulty=event.metadata.difficulty).inc()

    async def _load_events(self, user_id: str) -> List[SuccessEvent]:
        try:
            return list(await self.event_store.get_user_events(user_id))
        except Exception as e:
            raise wrap_store_exception(e, operation="get_user_events", store="events", user_id=user_id)

    async def _load_metrics(self, user_id: str, history: List[SuccessEvent]) -> UserMetrics:
        """Working copy of the user's metrics, caught up with the log"""
        try:
            stored = await self.metrics_store.get(user_id)
        except Exception as e:
            raise wrap_store_exception(e, operation="get_metrics", store="metrics", user_id=user_id)

        if stored is None:
            metrics = metrics_aggregator.new_metrics(user_id, self.config, self.clock())
        else:
            metrics = stored.model_copy(update={"recent_events": list(stored.recent_events)})
        metrics_aggregator.catch_up(metrics, history, self.config)
        return metrics

    async def _save_metrics(self, metrics: UserMetrics) -> None:
        try:
            await self.metrics_store.save(metrics)
        except Exception as e:
            ingestion_errors_total.labels(error_type="store").inc()
            raise wrap_store_exception(e, operation="save_metrics", store="metrics", user_id=metrics.user_id)

    async def get_best_rank(self, user_id: str) -> Optional[int]:
        """Best rank of the user across all current leaderboard snapshots"""
        try:
            leaderboards = await self.leaderboard_store.get_all()
        except Exception as e:
            raise wrap_store_exception(e, operation="get_leaderboards", store="leaderboards", user_id=user_id)

        ranks = [
            entry.rank
            for leaderboard in leaderboards.values()
            for entry in leaderboard.entries
            if entry.user_id == user_id
        ]
        return min(ranks) if ranks else None

    async def _best_rank_for_ingest(self, user_id: str) -> Optional[int]:
        """Best rank, or None while the leaderboard store is unavailable"""
        try:
            return await self.get_best_rank(user_id)
        except StoreError:
            ingestion_errors_total.labels(error_type="leaderboard").inc()
            logger.warning(f"Leaderboard store unavailable, evaluating {user_id} without a rank")
            return None

    # ==========================================
    # Queries
    # ==========================================

    async def get_user_metrics(self, user_id: str) -> UserMetrics:
        """
        Current metrics for a user.

        Unknown users get a fresh zeroed rollup (not persisted). Events the
        stored rollup has not counted yet are replayed into the result.
        """
        stored = await self.metrics_store.get(user_id)
        history = await self.event_store.get_user_events(user_id)

        if stored is None:
            metrics = metrics_aggregator.new_metrics(user_id, self.config)
        else:
            metrics = stored.model_copy(update={"recent_events": list(stored.recent_events)})
        metrics_aggregator.catch_up(metrics, history, self.config)
        return metrics

    async def get_events(self, event_filter: Optional[EventFilter] = None, **criteria) -> List[SuccessEvent]:
        """
        Query events, newest first.

        Args:
            event_filter: EventFilter, or pass its fields as keyword arguments
                (user_id, event_types, categories, start_date, end_date,
                min_points, max_points, session_id, limit, offset)

        Returns:
            Matching events sorted newest first (ties: later appended first),
            then offset and limit applied. Empty list if nothing matches.
        """
        if event_filter is None:
            event_filter = EventFilter(**criteria)

        if event_filter.user_id is not None:
            events = await self.event_store.get_user_events(event_filter.user_id)
        else:
            snapshot = await self.event_store.snapshot()
            events = [event for user_events in snapshot.values() for event in user_events]

        event_types = set(event_filter.event_types) if event_filter.event_types is not None else None
        categories = (
            {SuccessCategory(c) for c in event_filter.categories}
            if event_filter.categories is not None else None
        )

        matched = []
        for event in events:
            if event_types is not None and event.event_type not in event_types:
                continue
            if categories is not None and event.category not in categories:
                continue
            if event_filter.start_date is not None and event.timestamp < event_filter.start_date:
                continue
            if event_filter.end_date is not None and event.timestamp > event_filter.end_date:
                continue
            if event_filter.min_points is not None and event.points < event_filter.min_points:
                continue
            if event_filter.max_points is not None and event.points > event_filter.max_points:
                continue
            if event_filter.session_id is not None and event.session_id != event_filter.session_id:
                continue
            matched.append(event)

        matched.reverse()
        matched.sort(key=lambda e: e.timestamp, reverse=True)

        matched = matched[event_filter.offset:]
        if event_filter.limit:
            matched = matched[:event_filter.limit]
        return matched

    async def get_leaderboard(
        self,
        category: Union[SuccessCategory, str],
        timeframe: Union[Timeframe, str],
    ) -> Optional[Leaderboard]:
        """Latest snapshot for (category, timeframe), or None. Never triggers a rebuild."""
        try:
            key = leaderboard_key(SuccessCategory(category), Timeframe(timeframe))
        except ValueError:
            return None
        return await self.leaderboard_store.get(key)

    async def get_user_rank(
        self,
        user_id: str,
        category: Union[SuccessCategory, str],
        timeframe: Union[Timeframe, str],
    ) -> Optional[int]:
        """User's rank in the latest snapshot, or None if absent"""
        leaderboard = await self.get_leaderboard(category, timeframe)
        if leaderboard is None:
            return None
        entry = leaderboard.entry_for(user_id)
        return entry.rank if entry else None

    # ==========================================
    # Background operations
    # ==========================================

    async def refresh_leaderboards(self) -> Optional[Dict[str, Leaderboard]]:
        """Rebuild all leaderboards (None if a refresh is already running)"""
        return await self.leaderboard_builder.refresh()

    async def run_streak_sweep(self) -> int:
        """
        Reset streaks whose grace period has passed.

        Returns:
            Number of streaks reset
        """
        now = self.clock()
        grace_hours = self.config.streak_settings.grace_hours
        reset = 0
        active = 0

        for user_id in await self.metrics_store.get_user_ids():
            async with self._user_lock(user_id):
                metrics = await self.metrics_store.get(user_id)
                if metrics is None:
                    continue
                if streak_system.expire_streak(metrics, now, grace_hours):
                    await self._save_metrics(metrics)
                    streaks_expired_total.inc()
                    reset += 1
                if metrics.current_streak > 0:
                    active += 1

        streaks_active.set(active)
        logger.info(f"Streak sweep complete: {reset} reset, {active} active")
        return reset
