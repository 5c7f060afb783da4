"""Unit tests for leaderboard ranking and refresh"""
import threading
import pytest
from datetime import timedelta

from dojo_scoring.db.memory import InMemoryEventStore, InMemoryLeaderboardStore
from dojo_scoring.exceptions import LeaderboardRebuildError
from dojo_scoring.gamification.leaderboard import LeaderboardBuilder, rank_entries
from dojo_scoring.models.config import LeaderboardSettings, SuccessMetricsConfig
from dojo_scoring.models.events import SuccessCategory
from dojo_scoring.models.leaderboard import Leaderboard, LeaderboardEntry, Timeframe
from dojo_scoring.utils.datetime_helpers import EPOCH


class FailingLeaderboardStore(InMemoryLeaderboardStore):
    """Publishing always fails"""

    async def replace_all(self, leaderboards):
        raise RuntimeError("snapshot store unavailable")


class ThreadRecordingBuilder(LeaderboardBuilder):
    """Remembers which thread ran the ranking"""

    build_thread = None

    def build(self, events_by_user, previous, now):
        self.build_thread = threading.get_ident()
        return super().build(events_by_user, previous, now)


async def _fill(store, events):
    await store.append_many(events)


# ============================================================================
# Ranking
# ============================================================================

def test_rank_by_points_descending(make_event):
    snapshot = {
        "alice": [make_event(points=50, user_id="alice")],
        "bob": [make_event(points=80, user_id="bob")],
        "carol": [make_event(points=30, user_id="carol"), make_event(points=30, user_id="carol")],
    }

    entries = rank_entries(snapshot, SuccessCategory.LEARNING, EPOCH, 100)

    assert [(e.user_id, e.points, e.rank) for e in entries] == [
        ("bob", 80, 1),
        ("carol", 60, 2),
        ("alice", 50, 3),
    ]
    assert all(e.change is None for e in entries)


def test_tie_broken_by_earlier_last_event(make_event, start_time):
    """Test the user who reached the total first ranks higher"""
    snapshot = {
        "late": [make_event(points=50, user_id="late", timestamp=start_time)],
        "early": [make_event(points=50, user_id="early", timestamp=start_time - timedelta(hours=1))],
    }

    entries = rank_entries(snapshot, SuccessCategory.LEARNING, EPOCH, 100)

    assert [e.user_id for e in entries] == ["early", "late"]


def test_full_tie_broken_by_user_id(make_event, start_time):
    snapshot = {
        "zed": [make_event(points=50, user_id="zed")],
        "amy": [make_event(points=50, user_id="amy")],
    }
    entries = rank_entries(snapshot, SuccessCategory.LEARNING, EPOCH, 100)
    assert [e.user_id for e in entries] == ["amy", "zed"]


def test_only_category_and_window_counted(make_event, start_time):
    snapshot = {
        "alice": [
            make_event(points=50, user_id="alice"),
            make_event("focus_session_completed", points=500, user_id="alice"),
            make_event(points=1000, user_id="alice", timestamp=start_time - timedelta(days=2)),
        ],
    }

    entries = rank_entries(snapshot, SuccessCategory.LEARNING, start_time - timedelta(hours=1), 100)

    assert entries[0].points == 50


def test_zero_totals_excluded(make_event):
    snapshot = {
        "alice": [make_event(points=0, user_id="alice")],
        "bob": [make_event("focus_session_completed", user_id="bob")],
    }
    assert rank_entries(snapshot, SuccessCategory.LEARNING, EPOCH, 100) == ()


def test_truncated_to_max_entries(make_event):
    snapshot = {f"user_{i}": [make_event(points=10 + i, user_id=f"user_{i}")] for i in range(5)}

    entries = rank_entries(snapshot, SuccessCategory.LEARNING, EPOCH, 3)

    assert [e.rank for e in entries] == [1, 2, 3]
    assert entries[0].user_id == "user_4"


def test_change_against_previous_snapshot(make_event, start_time):
    previous = Leaderboard(
        id="learning_all_time",
        name="Learning - All Time",
        description="",
        category=SuccessCategory.LEARNING,
        timeframe=Timeframe.ALL_TIME,
        entries=(
            LeaderboardEntry(user_id="alice", points=100, rank=1),
            LeaderboardEntry(user_id="bob", points=50, rank=2),
        ),
        last_updated=start_time,
    )
    snapshot = {
        "alice": [make_event(points=100, user_id="alice")],
        "bob": [make_event(points=150, user_id="bob")],
        "carol": [make_event(points=10, user_id="carol")],
    }

    entries = rank_entries(snapshot, SuccessCategory.LEARNING, EPOCH, 100, previous)
    changes = {e.user_id: e.change for e in entries}

    assert changes == {"bob": 1, "alice": -1, "carol": None}


# ============================================================================
# Builder
# ============================================================================

@pytest.fixture
def builder(config, clock):
    return LeaderboardBuilder(config, InMemoryEventStore(), InMemoryLeaderboardStore(), clock)


def test_keys_cover_configured_categories_and_timeframes(builder):
    assert len(builder.keys()) == 16
    assert (SuccessCategory.SOCIAL, Timeframe.DAILY) not in builder.keys()


@pytest.mark.asyncio
async def test_refresh_publishes_every_key(builder, make_event):
    await _fill(builder.event_store, [make_event(points=40)])

    built = await builder.refresh()

    assert len(built) == 16
    board = await builder.leaderboard_store.get("learning_daily")
    assert board.name == "Learning - Today"
    assert board.entries[0].user_id == "user_123"
    assert board.entries[0].points == 40
    assert (await builder.leaderboard_store.get("focus_daily")).entries == ()


@pytest.mark.asyncio
async def test_daily_cutoff_is_start_of_day(builder, make_event, start_time):
    yesterday = start_time.replace(hour=0) - timedelta(hours=1)
    await _fill(builder.event_store, [
        make_event(points=40, timestamp=yesterday),
        make_event(points=10),
    ])

    await builder.refresh()

    daily = await builder.leaderboard_store.get("learning_daily")
    weekly = await builder.leaderboard_store.get("learning_weekly")
    assert daily.entries[0].points == 10
    assert weekly.entries[0].points == 50


@pytest.mark.asyncio
async def test_second_refresh_without_events_reports_no_change(builder, make_event):
    await _fill(builder.event_store, [make_event(user_id="a"), make_event(user_id="b", points=10)])

    await builder.refresh()
    await builder.refresh()

    board = await builder.leaderboard_store.get("learning_all_time")
    assert [e.change for e in board.entries] == [0, 0]


@pytest.mark.asyncio
async def test_refresh_skipped_while_running(builder):
    async with builder._lock:
        assert builder.is_running
        assert await builder.refresh() is None


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_snapshots(config, clock, make_event):
    events = InMemoryEventStore()
    await _fill(events, [make_event(points=40)])
    store = InMemoryLeaderboardStore()
    await LeaderboardBuilder(config, events, store, clock).refresh()

    failing = FailingLeaderboardStore()
    failing._leaderboards = await store.get_all()
    await _fill(events, [make_event(points=500)])

    with pytest.raises(LeaderboardRebuildError):
        await LeaderboardBuilder(config, events, failing, clock).refresh()

    board = await failing.get("learning_all_time")
    assert board.entries[0].points == 40


@pytest.mark.asyncio
async def test_custom_settings(clock, make_event):
    config = SuccessMetricsConfig(
        leaderboard_settings=LeaderboardSettings(
            max_entries=1,
            categories=[SuccessCategory.SOCIAL],
            timeframes=[Timeframe.ALL_TIME],
        )
    )
    builder = LeaderboardBuilder(config, InMemoryEventStore(), InMemoryLeaderboardStore(), clock)
    await _fill(builder.event_store, [
        make_event("helped_others", user_id="a"),
        make_event("community_contribution", points=75, user_id="b"),
    ])

    built = await builder.refresh()

    assert list(built) == ["social_all_time"]
    assert [e.user_id for e in built["social_all_time"].entries] == ["b"]


@pytest.mark.asyncio
async def test_build_runs_off_the_event_loop_thread(config, clock, make_event):
    builder = ThreadRecordingBuilder(config, InMemoryEventStore(), InMemoryLeaderboardStore(), clock)
    await _fill(builder.event_store, [make_event(points=40)])

    built = await builder.refresh()

    assert builder.build_thread is not None
    assert builder.build_thread != threading.get_ident()
    assert built["learning_all_time"].entries[0].points == 40
