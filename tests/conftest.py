"""Global test fixtures and utilities for scoring engine tests"""
import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from dojo_scoring.gamification.points import category_for_event_type
from dojo_scoring.models.config import SuccessMetricsConfig
from dojo_scoring.models.events import SuccessEvent, parse_metadata
from dojo_scoring.services.container import reset_container
from dojo_scoring.services.stats_service import StatsService
from dojo_scoring.services.success_events_service import SuccessEventsService


# ============================================================================
# Clock Fixtures
# ============================================================================

class FixedClock:
    """Manually advanced clock; call it to read the current time"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def start_time():
    """Wednesday noon UTC, mid-month"""
    return datetime(2024, 5, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time):
    return FixedClock(start_time)


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def config():
    """Default engine configuration"""
    return SuccessMetricsConfig()


@pytest.fixture
def service(config, clock):
    """SuccessEventsService with in-memory stores and a fixed clock"""
    return SuccessEventsService(config=config, clock=clock)


@pytest.fixture
def stats_service(service):
    return StatsService(service)


@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user_123"


# ============================================================================
# Event Fixtures
# ============================================================================

@pytest.fixture
def make_event(start_time):
    """Factory building SuccessEvent objects the way ingestion does (without points lookup)"""

    def _make(
        event_type="quiz_completed",
        metadata=None,
        points=50,
        timestamp=None,
        user_id="user_123",
        synthetic=False,
        session_id=None,
    ):
        category = category_for_event_type(event_type)
        return SuccessEvent(
            id=str(uuid4()),
            user_id=user_id,
            event_type=event_type,
            category=category,
            points=points,
            timestamp=timestamp or start_time,
            metadata=parse_metadata(category, metadata),
            session_id=session_id,
            synthetic=synthetic,
        )

    return _make


@pytest.fixture(autouse=True)
def _reset_global_container():
    yield
    reset_container()
