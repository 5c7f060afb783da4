"""Unit tests for event models and metadata parsing"""
import pytest
from datetime import datetime, timezone

from dojo_scoring.models.events import (
    AchievementMetadata,
    CreateEventParams,
    EventFilter,
    FocusMetadata,
    LearningMetadata,
    StreakMetadata,
    SuccessCategory,
    SuccessEvent,
    parse_metadata,
)
from dojo_scoring.models.leaderboard import Leaderboard, LeaderboardEntry, Timeframe, leaderboard_key


class TestParseMetadata:
    """Metadata is parsed per category; malformed fields are dropped one by one"""

    def test_none_gives_empty_model(self):
        metadata = parse_metadata(SuccessCategory.LEARNING, None)
        assert isinstance(metadata, LearningMetadata)
        assert metadata.score_pct is None

    def test_camel_case_keys(self):
        metadata = parse_metadata(SuccessCategory.LEARNING, {"scorePct": 80, "timeOfDay": "morning"})
        assert metadata.score_pct == 80
        assert metadata.time_of_day == "morning"

    def test_snake_case_keys(self):
        metadata = parse_metadata(SuccessCategory.LEARNING, {"score_pct": 75, "streak_length": 4})
        assert metadata.score_pct == 75
        assert metadata.streak_length == 4

    def test_out_of_range_score_dropped_others_kept(self):
        """Test scorePct > 100 is ignored without losing the level"""
        metadata = parse_metadata(SuccessCategory.LEARNING, {"scorePct": 150, "level": "C2"})
        assert metadata.score_pct is None
        assert metadata.level == "C2"

    def test_wrong_type_dropped(self):
        metadata = parse_metadata(SuccessCategory.LEARNING, {"scorePct": "very good", "track": "jlpt"})
        assert metadata.score_pct is None
        assert metadata.track == "jlpt"

    def test_several_bad_fields_dropped(self):
        metadata = parse_metadata(
            SuccessCategory.FOCUS,
            {"focusDuration": -5, "productivity": 50, "focusType": "nap", "distractions": 2},
        )
        assert isinstance(metadata, FocusMetadata)
        assert metadata.focus_duration is None
        assert metadata.productivity is None
        assert metadata.focus_type is None
        assert metadata.distractions == 2

    def test_unknown_keys_pass_through(self):
        metadata = parse_metadata(SuccessCategory.LEARNING, {"scorePct": 90, "deckId": "n5-verbs"})
        assert metadata.extra == {"deckId": "n5-verbs"}

    def test_non_mapping_ignored(self):
        metadata = parse_metadata(SuccessCategory.STREAK, "not a mapping")
        assert isinstance(metadata, StreakMetadata)
        assert metadata.streak_length is None

    def test_kind_key_cannot_change_category(self):
        metadata = parse_metadata(SuccessCategory.ACHIEVEMENT, {"kind": "learning", "achievementId": "x"})
        assert isinstance(metadata, AchievementMetadata)
        assert metadata.achievement_id == "x"

    def test_streak_type(self):
        metadata = parse_metadata(SuccessCategory.STREAK, {"streakLength": 7, "streakType": "weekly"})
        assert metadata.streak_length == 7
        assert metadata.streak_type == "weekly"


class TestSuccessEvent:

    def test_event_is_immutable(self):
        event = SuccessEvent(
            id="e1",
            user_id="u1",
            event_type="quiz_completed",
            category=SuccessCategory.LEARNING,
            points=50,
            timestamp=datetime(2024, 5, 15, tzinfo=timezone.utc),
            metadata=LearningMetadata(score_pct=80),
        )
        with pytest.raises(Exception):
            event.points = 100

    def test_event_serializes_camel_case(self):
        event = SuccessEvent(
            id="e1",
            user_id="u1",
            event_type="quiz_completed",
            category=SuccessCategory.LEARNING,
            points=50,
            timestamp=datetime(2024, 5, 15, tzinfo=timezone.utc),
            metadata=LearningMetadata(score_pct=80),
            session_id="s1",
        )
        data = event.model_dump(by_alias=True)
        assert data["userId"] == "u1"
        assert data["eventType"] == "quiz_completed"
        assert data["sessionId"] == "s1"
        assert data["metadata"]["scorePct"] == 80
        assert data["metadata"]["kind"] == "learning"

    def test_event_round_trips_through_discriminated_metadata(self):
        data = {
            "id": "e1",
            "userId": "u1",
            "eventType": "badge_earned",
            "category": "achievement",
            "points": 100,
            "timestamp": "2024-05-15T12:00:00Z",
            "metadata": {"kind": "achievement", "achievementId": "quiz_novice"},
        }
        event = SuccessEvent.model_validate(data)
        assert isinstance(event.metadata, AchievementMetadata)
        assert event.metadata.achievement_id == "quiz_novice"


class TestRequestModels:

    def test_create_params_accept_camel_case(self):
        params = CreateEventParams.model_validate(
            {"userId": "u1", "eventType": "quiz_completed", "customPoints": 5}
        )
        assert params.user_id == "u1"
        assert params.custom_points == 5

    def test_filter_rejects_negative_offset(self):
        with pytest.raises(Exception):
            EventFilter(offset=-1)


class TestLeaderboardModels:

    def test_leaderboard_key(self):
        assert leaderboard_key(SuccessCategory.LEARNING, Timeframe.DAILY) == "learning_daily"
        assert leaderboard_key("focus", "all_time") == "focus_all_time"

    def test_entry_for(self):
        board = Leaderboard(
            id="learning_daily",
            name="Learning - Today",
            description="",
            category=SuccessCategory.LEARNING,
            timeframe=Timeframe.DAILY,
            entries=(LeaderboardEntry(user_id="a", points=10, rank=1),),
            last_updated=datetime(2024, 5, 15, tzinfo=timezone.utc),
        )
        assert board.entry_for("a").rank == 1
        assert board.entry_for("b") is None
