"""Success event models: categories, per-category metadata and query filters"""
import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class SuccessCategory(str, Enum):
    """Event categories, derived from the event type"""
    LEARNING = "learning"
    FOCUS = "focus"
    STREAK = "streak"
    ACHIEVEMENT = "achievement"
    SOCIAL = "social"


class EventType(str, Enum):
    """Event types known to the default configuration (ingestion accepts any string)"""
    # Learning
    QUIZ_COMPLETED = "quiz_completed"
    STUDY_SESSION_COMPLETED = "study_session_completed"
    EXAM_COMPLETED = "exam_completed"
    PERFECT_SCORE = "perfect_score"
    IMPROVEMENT_MILESTONE = "improvement_milestone"
    QUESTION_ANSWERED_CORRECT = "question_answered_correct"
    QUESTION_ANSWERED_INCORRECT = "question_answered_incorrect"
    SESSION_STARTED = "session_started"
    SESSION_FINISHED = "session_finished"

    # Focus
    FOCUS_SESSION_STARTED = "focus_session_started"
    FOCUS_SESSION_COMPLETED = "focus_session_completed"
    FOCUS_MILESTONE_REACHED = "focus_milestone_reached"
    DEEP_FOCUS_ACHIEVED = "deep_focus_achieved"
    FOCUS_STREAK_MAINTAINED = "focus_streak_maintained"

    # Streak
    DAILY_STREAK_STARTED = "daily_streak_started"
    DAILY_STREAK_CONTINUED = "daily_streak_continued"
    WEEKLY_STREAK_ACHIEVED = "weekly_streak_achieved"
    MONTHLY_STREAK_ACHIEVED = "monthly_streak_achieved"
    STREAK_MILESTONE = "streak_milestone"

    # Achievement
    LEVEL_UP = "level_up"
    BADGE_EARNED = "badge_earned"
    MILESTONE_REACHED = "milestone_reached"
    PERSONAL_BEST = "personal_best"
    CHALLENGE_COMPLETED = "challenge_completed"

    # Social
    LEADERBOARD_POSITION = "leaderboard_position"
    HELPED_OTHERS = "helped_others"
    COMMUNITY_CONTRIBUTION = "community_contribution"


# ============================================
# Metadata (one model per category)
# ============================================

class _MetadataBase(BaseModel):
    """Fields the point calculator reads regardless of category.

    Unknown keys are kept as extension fields (see ``extra``).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    level: Optional[str] = None  # difficulty key: A1..C2, N5..N1, Beginner..Expert
    score_pct: Optional[float] = Field(default=None, ge=0, le=100)
    streak_length: Optional[int] = Field(default=None, ge=0)
    time_of_day: Optional[str] = None  # morning/afternoon/evening/night
    device_type: Optional[str] = None
    location: Optional[str] = None

    @property
    def extra(self) -> Dict[str, Any]:
        """Category-specific extension fields passed through untouched"""
        return dict(self.model_extra or {})


class LearningMetadata(_MetadataBase):
    kind: Literal["learning"] = "learning"
    track: Optional[str] = None
    framework: Optional[str] = None
    mode: Optional[str] = None
    questions_total: Optional[int] = Field(default=None, ge=0)
    questions_correct: Optional[int] = Field(default=None, ge=0)
    time_spent: Optional[int] = Field(default=None, ge=0)  # milliseconds


class FocusMetadata(_MetadataBase):
    kind: Literal["focus"] = "focus"
    focus_duration: Optional[float] = Field(default=None, ge=0)  # minutes
    focus_type: Optional[Literal["pomodoro", "deep_work", "study_session"]] = None
    distractions: Optional[int] = Field(default=None, ge=0)
    productivity: Optional[int] = Field(default=None, ge=1, le=10)


class StreakMetadata(_MetadataBase):
    kind: Literal["streak"] = "streak"
    streak_type: Optional[Literal["daily", "weekly", "monthly"]] = None
    previous_best: Optional[int] = Field(default=None, ge=0)


class AchievementMetadata(_MetadataBase):
    kind: Literal["achievement"] = "achievement"
    achievement_id: Optional[str] = None
    achievement_name: Optional[str] = None
    difficulty: Optional[Literal["bronze", "silver", "gold", "platinum"]] = None
    new_level: Optional[int] = Field(default=None, ge=1)
    previous_level: Optional[int] = Field(default=None, ge=1)


class SocialMetadata(_MetadataBase):
    kind: Literal["social"] = "social"
    leaderboard_id: Optional[str] = None
    leaderboard_position: Optional[int] = Field(default=None, ge=1)


EventMetadata = Annotated[
    Union[LearningMetadata, FocusMetadata, StreakMetadata, AchievementMetadata, SocialMetadata],
    Field(discriminator="kind"),
]

METADATA_MODELS = {
    SuccessCategory.LEARNING: LearningMetadata,
    SuccessCategory.FOCUS: FocusMetadata,
    SuccessCategory.STREAK: StreakMetadata,
    SuccessCategory.ACHIEVEMENT: AchievementMetadata,
    SuccessCategory.SOCIAL: SocialMetadata,
}


def parse_metadata(category: SuccessCategory, raw: Optional[Mapping[str, Any]]):
    """
    Parse a caller-supplied metadata mapping into the category's model

    Fields that fail validation are dropped one by one; the remaining
    fields are kept. Never raises.

    Args:
        category: Event category selecting the metadata model
        raw: Plain mapping (camelCase or snake_case keys), or None

    Returns:
        Metadata model instance for the category
    """
    model = METADATA_MODELS[SuccessCategory(category)]

    if raw is None:
        return model()
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True, exclude_none=True)
    if not isinstance(raw, Mapping):
        logger.debug(f"Ignoring non-mapping metadata of type {type(raw).__name__}")
        return model()

    data = {k: v for k, v in raw.items() if k != "kind"}

    # Map each field name to every key a caller may have used for it
    keys_for_field = {}
    for name, field in model.model_fields.items():
        keys_for_field[name] = {name, field.alias or name}
        keys_for_field[field.alias or name] = keys_for_field[name]

    # Each pass drops at least one key, so this terminates
    for _ in range(len(data) + 1):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            bad_keys = set()
            for error in e.errors():
                if error["loc"]:
                    key = error["loc"][0]
                    bad_keys |= keys_for_field.get(key, {key})
            if not bad_keys & set(data):
                break
            for key in bad_keys:
                if key in data:
                    logger.debug(f"Dropping malformed metadata field {key}={data[key]!r}")
                    data.pop(key)

    return model()


# ============================================
# Events
# ============================================

class SuccessEvent(BaseModel):
    """Immutable record of a user action carrying points and classification"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    user_id: str
    event_type: str
    category: SuccessCategory
    points: int
    timestamp: datetime
    metadata: EventMetadata
    session_id: Optional[str] = None
    multiplier: Optional[float] = None  # realized streak factor
    synthetic: bool = False  # generated by the engine (level_up, badge_earned)


class CreateEventParams(BaseModel):
    """Ingestion request, as emitted by quiz engine, focus timer, adapters"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    event_type: str
    metadata: Optional[Any] = None  # mapping; anything else is ignored at parse time
    session_id: Optional[str] = None
    custom_points: Optional[int] = None


class EventFilter(BaseModel):
    """Query filter for get_events (all criteria are conjunctive)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: Optional[str] = None
    event_types: Optional[List[str]] = None
    categories: Optional[List[SuccessCategory]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_points: Optional[int] = None
    max_points: Optional[int] = None
    session_id: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)
