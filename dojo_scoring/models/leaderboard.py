"""Leaderboard snapshot models"""
from enum import Enum
from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dojo_scoring.models.events import SuccessCategory


class Timeframe(str, Enum):
    """Leaderboard aggregation window"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all_time"


def leaderboard_key(category: SuccessCategory, timeframe: Timeframe) -> str:
    """Snapshot key for a (category, timeframe) pair, e.g. learning_daily"""
    return f"{SuccessCategory(category).value}_{Timeframe(timeframe).value}"


class LeaderboardEntry(BaseModel):
    """A ranked user in one snapshot"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str
    points: int
    rank: int = Field(ge=1)
    change: Optional[int] = None  # positive = moved up since previous snapshot


class Leaderboard(BaseModel):
    """Derived, replaceable snapshot for one (category, timeframe) key"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    description: str
    category: SuccessCategory
    timeframe: Timeframe
    entries: Tuple[LeaderboardEntry, ...] = ()
    last_updated: datetime

    def entry_for(self, user_id: str) -> Optional[LeaderboardEntry]:
        """Entry for user_id, or None if the user is not ranked"""
        for entry in self.entries:
            if entry.user_id == user_id:
                return entry
        return None
