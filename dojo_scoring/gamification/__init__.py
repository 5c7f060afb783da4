"""
Gamification scoring core

- Point calculator (base points, score bonus, multipliers, categories)
- XP and leveling
- Streak tracking and expiry
- Achievement rule engine and default catalog
- User metrics aggregation
- Leaderboard builder
"""

from dojo_scoring.gamification.points import calculate_points, category_for_event_type
from dojo_scoring.gamification.xp_system import calculate_level, calculate_level_from_xp
from dojo_scoring.gamification.achievement_system import AchievementEngine, EvaluationContext
from dojo_scoring.gamification.leaderboard import LeaderboardBuilder

__all__ = [
    "calculate_points",
    "category_for_event_type",
    "calculate_level",
    "calculate_level_from_xp",
    "AchievementEngine",
    "EvaluationContext",
    "LeaderboardBuilder",
]
