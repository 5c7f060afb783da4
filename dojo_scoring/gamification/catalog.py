"""
Default Achievement Catalog

Achievements are configuration: the engine derives "earned" state from
badge_earned events, so editing this list never needs a migration.

Categories:
- Learning (sessions, quizzes, perfect scores, accuracy)
- Focus (sessions, minutes, deep focus)
- Streak (streak length, streak milestones)
- Social (leaderboards, community)
- Milestone (levels, total points)
- Special (time of day, improvement)
"""

from typing import Any, Dict, List, Optional

from dojo_scoring.models.achievement import Achievement, AchievementRequirement


def _achievement(
    id: str,
    name: str,
    description: str,
    icon: str,
    category: str,
    difficulty: str,
    points: int,
    requirement_type: str,
    threshold: float,
    event_type: Optional[str] = None,
    requirement_category: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Achievement:
    """Build a single-requirement achievement"""
    return Achievement(
        id=id,
        name=name,
        description=description,
        icon=icon,
        category=category,
        difficulty=difficulty,
        points=points,
        requirements=[
            AchievementRequirement(
                type=requirement_type,
                event_type=event_type,
                category=requirement_category,
                threshold=threshold,
                metadata=metadata or {},
            )
        ],
    )


LEARNING_ACHIEVEMENTS: List[Achievement] = [
    _achievement("first_session", "First Steps", "Complete your first learning session", "🎯",
                 "learning", "bronze", 50, "event_count", 1, event_type="session_finished"),
    _achievement("quiz_novice", "Quiz Novice", "Complete 10 quizzes", "📝",
                 "learning", "bronze", 100, "event_count", 10, event_type="quiz_completed"),
    _achievement("quiz_expert", "Quiz Expert", "Complete 50 quizzes", "🏆",
                 "learning", "silver", 300, "event_count", 50, event_type="quiz_completed"),
    _achievement("quiz_master", "Quiz Master", "Complete 100 quizzes", "👑",
                 "learning", "gold", 500, "event_count", 100, event_type="quiz_completed"),
    _achievement("perfectionist", "Perfectionist", "Achieve a perfect score", "💯",
                 "learning", "silver", 200, "event_count", 1, event_type="perfect_score"),
    _achievement("flawless_streak", "Flawless Streak", "Achieve 5 perfect scores", "⭐",
                 "learning", "gold", 500, "event_count", 5, event_type="perfect_score"),
    _achievement("dedicated_learner", "Dedicated Learner", "Complete 25 study sessions", "📚",
                 "learning", "silver", 250, "event_count", 25, event_type="study_session_completed"),
    _achievement("scholar", "Scholar", "Complete 100 study sessions", "🎓",
                 "learning", "gold", 600, "event_count", 100, event_type="study_session_completed"),
    _achievement("hundred_questions", "Hundred Questions", "Answer 100 questions correctly", "💡",
                 "learning", "bronze", 150, "event_count", 100, event_type="question_answered_correct"),
    _achievement("thousand_questions", "Thousand Questions", "Answer 1000 questions correctly", "🧠",
                 "learning", "gold", 800, "event_count", 1000, event_type="question_answered_correct"),
    _achievement("high_achiever", "High Achiever", "Maintain 90% average score", "🌟",
                 "learning", "gold", 400, "score_threshold", 90),
    _achievement("excellence", "Excellence", "Maintain 95% average score", "💎",
                 "learning", "platinum", 750, "score_threshold", 95),
]

FOCUS_ACHIEVEMENTS: List[Achievement] = [
    _achievement("first_focus", "First Focus", "Complete your first focus session", "🎯",
                 "focus", "bronze", 50, "event_count", 1, event_type="focus_session_completed"),
    _achievement("focused_hour", "Focused Hour", "Complete 1 hour of focused work", "⏰",
                 "focus", "bronze", 100, "time_spent", 60, requirement_category="focus"),
    _achievement("focus_marathon", "Focus Marathon", "Complete 10 hours of focused work", "🏃",
                 "focus", "silver", 400, "time_spent", 600, requirement_category="focus"),
    _achievement("focus_master", "Focus Master", "Complete 50 hours of focused work", "🧘",
                 "focus", "gold", 1000, "time_spent", 3000, requirement_category="focus"),
    _achievement("deep_focus", "Deep Focus", "Achieve deep focus state", "🔥",
                 "focus", "silver", 200, "event_count", 1, event_type="deep_focus_achieved"),
    _achievement("zen_master", "Zen Master", "Achieve deep focus 10 times", "☯️",
                 "focus", "gold", 600, "event_count", 10, event_type="deep_focus_achieved"),
    _achievement("consistent_focus", "Consistent Focus", "Complete 20 focus sessions", "📈",
                 "focus", "silver", 300, "event_count", 20, event_type="focus_session_completed"),
]

STREAK_ACHIEVEMENTS: List[Achievement] = [
    _achievement("streak_starter", "Streak Starter", "Maintain a 3-day streak", "🔥",
                 "streak", "bronze", 100, "streak_length", 3),
    _achievement("week_warrior", "Week Warrior", "Maintain a 7-day streak", "⚡",
                 "streak", "silver", 250, "streak_length", 7),
    _achievement("streak_champion", "Streak Champion", "Maintain a 30-day streak", "👑",
                 "streak", "gold", 750, "streak_length", 30),
    _achievement("unstoppable", "Unstoppable", "Maintain a 100-day streak", "🚀",
                 "streak", "platinum", 1500, "streak_length", 100),
    _achievement("streak_milestone_10", "Streak Milestone", "Reach 10 streak milestones", "🎯",
                 "streak", "gold", 500, "event_count", 10, event_type="streak_milestone"),
]

SOCIAL_ACHIEVEMENTS: List[Achievement] = [
    _achievement("top_ten", "Top Ten", "Reach top 10 on any leaderboard", "🏅",
                 "social", "silver", 300, "custom", 1, metadata={"leaderboardPosition": 10}),
    _achievement("leaderboard_king", "Leaderboard King", "Reach #1 on any leaderboard", "👑",
                 "social", "platinum", 1000, "custom", 1, metadata={"leaderboardPosition": 1}),
    _achievement("helpful_member", "Helpful Member", "Help other community members", "🤝",
                 "social", "bronze", 150, "event_count", 5, event_type="helped_others"),
    _achievement("community_champion", "Community Champion", "Make significant community contributions", "🌟",
                 "social", "gold", 600, "event_count", 10, event_type="community_contribution"),
]

MILESTONE_ACHIEVEMENTS: List[Achievement] = [
    _achievement("level_5", "Rising Star", "Reach level 5", "⭐",
                 "milestone", "bronze", 200, "custom", 5, metadata={"levelReached": 5}),
    _achievement("level_10", "Experienced", "Reach level 10", "🎖️",
                 "milestone", "silver", 400, "custom", 10, metadata={"levelReached": 10}),
    _achievement("level_20", "Expert", "Reach level 20", "🏆",
                 "milestone", "gold", 800, "custom", 20, metadata={"levelReached": 20}),
    _achievement("points_1k", "First Thousand", "Earn 1,000 points", "💰",
                 "milestone", "bronze", 100, "custom", 1000, metadata={"totalPoints": 1000}),
    _achievement("points_10k", "Ten Thousand", "Earn 10,000 points", "💎",
                 "milestone", "gold", 500, "custom", 10000, metadata={"totalPoints": 10000}),
]

SPECIAL_ACHIEVEMENTS: List[Achievement] = [
    _achievement("early_bird", "Early Bird", "Complete sessions in the morning", "🌅",
                 "achievement", "bronze", 150, "custom", 10, metadata={"timeOfDay": "morning"}),
    _achievement("night_owl", "Night Owl", "Complete sessions late at night", "🦉",
                 "achievement", "bronze", 150, "custom", 10, metadata={"timeOfDay": "night"}),
    _achievement("comeback_kid", "Comeback Kid", "Improve score significantly over time", "📈",
                 "achievement", "gold", 500, "custom", 20, metadata={"improvementPercentage": 20}),
]

DEFAULT_ACHIEVEMENTS: List[Achievement] = [
    *LEARNING_ACHIEVEMENTS,
    *FOCUS_ACHIEVEMENTS,
    *STREAK_ACHIEVEMENTS,
    *SOCIAL_ACHIEVEMENTS,
    *MILESTONE_ACHIEVEMENTS,
    *SPECIAL_ACHIEVEMENTS,
]


def get_achievement_by_id(achievements: List[Achievement], achievement_id: str) -> Optional[Achievement]:
    """Find an achievement definition by id"""
    for achievement in achievements:
        if achievement.id == achievement_id:
            return achievement
    return None
