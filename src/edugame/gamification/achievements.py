"""Achievement catalog.

Each achievement unlocks when one canonical stat reaches a threshold.
Progress display and unlock evaluation read the same metric, so a bar
showing 10/10 always means the achievement is earned.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Metric(str, Enum):
    QUIZZES_COMPLETED = "quizzes_completed"
    PERFECT_SCORES = "perfect_scores"
    LONGEST_STREAK = "longest_streak"
    CURRENT_LEVEL = "current_level"
    TOTAL_XP = "total_xp"
    DAILY_GOAL_STREAK = "daily_goal_streak"
    EARLY_COMPLETIONS = "early_completions"
    LATE_COMPLETIONS = "late_completions"


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    category: str
    xp_reward: int
    metric: Metric
    threshold: int
    sort_order: int
    is_hidden: bool = False


ACHIEVEMENTS: list[Achievement] = [
    # Quiz milestones
    Achievement("first_quiz", "First Steps", "Complete your first quiz", "footprints",
                "milestone", 10, Metric.QUIZZES_COMPLETED, 1, 1),
    Achievement("quiz_10", "Getting Started", "Complete 10 quizzes", "book-open",
                "milestone", 25, Metric.QUIZZES_COMPLETED, 10, 2),
    Achievement("quiz_50", "Dedicated Learner", "Complete 50 quizzes", "library",
                "milestone", 50, Metric.QUIZZES_COMPLETED, 50, 3),
    Achievement("quiz_100", "Quiz Master", "Complete 100 quizzes", "graduation-cap",
                "milestone", 100, Metric.QUIZZES_COMPLETED, 100, 4),
    # Accuracy
    Achievement("perfect_1", "Flawless", "Get a perfect score on a quiz", "star",
                "score", 15, Metric.PERFECT_SCORES, 1, 10),
    Achievement("perfect_2", "Double Perfect", "Get a perfect score on two quizzes", "stars",
                "score", 20, Metric.PERFECT_SCORES, 2, 11),
    Achievement("perfect_10", "Perfectionist", "Get a perfect score on 10 quizzes", "crown",
                "score", 75, Metric.PERFECT_SCORES, 10, 12),
    # Streaks
    Achievement("streak_3", "On a Roll", "Keep a 3-day streak", "flame",
                "streak", 15, Metric.LONGEST_STREAK, 3, 20),
    Achievement("streak_7", "Week Warrior", "Keep a 7-day streak", "calendar-check",
                "streak", 50, Metric.LONGEST_STREAK, 7, 21),
    Achievement("streak_30", "Unstoppable", "Keep a 30-day streak", "trophy",
                "streak", 200, Metric.LONGEST_STREAK, 30, 22),
    Achievement("daily_goal_7", "Goal Getter", "Meet your daily goal 7 days in a row", "target",
                "streak", 50, Metric.DAILY_GOAL_STREAK, 7, 23),
    # Levels
    Achievement("level_5", "Rising Star", "Reach level 5", "trending-up",
                "level", 25, Metric.CURRENT_LEVEL, 5, 30),
    Achievement("level_10", "Scholar", "Reach level 10", "award",
                "level", 100, Metric.CURRENT_LEVEL, 10, 31),
    Achievement("level_15", "Maestro", "Reach the top level", "gem",
                "level", 250, Metric.CURRENT_LEVEL, 15, 32),
    # XP
    Achievement("xp_1000", "XP Hunter", "Earn 1,000 XP", "zap",
                "xp", 25, Metric.TOTAL_XP, 1000, 40),
    Achievement("xp_5000", "XP Collector", "Earn 5,000 XP", "battery-charging",
                "xp", 75, Metric.TOTAL_XP, 5000, 41),
    Achievement("xp_10000", "XP Legend", "Earn 10,000 XP", "rocket",
                "xp", 150, Metric.TOTAL_XP, 10000, 42),
    # Hidden
    Achievement("early_bird", "Early Bird", "Complete a quiz before 8 AM", "sunrise",
                "special", 20, Metric.EARLY_COMPLETIONS, 1, 50, is_hidden=True),
    Achievement("night_owl", "Night Owl", "Complete a quiz after 10 PM", "moon",
                "special", 20, Metric.LATE_COMPLETIONS, 1, 51, is_hidden=True),
]

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}
