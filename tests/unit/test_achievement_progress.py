"""Achievement catalog and progress (pure functions)."""

from __future__ import annotations

from edugame.gamification.achievement_engine import (
    AchievementStats,
    achievement_progress,
    is_unlocked,
    metric_value,
)
from edugame.gamification.achievements import ACHIEVEMENTS, ACHIEVEMENTS_BY_ID, Metric


class TestCatalog:
    def test_ids_unique(self):
        assert len(ACHIEVEMENTS_BY_ID) == len(ACHIEVEMENTS)

    def test_hidden_achievements(self):
        hidden = {a.id for a in ACHIEVEMENTS if a.is_hidden}
        assert hidden == {"early_bird", "night_owl"}

    def test_thresholds_positive(self):
        assert all(a.threshold > 0 for a in ACHIEVEMENTS)


class TestProgress:
    """Progress and unlocking read the same metric."""

    def test_progress_matches_predicate(self):
        stats = AchievementStats(quizzes_completed=10, perfect_scores=1, longest_streak=2)
        progress = {p.achievement_id: p for p in achievement_progress(stats, earned_ids=set())}

        for achievement in ACHIEVEMENTS:
            if achievement.is_hidden:
                continue
            entry = progress[achievement.id]
            assert (entry.current >= entry.required) == is_unlocked(stats, achievement)

    def test_progress_capped_at_required(self):
        stats = AchievementStats(quizzes_completed=75)
        progress = {p.achievement_id: p for p in achievement_progress(stats, set())}
        assert progress["quiz_50"].current == 50
        assert progress["quiz_100"].current == 75
        assert progress["quiz_100"].required == 100

    def test_earned_and_hidden_excluded(self):
        stats = AchievementStats(quizzes_completed=1)
        ids = [p.achievement_id for p in achievement_progress(stats, {"first_quiz"})]
        assert "first_quiz" not in ids
        assert "early_bird" not in ids

    def test_progress_in_catalog_order(self):
        progress = achievement_progress(AchievementStats(), set())
        orders = [ACHIEVEMENTS_BY_ID[p.achievement_id].sort_order for p in progress]
        assert orders == sorted(orders)

    def test_metric_value(self):
        stats = AchievementStats(daily_goal_streak=4, late_completions=2)
        assert metric_value(stats, Metric.DAILY_GOAL_STREAK) == 4
        assert metric_value(stats, Metric.LATE_COMPLETIONS) == 2
