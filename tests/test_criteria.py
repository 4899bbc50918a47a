"""Unit tests for badge criteria."""

import pytest
from pydantic import ValidationError

from app.schemas.gamification import (
    BadgeCreate,
    CoursesCompletedCriterion,
    LessonsCompletedCriterion,
    StreakDaysCriterion,
    StudentStats,
    XPThresholdCriterion,
    parse_criterion,
)


@pytest.fixture
def stats():
    return StudentStats(total_xp=105, lessons_completed=3, courses_completed=1)


class TestParseCriterion:
    """Stored criteria JSON is validated into a typed variant."""

    @pytest.mark.parametrize("raw, expected", [
        ({"type": "xp_threshold", "value": 100}, XPThresholdCriterion),
        ({"type": "courses_completed", "value": 1}, CoursesCompletedCriterion),
        ({"type": "lessons_completed", "value": 10}, LessonsCompletedCriterion),
        ({"type": "streak_days", "value": 7}, StreakDaysCriterion),
    ])
    def test_dispatches_on_type(self, raw, expected):
        criterion = parse_criterion(raw)
        assert isinstance(criterion, expected)
        assert criterion.value == raw["value"]

    def test_integer_value_round_trips_as_integer(self):
        assert parse_criterion({"type": "xp_threshold", "value": 100}).model_dump() == {
            "type": "xp_threshold", "value": 100
        }

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_criterion({"type": "quizzes_passed", "value": 3})

    def test_negative_value_rejected(self):
        with pytest.raises(ValidationError):
            parse_criterion({"type": "lessons_completed", "value": -1})

    def test_missing_value_rejected(self):
        with pytest.raises(ValidationError):
            parse_criterion({"type": "lessons_completed"})

    def test_badge_create_rejects_negative_reward(self):
        with pytest.raises(ValidationError):
            BadgeCreate(name="Oops", xp_reward=-5, criteria={"type": "xp_threshold", "value": 1})


class TestIsMet:
    """Each criterion compares one stat against its threshold."""

    def test_xp_threshold(self, stats):
        assert parse_criterion({"type": "xp_threshold", "value": 100}).is_met(stats)
        assert parse_criterion({"type": "xp_threshold", "value": 105}).is_met(stats)
        assert not parse_criterion({"type": "xp_threshold", "value": 106}).is_met(stats)

    def test_courses_completed(self, stats):
        assert parse_criterion({"type": "courses_completed", "value": 1}).is_met(stats)
        assert not parse_criterion({"type": "courses_completed", "value": 5}).is_met(stats)

    def test_lessons_completed(self, stats):
        assert parse_criterion({"type": "lessons_completed", "value": 3}).is_met(stats)
        assert not parse_criterion({"type": "lessons_completed", "value": 10}).is_met(stats)

    def test_streak_days_never_met(self):
        huge = StudentStats(total_xp=10_000, lessons_completed=500, courses_completed=50)
        assert not parse_criterion({"type": "streak_days", "value": 0}).is_met(huge)
        assert parse_criterion({"type": "streak_days", "value": 7}).current(huge) == 0

    def test_fractional_threshold(self, stats):
        assert not parse_criterion({"type": "lessons_completed", "value": 3.5}).is_met(stats)
