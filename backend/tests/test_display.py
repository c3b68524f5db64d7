from datetime import date

from engagement.models import StreakRecord
from engagement.utils.display import (
    format_points,
    level_from_points,
    points_for_next_level,
    streak_status,
    top_percentage_label,
    transaction_type_name,
)

TODAY = date(2026, 3, 10)


def test_levels():
    assert level_from_points(0) == 1
    assert level_from_points(99) == 1
    assert level_from_points(100) == 2
    assert level_from_points(999) == 4
    assert level_from_points(1000) == 5
    assert level_from_points(1500) == 6
    assert points_for_next_level(1) == 100
    assert points_for_next_level(4) == 1000
    assert points_for_next_level(5) == 1500


def test_format_points():
    assert format_points(950) == "950"
    assert format_points(1500) == "1.5K"
    assert format_points(2_000_000) == "2.0M"


def test_streak_status():
    assert streak_status(None, TODAY) == "Start your streak today!"
    one = StreakRecord(current_streak=1, last_activity_date=TODAY)
    assert streak_status(one, TODAY) == "Great start! Keep it going tomorrow!"
    at_risk = StreakRecord(current_streak=4, last_activity_date=date(2026, 3, 9))
    assert "at risk" in streak_status(at_risk, TODAY)
    ended = StreakRecord(current_streak=4, last_activity_date=date(2026, 3, 1))
    assert streak_status(ended, TODAY) == "Your streak ended. Start a new one today!"


def test_labels():
    assert top_percentage_label(1) == "Top 1%"
    assert top_percentage_label(7) == "Top 10%"
    assert top_percentage_label(51) == ""
    assert transaction_type_name("streak_milestone") == "Streak Milestone"
    assert transaction_type_name("unknown") == "unknown"
