from __future__ import annotations

from datetime import date

from engagement.models import StreakRecord
from engagement.utils.calendar import yesterday_of
from engagement.utils.tx_metadata import TransactionType

TRANSACTION_NAMES = {
    TransactionType.STREAK_DAILY.value: "Daily Streak",
    TransactionType.STREAK_MILESTONE.value: "Streak Milestone",
    TransactionType.GOAL_COMPLETED.value: "Goal Completed",
    TransactionType.VIDEO_WATCHED.value: "Video Watched",
    TransactionType.VIDEO_COMPLETED.value: "Video Completed",
    TransactionType.CHAT_SESSION.value: "Chat Session",
    TransactionType.CHAT_MESSAGES.value: "Chat Messages",
    TransactionType.FIRST_ACTIVITY.value: "First Activity",
    TransactionType.BADGE_EARNED.value: "Badge Earned",
}

_LEVEL_FLOORS = (0, 100, 250, 500, 1000)


def level_from_points(points: int) -> int:
    points = max(0, int(points or 0))
    if points < 1000:
        return sum(1 for floor in _LEVEL_FLOORS if points >= floor)
    # Level 5+: increments of 500
    return 5 + (points - 1000) // 500


def points_for_next_level(level: int) -> int:
    level = max(1, int(level or 1))
    if level <= 4:
        return _LEVEL_FLOORS[level]
    return 1000 + (level - 4) * 500


def format_points(points: int) -> str:
    points = int(points or 0)
    if points >= 1_000_000:
        return f"{points / 1_000_000:.1f}M"
    if points >= 1000:
        return f"{points / 1000:.1f}K"
    return str(points)


def streak_status(streak: StreakRecord | None, today: date) -> str:
    if not streak or not streak.current_streak:
        return "Start your streak today!"
    last = streak.last_activity_date
    if last == today:
        if streak.current_streak == 1:
            return "Great start! Keep it going tomorrow!"
        return f"{streak.current_streak} day streak! Keep it up!"
    if last == yesterday_of(today):
        return f"Your {streak.current_streak} day streak is at risk! Come back today!"
    return "Your streak ended. Start a new one today!"


def top_percentage_label(top_percentage: int) -> str:
    for bucket in (1, 5, 10, 25, 50):
        if top_percentage <= bucket:
            return f"Top {bucket}%"
    return ""


def transaction_type_name(tx_type: str) -> str:
    return TRANSACTION_NAMES.get(tx_type, tx_type)
