"""Typed metadata for ledger transactions.

Every transaction type carries exactly one metadata shape. Rows store the shape as
JSON text; `parse_metadata` turns it back into the matching dataclass.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Union

from engagement.errors import InvalidAward


class TransactionType(str, Enum):
    STREAK_DAILY = "streak_daily"
    STREAK_MILESTONE = "streak_milestone"
    GOAL_COMPLETED = "goal_completed"
    VIDEO_WATCHED = "video_watched"
    VIDEO_COMPLETED = "video_completed"
    CHAT_SESSION = "chat_session"
    CHAT_MESSAGES = "chat_messages"
    FIRST_ACTIVITY = "first_activity"
    BADGE_EARNED = "badge_earned"


class Category(str, Enum):
    STREAK = "streak_points"
    GOAL = "goal_points"
    VIDEO = "video_points"
    CHAT = "chat_points"


CATEGORY_BY_TYPE: dict[TransactionType, Category] = {
    TransactionType.STREAK_DAILY: Category.STREAK,
    TransactionType.STREAK_MILESTONE: Category.STREAK,
    TransactionType.FIRST_ACTIVITY: Category.STREAK,
    TransactionType.BADGE_EARNED: Category.STREAK,
    TransactionType.GOAL_COMPLETED: Category.GOAL,
    TransactionType.VIDEO_WATCHED: Category.VIDEO,
    TransactionType.VIDEO_COMPLETED: Category.VIDEO,
    TransactionType.CHAT_SESSION: Category.CHAT,
    TransactionType.CHAT_MESSAGES: Category.CHAT,
}


@dataclass(frozen=True)
class StreakDailyMeta:
    streak: int


@dataclass(frozen=True)
class StreakMilestoneMeta:
    milestone: int


@dataclass(frozen=True)
class GoalCompletedMeta:
    goal_id: str


@dataclass(frozen=True)
class VideoWatchedMeta:
    watch_seconds: int = 0
    video_id: str | None = None


@dataclass(frozen=True)
class VideoCompletedMeta:
    video_id: str | None = None


@dataclass(frozen=True)
class ChatSessionMeta:
    pass


@dataclass(frozen=True)
class ChatMessagesMeta:
    message_count: int
    requested_points: int = 0


@dataclass(frozen=True)
class FirstActivityMeta:
    activity_kind: str


@dataclass(frozen=True)
class BadgeEarnedMeta:
    badge_type: str


TransactionMeta = Union[
    StreakDailyMeta,
    StreakMilestoneMeta,
    GoalCompletedMeta,
    VideoWatchedMeta,
    VideoCompletedMeta,
    ChatSessionMeta,
    ChatMessagesMeta,
    FirstActivityMeta,
    BadgeEarnedMeta,
]

META_BY_TYPE: dict[TransactionType, type] = {
    TransactionType.STREAK_DAILY: StreakDailyMeta,
    TransactionType.STREAK_MILESTONE: StreakMilestoneMeta,
    TransactionType.GOAL_COMPLETED: GoalCompletedMeta,
    TransactionType.VIDEO_WATCHED: VideoWatchedMeta,
    TransactionType.VIDEO_COMPLETED: VideoCompletedMeta,
    TransactionType.CHAT_SESSION: ChatSessionMeta,
    TransactionType.CHAT_MESSAGES: ChatMessagesMeta,
    TransactionType.FIRST_ACTIVITY: FirstActivityMeta,
    TransactionType.BADGE_EARNED: BadgeEarnedMeta,
}


def coerce_type(tx_type: TransactionType | str) -> TransactionType:
    try:
        return TransactionType(tx_type)
    except ValueError:
        raise InvalidAward(f"Unknown transaction type: {tx_type}") from None


def category_for(tx_type: TransactionType | str) -> Category:
    return CATEGORY_BY_TYPE[coerce_type(tx_type)]


def check_metadata(tx_type: TransactionType, meta: TransactionMeta) -> None:
    expected = META_BY_TYPE[tx_type]
    if not isinstance(meta, expected):
        raise InvalidAward(f"{tx_type.value} expects {expected.__name__}, got {type(meta).__name__}")


def dump_metadata(meta: TransactionMeta) -> str:
    return json.dumps(asdict(meta), sort_keys=True)


def parse_metadata(tx_type: TransactionType | str, raw: str | None) -> TransactionMeta:
    cls = META_BY_TYPE[coerce_type(tx_type)]
    try:
        data = json.loads(raw or "{}")
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    allowed = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in allowed})
