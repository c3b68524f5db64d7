from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import func

from engagement.errors import InvalidAward
from engagement.extensions import db
from engagement.models import DailyActivityRecord

ACTIVITY_KINDS = ("video", "chat", "goal")


@dataclass(frozen=True)
class ActivityDelta:
    videos: int = 0
    messages: int = 0
    watch_seconds: int = 0

    @classmethod
    def for_kind(cls, kind: str, metadata: dict | None = None) -> "ActivityDelta":
        """Counter increments implied by one event of `kind`."""
        metadata = metadata or {}
        if kind == "video":
            return cls(videos=1, watch_seconds=max(0, int(metadata.get("video_watch_seconds") or 0)))
        if kind == "chat":
            return cls(messages=max(0, int(metadata.get("message_count") or 0)))
        return cls()


@dataclass
class DailyActivityResult:
    is_first_of_day: bool
    aggregate: DailyActivityRecord


def record_activity(
    user_id: str,
    creator_id: str,
    kind: str,
    today: date,
    delta: ActivityDelta | None = None,
    *,
    now: datetime | None = None,
) -> DailyActivityResult:
    """Upsert the (user, creator, today) row. Must run under the key lock."""
    if kind not in ACTIVITY_KINDS:
        raise InvalidAward(f"Unknown activity kind: {kind}")
    delta = delta or ActivityDelta.for_kind(kind)
    now = now or datetime.utcnow()

    row = DailyActivityRecord.query.filter_by(
        user_id=str(user_id), creator_id=creator_id, activity_date=today
    ).first()
    is_first = row is None
    if is_first:
        row = DailyActivityRecord(
            user_id=str(user_id),
            creator_id=creator_id,
            activity_date=today,
            watched_video=False,
            chatted=False,
            completed_goal=False,
            videos_watched=0,
            messages_sent=0,
            watch_seconds=0,
            created_at=now,
        )
        db.session.add(row)

    flag = {"video": "watched_video", "chat": "chatted", "goal": "completed_goal"}[kind]
    setattr(row, flag, True)

    row.videos_watched = int(row.videos_watched or 0) + max(0, int(delta.videos))
    row.messages_sent = int(row.messages_sent or 0) + max(0, int(delta.messages))
    row.watch_seconds = int(row.watch_seconds or 0) + max(0, int(delta.watch_seconds))
    row.updated_at = now
    db.session.flush()
    return DailyActivityResult(is_first_of_day=is_first, aggregate=row)


def count_active_days(user_id: str, creator_id: str) -> int:
    return int(
        db.session.query(func.count(DailyActivityRecord.id))
        .filter(DailyActivityRecord.user_id == str(user_id), DailyActivityRecord.creator_id == creator_id)
        .scalar()
        or 0
    )


def recent_activity_stats(user_id: str, creator_id: str, today: date, days: int = 7) -> dict:
    since = today - timedelta(days=max(1, int(days)) - 1)
    active_days, videos = (
        db.session.query(
            func.count(DailyActivityRecord.id),
            func.coalesce(func.sum(DailyActivityRecord.videos_watched), 0),
        )
        .filter(
            DailyActivityRecord.user_id == str(user_id),
            DailyActivityRecord.creator_id == creator_id,
            DailyActivityRecord.activity_date >= since,
        )
        .one()
    )
    return {"active_days": int(active_days or 0), "videos_watched": int(videos or 0), "window_days": int(days)}
