from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from engagement.extensions import db
from engagement.models import StreakRecord
from engagement.utils.calendar import yesterday_of

MILESTONES = (7, 14, 30, 100)

STARTED = "started"
SAME_DAY = "same_day"
CONTINUED = "continued"
RESTARTED = "restarted"


@dataclass
class StreakUpdate:
    record: StreakRecord
    transition: str
    previous_streak: int
    milestones: list[int] = field(default_factory=list)


def milestones_reached(previous: int, current: int, policy: str = "exact") -> list[int]:
    """Breakpoints earned by moving from `previous` to `current`.

    `exact` only fires when `current` lands on a breakpoint, so a jump from 5 to 9
    skips 7. `crossing` fires for every breakpoint in (previous, current].
    """
    if current <= previous:
        return []
    if policy == "crossing":
        return [m for m in MILESTONES if previous < m <= current]
    return [m for m in MILESTONES if m == current]


def get_streak(user_id: str, creator_id: str) -> StreakRecord | None:
    return StreakRecord.query.filter_by(user_id=str(user_id), creator_id=creator_id).first()


def advance_streak(
    user_id: str,
    creator_id: str,
    kind: str,
    today: date,
    *,
    milestone_policy: str = "exact",
    now: datetime | None = None,
) -> StreakUpdate:
    """Apply today's activity to the streak. Must run under the key lock."""
    now = now or datetime.utcnow()
    record = get_streak(user_id, creator_id)

    if record is None:
        record = StreakRecord(
            user_id=str(user_id),
            creator_id=creator_id,
            current_streak=1,
            longest_streak=1,
            last_activity_date=today,
            created_at=now,
        )
        db.session.add(record)
        previous = 0
        transition = STARTED
    else:
        previous = int(record.current_streak or 0)
        last = record.last_activity_date
        if last is not None and last >= today:
            # late event for a day already counted
            transition = SAME_DAY
        elif last == yesterday_of(today):
            record.current_streak = previous + 1
            transition = CONTINUED
        else:
            record.current_streak = 1
            transition = RESTARTED
        record.longest_streak = max(int(record.longest_streak or 0), int(record.current_streak))
        if transition != SAME_DAY:
            record.last_activity_date = today

    if kind == "video" and (record.last_video_date is None or record.last_video_date < today):
        record.last_video_date = today
    elif kind == "chat" and (record.last_chat_date is None or record.last_chat_date < today):
        record.last_chat_date = today
    record.updated_at = now
    db.session.flush()

    milestones = []
    if transition == CONTINUED:
        milestones = milestones_reached(previous, int(record.current_streak), milestone_policy)
    return StreakUpdate(record=record, transition=transition, previous_streak=previous, milestones=milestones)
