from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    # Naive UTC, matching the DateTime columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def day_of(moment: datetime | None = None) -> date:
    """Calendar day bucket (UTC) for a wall-clock moment."""
    return to_utc_naive(moment or utcnow()).date()


def yesterday_of(day: date) -> date:
    return day - timedelta(days=1)
