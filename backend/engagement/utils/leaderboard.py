from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date

from flask import current_app, has_app_context
from sqlalchemy import and_, func, or_

from engagement.extensions import db
from engagement.models import ALL_CREATORS, PointsAccount, StreakRecord, UserProfile
from engagement.utils.calendar import day_of


@dataclass
class LeaderboardEntry:
    user_id: str
    display_name: str | None
    avatar_url: str | None
    total_points: int
    current_streak: int
    longest_streak: int
    rank: int
    total_users: int
    top_percentage: int

    def to_dict(self):
        return asdict(self)


@dataclass
class UserRank:
    rank: int
    total_users: int
    top_percentage: int
    total_points: int
    current_streak: int

    def to_dict(self):
        return asdict(self)


def top_percentage(rank: int, total_users: int) -> int:
    """ceil(100 * rank / total_users) in integer arithmetic."""
    if total_users <= 0:
        return 0
    return -(-100 * int(rank) // int(total_users))


def excluded_user_ids() -> set[str]:
    """Users kept out of every leaderboard (staff, test accounts).

    Entries with an '@' are matched against profile emails.
    """
    if not has_app_context():
        return set()
    raw = current_app.config.get("LEADERBOARD_EXCLUDED_USERS") or []
    if isinstance(raw, str):
        raw = [p.strip() for p in raw.split(",") if p.strip()]
    ids = {str(x) for x in raw if "@" not in str(x)}
    emails = {str(x).lower() for x in raw if "@" in str(x)}
    if emails:
        rows = db.session.query(UserProfile.user_id).filter(func.lower(UserProfile.email).in_(sorted(emails))).all()
        ids.update(r[0] for r in rows)
    return ids


def _population(scope: str, excluded: set[str]):
    q = PointsAccount.query.filter(PointsAccount.scope == scope)
    if excluded:
        q = q.filter(PointsAccount.user_id.notin_(sorted(excluded)))
    return q


def _ordered(q):
    return q.order_by(PointsAccount.total_points.desc(), PointsAccount.created_at.asc(), PointsAccount.id.asc())


def _profiles(user_ids: list[str]) -> dict[str, UserProfile]:
    if not user_ids:
        return {}
    return {p.user_id: p for p in UserProfile.query.filter(UserProfile.user_id.in_(user_ids)).all()}


def _streaks(user_ids: list[str], creator_id: str | None) -> dict[str, list[StreakRecord]]:
    if not user_ids:
        return {}
    q = StreakRecord.query.filter(StreakRecord.user_id.in_(user_ids))
    if creator_id is not None:
        q = q.filter(StreakRecord.creator_id == creator_id)
    out: dict[str, list[StreakRecord]] = {}
    for s in q.all():
        out.setdefault(s.user_id, []).append(s)
    return out


def _build_entries(accounts, start_rank: int, total: int, creator_id: str | None, today: date) -> list[LeaderboardEntry]:
    user_ids = [a.user_id for a in accounts]
    profiles = _profiles(user_ids)
    streaks = _streaks(user_ids, creator_id)
    out = []
    for i, acct in enumerate(accounts):
        rank = start_rank + i
        prof = profiles.get(acct.user_id)
        recs = streaks.get(acct.user_id) or []
        out.append(
            LeaderboardEntry(
                user_id=acct.user_id,
                display_name=prof.display_name if prof else None,
                avatar_url=prof.avatar_url if prof else None,
                total_points=int(acct.total_points or 0),
                current_streak=max([s.effective_streak(today) for s in recs] or [0]),
                longest_streak=max([int(s.longest_streak or 0) for s in recs] or [0]),
                rank=rank,
                total_users=total,
                top_percentage=top_percentage(rank, total),
            )
        )
    return out


def get_leaderboard(creator_id: str, limit: int = 50, offset: int = 0, *, today: date | None = None) -> list[LeaderboardEntry]:
    """One page of a creator's population, best first."""
    limit = max(1, min(int(limit or 50), 500))
    offset = max(0, int(offset or 0))
    excluded = excluded_user_ids()
    base = _population(creator_id, excluded)
    total = base.count()
    accounts = _ordered(base).offset(offset).limit(limit).all()
    return _build_entries(accounts, offset + 1, total, creator_id, today or day_of())


def get_global_leaderboard(limit: int = 50, offset: int = 0, *, today: date | None = None) -> list[LeaderboardEntry]:
    """Cross-creator totals; streak columns show the user's best pair."""
    limit = max(1, min(int(limit or 50), 500))
    offset = max(0, int(offset or 0))
    excluded = excluded_user_ids()
    base = _population(ALL_CREATORS, excluded)
    total = base.count()
    accounts = _ordered(base).offset(offset).limit(limit).all()
    return _build_entries(accounts, offset + 1, total, None, today or day_of())


def get_user_rank(user_id: str, creator_id: str, *, today: date | None = None) -> UserRank | None:
    excluded = excluded_user_ids()
    if str(user_id) in excluded:
        return None
    base = _population(creator_id, excluded)
    acct = base.filter(PointsAccount.user_id == str(user_id)).first()
    if acct is None:
        return None
    total = base.count()
    ahead = base.filter(
        or_(
            PointsAccount.total_points > acct.total_points,
            and_(
                PointsAccount.total_points == acct.total_points,
                or_(
                    PointsAccount.created_at < acct.created_at,
                    and_(PointsAccount.created_at == acct.created_at, PointsAccount.id < acct.id),
                ),
            ),
        )
    ).count()
    rank = ahead + 1
    streak = StreakRecord.query.filter_by(user_id=str(user_id), creator_id=creator_id).first()
    return UserRank(
        rank=rank,
        total_users=total,
        top_percentage=top_percentage(rank, total),
        total_points=int(acct.total_points or 0),
        current_streak=streak.effective_streak(today or day_of()) if streak else 0,
    )
