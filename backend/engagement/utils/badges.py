from __future__ import annotations

from datetime import datetime
from typing import Iterable

from engagement.errors import InvalidAward
from engagement.extensions import db
from engagement.models import StreakRecord, UserBadge
from engagement.utils import points as points_acct
from engagement.utils.points_config import PointsConfig, current_points_config
from engagement.utils.tx_metadata import BadgeEarnedMeta, TransactionType

STREAK_BADGES = (
    ("streak_3", 3),
    ("streak_7", 7),
    ("streak_30", 30),
)
CONSISTENT_CHECK_INS = 10
BADGE_TYPES = tuple(b for b, _ in STREAK_BADGES) + ("consistent",)

BADGE_INFO = {
    "streak_3": {"name": "On Fire", "description": "3-day activity streak"},
    "streak_7": {"name": "Week Warrior", "description": "7-day activity streak"},
    "streak_30": {"name": "Streak Master", "description": "30-day activity streak"},
    "consistent": {"name": "Consistent", "description": "10 active days completed"},
}


def badge_info(badge_type: str) -> dict:
    return dict(BADGE_INFO.get(badge_type) or {"name": badge_type, "description": ""})


def evaluate(streak: StreakRecord | None, total_check_ins: int, already_earned: Iterable[str]) -> list[str]:
    """Badges newly eligible for the current state. Pure, no writes."""
    earned = set(already_earned or ())
    current = int(streak.current_streak or 0) if streak is not None else 0
    out = []
    for badge_type, threshold in STREAK_BADGES:
        if current >= threshold and badge_type not in earned:
            out.append(badge_type)
    if int(total_check_ins or 0) >= CONSISTENT_CHECK_INS and "consistent" not in earned:
        out.append("consistent")
    return out


def earned_badges(user_id: str, creator_id: str) -> list[UserBadge]:
    return (
        UserBadge.query.filter_by(user_id=str(user_id), creator_id=creator_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
        .all()
    )


def earned_badge_types(user_id: str, creator_id: str) -> set[str]:
    rows = db.session.query(UserBadge.badge_type).filter_by(user_id=str(user_id), creator_id=creator_id).all()
    return {r[0] for r in rows}


def award_badge(
    user_id: str,
    creator_id: str,
    badge_type: str,
    *,
    now: datetime | None = None,
    config: PointsConfig | None = None,
) -> bool:
    """Insert the badge and credit its points in the caller's unit of work.

    Returns False when the badge already exists; nothing is written then.
    """
    if badge_type not in BADGE_TYPES:
        raise InvalidAward(f"Unknown badge type: {badge_type}")
    now = now or datetime.utcnow()
    config = config or current_points_config()

    exists = UserBadge.query.filter_by(user_id=str(user_id), creator_id=creator_id, badge_type=badge_type).first()
    if exists:
        return False

    db.session.add(UserBadge(user_id=str(user_id), creator_id=creator_id, badge_type=badge_type, earned_at=now))
    db.session.flush()

    value = config.badge_points(badge_type)
    if value > 0:
        points_acct.award(
            user_id,
            creator_id,
            TransactionType.BADGE_EARNED,
            value,
            BadgeEarnedMeta(badge_type=badge_type),
            now=now,
            idempotency_key=f"badge:{user_id}:{creator_id}:{badge_type}",
            config=config,
        )
    return True
