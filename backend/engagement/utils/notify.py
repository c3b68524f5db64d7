from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

from engagement.extensions import db
from engagement.models import Notification
from engagement.utils.badges import badge_info


def queue_in_app(
    user_id: str,
    creator_id: Optional[str],
    kind: str,
    title: str,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> Notification:
    n = Notification(
        user_id=str(user_id),
        creator_id=creator_id,
        kind=kind,
        title=title[:160] if title else "",
        message=message or "",
        status="queued",
        meta=json.dumps(meta or {}),
        created_at=datetime.utcnow(),
    )
    db.session.add(n)
    return n


def queue_points_earned(user_id: str, creator_id: str, points: int, reasons: list[str]) -> Optional[Notification]:
    if points <= 0:
        return None
    return queue_in_app(
        user_id,
        creator_id,
        "points_earned",
        f"+{points} points",
        f"You earned {points} points",
        {"points": int(points), "reasons": list(reasons)},
    )


def queue_badge_earned(user_id: str, creator_id: str, badge_type: str) -> Notification:
    info = badge_info(badge_type)
    return queue_in_app(
        user_id,
        creator_id,
        "badge_earned",
        f"Badge unlocked: {info['name']}",
        info["description"],
        {"badge_type": badge_type},
    )


def queue_milestone(user_id: str, creator_id: str, milestone: int) -> Notification:
    return queue_in_app(
        user_id,
        creator_id,
        "streak_milestone",
        f"{milestone} day streak!",
        f"You kept your streak going for {milestone} days",
        {"milestone": int(milestone)},
    )


def pending_for(user_id: str, limit: int = 50) -> list[Notification]:
    return (
        Notification.query.filter_by(user_id=str(user_id), status="queued")
        .order_by(Notification.created_at.asc(), Notification.id.asc())
        .limit(int(limit))
        .all()
    )


def mark_seen(n: Notification) -> None:
    n.status = "seen"
    db.session.add(n)
