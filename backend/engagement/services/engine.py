"""Inbound calls used by the video/chat UI.

`apply_*` functions are strict: they raise and let the caller decide. The
`record_*` / `get_*` functions wrap them for the UI: they never raise, retry
transient store errors, and return empty results when the engine is not
configured or no user is known.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable

from flask import current_app

from engagement.errors import InvalidAward, KeyFrozen, NotConfigured, ReconciliationViolation, TransientStoreError
from engagement.extensions import db
from engagement.models import UserProfile
from engagement.utils import badges as badge_rules
from engagement.utils import daily_activity, leaderboard, ledger, notify, streaks
from engagement.utils import points as points_acct
from engagement.utils.calendar import day_of, to_utc_naive, utcnow
from engagement.utils.display import level_from_points, points_for_next_level, streak_status
from engagement.utils.key_locks import key_lock
from engagement.utils.points_config import PointsConfig, current_milestone_policy, current_points_config
from engagement.utils.store import get_logger, require_store, unit_of_work
from engagement.utils.tx_metadata import (
    ChatMessagesMeta,
    ChatSessionMeta,
    FirstActivityMeta,
    GoalCompletedMeta,
    StreakDailyMeta,
    StreakMilestoneMeta,
    TransactionType,
    VideoCompletedMeta,
    VideoWatchedMeta,
)


@dataclass
class ActivityOutcome:
    streak: dict | None = None
    points_earned: int = 0
    is_first_of_day: bool = False
    transition: str | None = None
    milestones: list[int] = field(default_factory=list)
    badges: list[str] = field(default_factory=list)
    awards: list[dict] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


class _Tally:
    def __init__(self, outcome: ActivityOutcome):
        self.outcome = outcome

    def add(self, result: points_acct.AwardResult, tx_type: TransactionType) -> int:
        if result.accepted and result.points_awarded > 0:
            self.outcome.points_earned += result.points_awarded
            self.outcome.awards.append({"type": tx_type.value, "points": result.points_awarded})
            return result.points_awarded
        return 0


def _clean_ids(user_id, creator_id) -> tuple[str, str]:
    uid = str(user_id or "").strip()
    cid = str(creator_id or "").strip()
    if not uid or not cid:
        raise NotConfigured("user_id and creator_id are required")
    return uid, cid


def _moment(now: datetime | None) -> datetime:
    return to_utc_naive(now) if now is not None else utcnow()


def _activity_unit(
    user_id: str,
    creator_id: str,
    kind: str,
    metadata: dict,
    now: datetime,
    config: PointsConfig,
    policy: str,
    idempotency_key: str | None = None,
) -> ActivityOutcome:
    """Daily upsert, streak, awards and badges for one event. Caller holds the key lock and the unit."""
    today = day_of(now)
    outcome = ActivityOutcome()
    tally = _Tally(outcome)

    # row lock before any read of the key's state
    acct = points_acct.lock_account(user_id, creator_id, now=now)
    if acct.frozen:
        raise KeyFrozen(f"account {user_id}:{creator_id} is frozen", user_id=user_id, creator_id=creator_id)

    delta = daily_activity.ActivityDelta.for_kind(kind, metadata)
    daily = daily_activity.record_activity(user_id, creator_id, kind, today, delta, now=now)
    upd = streaks.advance_streak(user_id, creator_id, kind, today, milestone_policy=policy, now=now)
    outcome.is_first_of_day = daily.is_first_of_day
    outcome.transition = upd.transition

    if upd.transition == streaks.STARTED:
        tally.add(
            points_acct.award(
                user_id, creator_id, TransactionType.FIRST_ACTIVITY, config.FIRST_ACTIVITY,
                FirstActivityMeta(activity_kind=kind),
                now=now, idempotency_key=f"first_activity:{user_id}:{creator_id}", config=config,
            ),
            TransactionType.FIRST_ACTIVITY,
        )
    elif upd.transition == streaks.CONTINUED and daily.is_first_of_day:
        tally.add(
            points_acct.award(
                user_id, creator_id, TransactionType.STREAK_DAILY, config.STREAK_DAILY,
                StreakDailyMeta(streak=int(upd.record.current_streak)),
                now=now, idempotency_key=f"streak_daily:{user_id}:{creator_id}:{today.isoformat()}", config=config,
            ),
            TransactionType.STREAK_DAILY,
        )

    bonus_by_milestone = config.milestones()
    for milestone in upd.milestones:
        bonus = bonus_by_milestone.get(milestone, 0)
        if bonus <= 0:
            continue
        got = tally.add(
            points_acct.award(
                user_id, creator_id, TransactionType.STREAK_MILESTONE, bonus,
                StreakMilestoneMeta(milestone=milestone),
                now=now, idempotency_key=f"streak_milestone:{user_id}:{creator_id}:{today.isoformat()}:{milestone}",
                config=config,
            ),
            TransactionType.STREAK_MILESTONE,
        )
        if got:
            outcome.milestones.append(milestone)

    if kind == "video" and config.VIDEO_WATCHED > 0:
        tally.add(
            points_acct.award(
                user_id, creator_id, TransactionType.VIDEO_WATCHED, config.VIDEO_WATCHED,
                VideoWatchedMeta(watch_seconds=delta.watch_seconds, video_id=metadata.get("video_id")),
                now=now, idempotency_key=f"video_watched:{user_id}:{creator_id}:{idempotency_key}" if idempotency_key else None, config=config,
            ),
            TransactionType.VIDEO_WATCHED,
        )
    elif kind == "chat" and daily.is_first_of_day and config.CHAT_SESSION > 0:
        tally.add(
            points_acct.award(
                user_id, creator_id, TransactionType.CHAT_SESSION, config.CHAT_SESSION, ChatSessionMeta(),
                now=now, idempotency_key=f"chat_session:{user_id}:{creator_id}:{today.isoformat()}", config=config,
            ),
            TransactionType.CHAT_SESSION,
        )

    already = badge_rules.earned_badge_types(user_id, creator_id)
    check_ins = daily_activity.count_active_days(user_id, creator_id)
    for badge_type in badge_rules.evaluate(upd.record, check_ins, already):
        before = outcome.points_earned
        if badge_rules.award_badge(user_id, creator_id, badge_type, now=now, config=config):
            outcome.badges.append(badge_type)
            value = config.badge_points(badge_type)
            if value > 0:
                outcome.points_earned = before + value
                outcome.awards.append({"type": TransactionType.BADGE_EARNED.value, "points": value})

    outcome.streak = upd.record.to_dict()
    return outcome


@contextmanager
def _write_unit():
    """unit_of_work that freezes the offending account when a reconciliation check fails."""
    try:
        with unit_of_work():
            yield
    except KeyFrozen:
        raise
    except ReconciliationViolation as e:
        get_logger().critical("reconciliation violation user=%s creator=%s: %s %s", e.user_id, e.creator_id, e, e.details)
        points_acct.freeze_account(e.user_id, e.creator_id, str(e), e.details)
        raise


def _queue_notifications(user_id: str, creator_id: str, outcome: ActivityOutcome) -> None:
    for milestone in outcome.milestones:
        notify.queue_milestone(user_id, creator_id, milestone)
    for badge_type in outcome.badges:
        notify.queue_badge_earned(user_id, creator_id, badge_type)
    notify.queue_points_earned(user_id, creator_id, outcome.points_earned, [a["type"] for a in outcome.awards])


def apply_activity(
    user_id: str,
    creator_id: str,
    kind: str,
    metadata: dict | None = None,
    *,
    now: datetime | None = None,
    idempotency_key: str | None = None,
) -> ActivityOutcome:
    user_id, creator_id = _clean_ids(user_id, creator_id)
    if kind not in daily_activity.ACTIVITY_KINDS:
        raise InvalidAward(f"Unknown activity kind: {kind}")
    now = _moment(now)
    metadata = dict(metadata or {})
    config = current_points_config()
    policy = current_milestone_policy()

    with key_lock(user_id, creator_id):
        if idempotency_key and ledger.find_by_idempotency_key(f"video_watched:{user_id}:{creator_id}:{idempotency_key}"):
            return ActivityOutcome()
        with _write_unit():
            outcome = _activity_unit(user_id, creator_id, kind, metadata, now, config, policy, idempotency_key)
            _queue_notifications(user_id, creator_id, outcome)
    get_logger().info(
        "activity recorded user=%s creator=%s kind=%s streak=%s points=%s",
        user_id, creator_id, kind, (outcome.streak or {}).get("current_streak"), outcome.points_earned,
    )
    return outcome


def apply_video_completion(
    user_id: str,
    creator_id: str,
    *,
    video_id: str | None = None,
    now: datetime | None = None,
) -> int:
    user_id, creator_id = _clean_ids(user_id, creator_id)
    now = _moment(now)
    config = current_points_config()
    if config.VIDEO_COMPLETED <= 0:
        return 0
    key = f"video_completed:{user_id}:{creator_id}:{video_id}" if video_id else None
    with key_lock(user_id, creator_id):
        with _write_unit():
            result = points_acct.award(
                user_id, creator_id, TransactionType.VIDEO_COMPLETED, config.VIDEO_COMPLETED,
                VideoCompletedMeta(video_id=video_id), now=now, idempotency_key=key, config=config,
            )
            if result.accepted:
                notify.queue_points_earned(user_id, creator_id, result.points_awarded, [TransactionType.VIDEO_COMPLETED.value])
    return result.points_awarded if result.accepted else 0


def apply_chat_messages(
    user_id: str,
    creator_id: str,
    count: int,
    *,
    now: datetime | None = None,
    idempotency_key: str | None = None,
) -> int:
    """Award CHAT_MESSAGE per message, clipped to what is left of today's cap."""
    user_id, creator_id = _clean_ids(user_id, creator_id)
    count = int(count or 0)
    if count <= 0:
        return 0
    now = _moment(now)
    config = current_points_config()
    requested = count * int(config.CHAT_MESSAGE)
    if requested <= 0:
        return 0
    with key_lock(user_id, creator_id):
        with _write_unit():
            result = points_acct.award(
                user_id, creator_id, TransactionType.CHAT_MESSAGES, requested,
                ChatMessagesMeta(message_count=count, requested_points=requested),
                now=now, idempotency_key=f"chat_messages:{user_id}:{creator_id}:{idempotency_key}" if idempotency_key else None, config=config,
            )
    return result.points_awarded if result.accepted else 0


def apply_goal_completion(
    user_id: str,
    creator_id: str,
    goal_id: str,
    *,
    now: datetime | None = None,
) -> ActivityOutcome:
    """Goal activity for the streak plus the goal award, once per goal id."""
    user_id, creator_id = _clean_ids(user_id, creator_id)
    goal_id = str(goal_id or "").strip()
    if not goal_id:
        raise InvalidAward("goal_id is required")
    now = _moment(now)
    config = current_points_config()
    policy = current_milestone_policy()
    with key_lock(user_id, creator_id):
        with _write_unit():
            outcome = _activity_unit(user_id, creator_id, "goal", {}, now, config, policy)
            if config.GOAL_COMPLETED > 0:
                _Tally(outcome).add(
                    points_acct.award(
                        user_id, creator_id, TransactionType.GOAL_COMPLETED, config.GOAL_COMPLETED,
                        GoalCompletedMeta(goal_id=goal_id),
                        now=now, idempotency_key=f"goal_completed:{user_id}:{creator_id}:{goal_id}", config=config,
                    ),
                    TransactionType.GOAL_COMPLETED,
                )
            _queue_notifications(user_id, creator_id, outcome)
    return outcome


def _best_effort(op: str, user_id, creator_id, fn: Callable[[], Any], default: Any) -> Any:
    """Run `fn` for the UI: retry transient errors, never raise."""
    log = get_logger()
    try:
        require_store()
    except NotConfigured:
        return default
    if not str(user_id or "").strip() or not str(creator_id or "").strip():
        return default

    retries = max(0, int(current_app.config.get("ENGAGEMENT_STORE_RETRIES", 2) or 0))
    for attempt in range(retries + 1):
        try:
            return fn()
        except TransientStoreError as e:
            log.warning("%s transient store error (attempt %s/%s) user=%s creator=%s: %s",
                        op, attempt + 1, retries + 1, user_id, creator_id, e)
        except KeyFrozen as e:
            log.critical("%s refused, account frozen user=%s creator=%s: %s", op, user_id, creator_id, e)
            return default
        except ReconciliationViolation as e:
            # the write unit has already frozen the account
            log.critical("%s dropped, account frozen user=%s creator=%s: %s", op, e.user_id, e.creator_id, e)
            return default
        except NotConfigured:
            return default
        except Exception:
            db.session.rollback()
            log.exception("%s failed user=%s creator=%s; activity dropped", op, user_id, creator_id)
            return default
    log.warning("%s dropped after %s attempts user=%s creator=%s", op, retries + 1, user_id, creator_id)
    return default


def record_activity(user_id, creator_id, kind, metadata=None, *, now=None, idempotency_key=None) -> ActivityOutcome:
    return _best_effort(
        "record_activity", user_id, creator_id,
        lambda: apply_activity(user_id, creator_id, kind, metadata, now=now, idempotency_key=idempotency_key),
        ActivityOutcome(),
    )


def record_video_completion(user_id, creator_id, *, video_id=None, now=None) -> int:
    return _best_effort(
        "record_video_completion", user_id, creator_id,
        lambda: apply_video_completion(user_id, creator_id, video_id=video_id, now=now),
        0,
    )


def record_chat_messages(user_id, creator_id, count, *, now=None, idempotency_key=None) -> int:
    return _best_effort(
        "record_chat_messages", user_id, creator_id,
        lambda: apply_chat_messages(user_id, creator_id, count, now=now, idempotency_key=idempotency_key),
        0,
    )


def record_goal_completion(user_id, creator_id, goal_id, *, now=None) -> int:
    outcome = _best_effort(
        "record_goal_completion", user_id, creator_id,
        lambda: apply_goal_completion(user_id, creator_id, goal_id, now=now),
        ActivityOutcome(),
    )
    return outcome.points_earned


# ---- reads ----

def _empty_summary(creator_id) -> dict:
    return {"creator_id": creator_id, "streak": None, "points": None, "rank": None, "badges": [], "level": None, "recent": None}


def get_engagement_summary(user_id, creator_id, *, now=None) -> dict:
    def _read():
        uid, cid = _clean_ids(user_id, creator_id)
        today = day_of(_moment(now))
        streak = streaks.get_streak(uid, cid)
        acct = points_acct.get_account(uid, cid)
        rank = leaderboard.get_user_rank(uid, cid, today=today)
        total = int(acct.total_points or 0) if acct else 0
        level = level_from_points(total)
        streak_dict = None
        if streak is not None:
            streak_dict = streak.to_dict()
            streak_dict["current_streak"] = streak.effective_streak(today)
            streak_dict["status"] = streak_status(streak, today)
        return {
            "creator_id": cid,
            "streak": streak_dict,
            "points": acct.to_dict() if acct else None,
            "rank": rank.to_dict() if rank else None,
            "badges": [
                {**b.to_dict(), **badge_rules.badge_info(b.badge_type)} for b in badge_rules.earned_badges(uid, cid)
            ],
            "level": {"level": level, "next_level_at": points_for_next_level(level)},
            "recent": daily_activity.recent_activity_stats(uid, cid, today),
        }

    return _best_effort("get_engagement_summary", user_id, creator_id, _read, _empty_summary(creator_id))


def get_leaderboard(creator_id, limit: int = 50, offset: int = 0) -> list[leaderboard.LeaderboardEntry]:
    return _best_effort(
        "get_leaderboard", "-", creator_id,
        lambda: leaderboard.get_leaderboard(str(creator_id), limit=limit, offset=offset),
        [],
    )


def get_global_leaderboard(limit: int = 50, offset: int = 0) -> list[leaderboard.LeaderboardEntry]:
    return _best_effort(
        "get_global_leaderboard", "-", "*",
        lambda: leaderboard.get_global_leaderboard(limit=limit, offset=offset),
        [],
    )


def get_recent_transactions(user_id, creator_id=None, limit: int = 20) -> list[dict]:
    return _best_effort(
        "get_recent_transactions", user_id, creator_id or "*",
        lambda: [t.to_dict() for t in ledger.recent_transactions(str(user_id), creator_id, limit=limit)],
        [],
    )


def get_user_badges(user_id, creator_id) -> list[dict]:
    return _best_effort(
        "get_user_badges", user_id, creator_id,
        lambda: [{**b.to_dict(), **badge_rules.badge_info(b.badge_type)} for b in badge_rules.earned_badges(str(user_id), str(creator_id))],
        [],
    )


def get_total_user_points(user_id) -> int:
    return _best_effort("get_total_user_points", user_id, "*", lambda: points_acct.total_user_points(str(user_id)), 0)


def upsert_profile(user_id, *, display_name=None, avatar_url=None, email=None) -> dict | None:
    """Display data for leaderboards; accounting never depends on it."""
    def _write():
        uid = str(user_id or "").strip()
        with unit_of_work():
            prof = UserProfile.query.get(uid)
            if prof is None:
                prof = UserProfile(user_id=uid)
                db.session.add(prof)
            if display_name is not None:
                prof.display_name = str(display_name)[:120]
            if avatar_url is not None:
                prof.avatar_url = str(avatar_url)[:512]
            if email is not None:
                prof.email = str(email).strip().lower()[:255] or None
            prof.updated_at = utcnow()
        return prof.to_dict()

    return _best_effort("upsert_profile", user_id, "*", _write, None)


def pop_notifications(user_id, limit: int = 50) -> list[dict]:
    """Queued in-app notifications for the user, marked seen once returned."""
    def _read():
        with unit_of_work():
            rows = notify.pending_for(str(user_id), limit=limit)
            items = [n.to_dict() for n in rows]
            for n in rows:
                notify.mark_seen(n)
        return items

    return _best_effort("pop_notifications", user_id, "*", _read, [])
