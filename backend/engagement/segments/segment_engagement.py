from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from engagement.extensions import db
from engagement.services import engine
from engagement.utils.daily_activity import ACTIVITY_KINDS
from engagement.utils.display import format_points, top_percentage_label, transaction_type_name

engagement_bp = Blueprint("engagement_bp", __name__, url_prefix="/api/engagement")

_INIT_DONE = False


@engagement_bp.before_app_request
def _ensure_tables_once():
    global _INIT_DONE
    if _INIT_DONE:
        return
    try:
        db.create_all()
    except Exception:
        current_app.logger.exception("create_all failed")
    _INIT_DONE = True


def _current_user_id() -> str | None:
    header = current_app.config.get("ENGAGEMENT_USER_HEADER") or "X-User-Id"
    uid = (request.headers.get(header) or "").strip()
    return uid or None


def _limit(default: int = 50, cap: int = 100) -> int:
    raw = (request.args.get("limit") or "").strip()
    try:
        limit = int(raw) if raw else default
    except Exception:
        limit = default
    if limit < 1:
        limit = default
    if limit > cap:
        limit = cap
    return limit


def _offset() -> int:
    try:
        return max(0, int(request.args.get("offset") or 0))
    except Exception:
        return 0


def _unauthorized():
    return jsonify({"message": "Unauthorized"}), 401


@engagement_bp.post("/activity")
def post_activity():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    data = request.get_json(silent=True) or {}
    creator_id = (data.get("creator_id") or "").strip()
    kind = (data.get("kind") or "").strip().lower()
    if not creator_id or kind not in ACTIVITY_KINDS:
        return jsonify({"message": "creator_id and kind (video|chat|goal) required"}), 400
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    outcome = engine.record_activity(uid, creator_id, kind, metadata, idempotency_key=data.get("idempotency_key"))
    return jsonify({"ok": True, **outcome.to_dict()}), 200


@engagement_bp.post("/video-completion")
def post_video_completion():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    data = request.get_json(silent=True) or {}
    creator_id = (data.get("creator_id") or "").strip()
    if not creator_id:
        return jsonify({"message": "creator_id required"}), 400
    pts = engine.record_video_completion(uid, creator_id, video_id=data.get("video_id"))
    return jsonify({"ok": True, "points_earned": pts}), 200


@engagement_bp.post("/chat-messages")
def post_chat_messages():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    data = request.get_json(silent=True) or {}
    creator_id = (data.get("creator_id") or "").strip()
    try:
        count = int(data.get("count") or 0)
    except Exception:
        count = 0
    if not creator_id or count < 1:
        return jsonify({"message": "creator_id and count >= 1 required"}), 400
    pts = engine.record_chat_messages(uid, creator_id, count, idempotency_key=data.get("idempotency_key"))
    return jsonify({"ok": True, "points_earned": pts}), 200


@engagement_bp.post("/goal-completion")
def post_goal_completion():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    data = request.get_json(silent=True) or {}
    creator_id = (data.get("creator_id") or "").strip()
    goal_id = str(data.get("goal_id") or "").strip()
    if not creator_id or not goal_id:
        return jsonify({"message": "creator_id and goal_id required"}), 400
    pts = engine.record_goal_completion(uid, creator_id, goal_id)
    return jsonify({"ok": True, "points_earned": pts}), 200


@engagement_bp.get("/summary/<creator_id>")
def get_summary(creator_id):
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    summary = engine.get_engagement_summary(uid, creator_id)
    rank = summary.get("rank") or {}
    if rank:
        rank["label"] = top_percentage_label(int(rank.get("top_percentage") or 0))
    return jsonify({"ok": True, **summary}), 200


def _entries_json(entries):
    items = []
    for e in entries:
        d = e.to_dict()
        d["points_display"] = format_points(e.total_points)
        items.append(d)
    return items


@engagement_bp.get("/leaderboard/<creator_id>")
def creator_leaderboard(creator_id):
    entries = engine.get_leaderboard(creator_id, limit=_limit(), offset=_offset())
    return jsonify({"ok": True, "items": _entries_json(entries)}), 200


@engagement_bp.get("/leaderboard")
def global_leaderboard():
    entries = engine.get_global_leaderboard(limit=_limit(), offset=_offset())
    return jsonify({"ok": True, "items": _entries_json(entries)}), 200


@engagement_bp.get("/transactions")
def list_transactions():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    creator_id = (request.args.get("creator_id") or "").strip() or None
    items = engine.get_recent_transactions(uid, creator_id, limit=_limit(default=20))
    for t in items:
        t["type_name"] = transaction_type_name(t.get("transaction_type") or "")
    return jsonify({"ok": True, "items": items, "total_points": engine.get_total_user_points(uid)}), 200


@engagement_bp.get("/badges/<creator_id>")
def list_badges(creator_id):
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    return jsonify({"ok": True, "items": engine.get_user_badges(uid, creator_id)}), 200


@engagement_bp.put("/profile")
def put_profile():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    data = request.get_json(silent=True) or {}
    prof = engine.upsert_profile(
        uid,
        display_name=data.get("display_name"),
        avatar_url=data.get("avatar_url"),
        email=data.get("email"),
    )
    return jsonify({"ok": prof is not None, "profile": prof}), 200


@engagement_bp.get("/notifications")
def list_notifications():
    uid = _current_user_id()
    if not uid:
        return _unauthorized()
    return jsonify({"ok": True, "items": engine.pop_notifications(uid, limit=_limit())}), 200
