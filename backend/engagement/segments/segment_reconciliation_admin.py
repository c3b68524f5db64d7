from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from engagement.jobs.points_reconciler import rebuild_account, reconcile_accounts
from engagement.models import AuditLog

recon_bp = Blueprint("recon_bp", __name__, url_prefix="/api/admin")


def _is_admin() -> bool:
    expected = (current_app.config.get("ENGAGEMENT_ADMIN_TOKEN") or "").strip()
    if not expected:
        return False
    got = (request.headers.get("X-Admin-Token") or "").strip()
    return hmac.compare_digest(got, expected)


@recon_bp.post("/reconcile")
def run_recon():
    if not _is_admin():
        return jsonify({"message": "Admin required"}), 403
    data = request.get_json(silent=True) or {}
    limit = int(data.get("limit") or 500)
    res = reconcile_accounts(limit=limit, freeze=not bool(data.get("dry_run")))
    return jsonify(res), 200


@recon_bp.post("/rebuild")
def run_rebuild():
    if not _is_admin():
        return jsonify({"message": "Admin required"}), 403
    data = request.get_json(silent=True) or {}
    user_id = str(data.get("user_id") or "").strip()
    if not user_id:
        return jsonify({"message": "user_id required"}), 400
    creator_id = (data.get("creator_id") or "").strip() or None
    return jsonify(rebuild_account(user_id, creator_id)), 200


@recon_bp.get("/audit")
def list_audit():
    if not _is_admin():
        return jsonify({"message": "Admin required"}), 403
    rows = AuditLog.query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(200).all()
    return jsonify({"ok": True, "items": [r.to_dict() for r in rows]}), 200
