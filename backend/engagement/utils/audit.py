from __future__ import annotations

import json
from datetime import datetime

from engagement.extensions import db
from engagement.models import AuditLog


def record_audit(action: str, *, target_type: str, target_key: str, meta: dict | None = None) -> AuditLog:
    log = AuditLog(
        action=action,
        target_type=target_type,
        target_key=target_key[:200],
        meta=json.dumps(meta or {}, default=str),
        created_at=datetime.utcnow(),
    )
    db.session.add(log)
    return log


def account_key(user_id: str, creator_id: str | None) -> str:
    return f"{user_id}:{creator_id if creator_id is not None else '*'}"
