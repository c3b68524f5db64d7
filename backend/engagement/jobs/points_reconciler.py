from __future__ import annotations

from datetime import datetime

from engagement.errors import ReconciliationViolation
from engagement.extensions import db
from engagement.models import ALL_CREATORS, PointsAccount
from engagement.utils import ledger
from engagement.utils.audit import account_key, record_audit
from engagement.utils.points import check_account, freeze_account, get_account
from engagement.utils.store import get_logger
from engagement.utils.tx_metadata import Category, category_for


def reconcile_accounts(*, limit: int = 500, freeze: bool = True) -> dict:
    """Detect point anomalies (ledger vs stored totals, category split).

    This does NOT auto-correct totals. Anomalous accounts are frozen and an
    AuditLog row is written so they are visible; `rebuild_account` repairs them.
    """
    checked = 0
    anomalies = 0
    log = get_logger()

    accounts = PointsAccount.query.order_by(PointsAccount.id.asc()).limit(int(limit)).all()

    for acct in accounts:
        checked += 1
        try:
            check_account(acct)
        except ReconciliationViolation as e:
            anomalies += 1
            log.critical("points anomaly %s: %s", account_key(acct.user_id, acct.creator_id), e)
            if freeze:
                freeze_account(acct.user_id, acct.creator_id, str(e), e.details)
            else:
                record_audit(
                    "points_anomaly",
                    target_type="points_account",
                    target_key=account_key(acct.user_id, acct.creator_id),
                    meta={"reason": str(e), **e.details},
                )
                db.session.commit()

    return {"checked": checked, "anomalies": anomalies}


def rebuild_account(user_id: str, creator_id: str | None, *, unfreeze: bool = True) -> dict:
    """Recompute an account's totals by replaying its ledger, oldest first.

    With creator_id None this rebuilds the cross-creator row from every creator's rows.
    """
    totals = {c.value: 0 for c in Category}
    count = 0
    for txn in ledger.iter_transactions(user_id, creator_id):
        totals[category_for(txn.transaction_type).value] += int(txn.points)
        count += 1

    now = datetime.utcnow()
    acct = get_account(user_id, creator_id)
    if acct is None:
        acct = PointsAccount(
            user_id=str(user_id),
            creator_id=creator_id,
            scope=creator_id if creator_id is not None else ALL_CREATORS,
            created_at=now,
            frozen=False,
        )
        db.session.add(acct)

    before = acct.to_dict() if acct.id else None
    for column, value in totals.items():
        setattr(acct, column, value)
    acct.total_points = sum(totals.values())
    acct.updated_at = now
    if unfreeze:
        acct.frozen = False
        acct.frozen_reason = None

    record_audit(
        "points_rebuilt",
        target_type="points_account",
        target_key=account_key(user_id, creator_id),
        meta={"transactions": count, "before": before, "after": {**totals, "total_points": acct.total_points}},
    )
    db.session.commit()
    get_logger().info("rebuilt %s from %s transactions", account_key(user_id, creator_id), count)
    return {"transactions": count, "total_points": int(acct.total_points), **totals}
