from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from engagement.errors import InvalidAward, KeyFrozen, ReconciliationViolation
from engagement.extensions import db
from engagement.models import ALL_CREATORS, PointsAccount, PointTransaction
from engagement.utils import ledger
from engagement.utils.audit import account_key, record_audit
from engagement.utils.calendar import day_of
from engagement.utils.points_config import PointsConfig, current_points_config
from engagement.utils.store import get_logger
from engagement.utils.tx_metadata import TransactionMeta, TransactionType, category_for, coerce_type


@dataclass
class AwardResult:
    accepted: bool
    points_awarded: int
    transaction: PointTransaction | None = None
    duplicate: bool = False


def _scope(creator_id: str | None) -> str:
    return creator_id if creator_id is not None else ALL_CREATORS


def get_account(user_id: str, creator_id: str | None) -> PointsAccount | None:
    return PointsAccount.query.filter_by(user_id=str(user_id), scope=_scope(creator_id)).first()


def _new_account(user_id: str, creator_id: str | None, now: datetime) -> PointsAccount:
    acct = PointsAccount(
        user_id=str(user_id),
        creator_id=creator_id,
        scope=_scope(creator_id),
        total_points=0,
        streak_points=0,
        goal_points=0,
        video_points=0,
        chat_points=0,
        frozen=False,
        created_at=now,
        updated_at=now,
    )
    db.session.add(acct)
    db.session.flush()
    return acct


def lock_account(user_id: str, creator_id: str | None, *, now: datetime | None = None) -> PointsAccount:
    """Row-lock the account for the rest of the transaction, creating it if needed.

    A concurrent creation surfaces as IntegrityError at flush, which the unit of
    work turns into a retryable store error.
    """
    acct = (
        PointsAccount.query.filter_by(user_id=str(user_id), scope=_scope(creator_id))
        .with_for_update()
        .first()
    )
    if acct is None:
        acct = _new_account(user_id, creator_id, now or datetime.utcnow())
    return acct


def _credit_all_creators(user_id: str, column: str, points: int, now: datetime) -> None:
    # SQL-side increment so concurrent creators of one user never lose an update.
    updated = PointsAccount.query.filter_by(user_id=str(user_id), scope=ALL_CREATORS, frozen=False).update(
        {
            PointsAccount.total_points: PointsAccount.total_points + points,
            getattr(PointsAccount, column): getattr(PointsAccount, column) + points,
            PointsAccount.updated_at: now,
        },
        synchronize_session=False,
    )
    if not updated:
        existing = get_account(user_id, None)
        if existing is not None:
            # only a frozen row is skipped by the update above
            raise KeyFrozen(
                f"account {account_key(user_id, None)} is frozen: {existing.frozen_reason or ''}",
                user_id=str(user_id),
                creator_id=None,
            )
        acct = _new_account(user_id, None, now)
        acct.total_points = points
        setattr(acct, column, points)
    db.session.flush()


def check_account(acct: PointsAccount) -> None:
    """Category split and ledger reconciliation for one account row."""
    split = acct.category_sum()
    total = int(acct.total_points or 0)
    if split != total:
        raise ReconciliationViolation(
            f"category split {split} != total {total}",
            user_id=acct.user_id,
            creator_id=acct.creator_id,
            details={"issue": "category_split", "total": total, "category_sum": split},
        )
    ledger_total = ledger.sum_points(acct.user_id, acct.creator_id)
    if ledger_total != total:
        raise ReconciliationViolation(
            f"ledger sum {ledger_total} != total {total}",
            user_id=acct.user_id,
            creator_id=acct.creator_id,
            details={"issue": "ledger_mismatch", "total": total, "ledger_total": ledger_total},
        )


def chat_cap_remaining(user_id: str, creator_id: str, now: datetime, config: PointsConfig) -> int:
    already = ledger.sum_points_for_day(user_id, creator_id, TransactionType.CHAT_MESSAGES, day_of(now))
    return max(0, int(config.CHAT_MESSAGE_DAILY_CAP) - already)


def award(
    user_id: str,
    creator_id: str,
    tx_type: TransactionType | str,
    points: int,
    metadata: TransactionMeta,
    *,
    now: datetime | None = None,
    idempotency_key: str | None = None,
    config: PointsConfig | None = None,
) -> AwardResult:
    """Append a transaction and credit both the creator account and the cross-creator row.

    Runs inside the caller's unit of work and key lock; nothing is committed here.
    """
    tx_type = coerce_type(tx_type)
    now = now or datetime.utcnow()
    config = config or current_points_config()
    if creator_id is None:
        raise InvalidAward("award needs a creator_id")

    existing = ledger.find_by_idempotency_key(idempotency_key)
    if existing:
        return AwardResult(accepted=False, points_awarded=0, transaction=existing, duplicate=True)

    acct = lock_account(user_id, creator_id, now=now)
    if acct.frozen:
        raise KeyFrozen(
            f"account {account_key(user_id, creator_id)} is frozen: {acct.frozen_reason or ''}",
            user_id=str(user_id),
            creator_id=creator_id,
        )

    points = int(points)
    if tx_type is TransactionType.CHAT_MESSAGES:
        remaining = chat_cap_remaining(user_id, creator_id, now, config)
        if remaining <= 0:
            return AwardResult(accepted=False, points_awarded=0)
        points = min(points, remaining)

    txn = ledger.append(user_id, creator_id, tx_type, points, metadata, now=now, idempotency_key=idempotency_key)

    column = category_for(tx_type).value
    acct.total_points = int(acct.total_points or 0) + points
    setattr(acct, column, int(getattr(acct, column) or 0) + points)
    acct.updated_at = now
    db.session.flush()
    _credit_all_creators(user_id, column, points, now)

    check_account(acct)
    get_logger().info("points awarded user=%s creator=%s type=%s points=%s", user_id, creator_id, tx_type.value, points)
    return AwardResult(accepted=True, points_awarded=points, transaction=txn)


def freeze_account(user_id: str, creator_id: str | None, reason: str, details: dict | None = None) -> None:
    """Halt writes for the key and leave an audit trail. Commits on its own."""
    now = datetime.utcnow()
    acct = get_account(user_id, creator_id)
    if acct is None:
        acct = _new_account(user_id, creator_id, now)
    acct.frozen = True
    acct.frozen_reason = (reason or "")[:240]
    acct.updated_at = now
    record_audit(
        "reconciliation_violation",
        target_type="points_account",
        target_key=account_key(user_id, creator_id),
        meta={"reason": reason, **(details or {})},
    )
    db.session.commit()


def unfreeze_account(user_id: str, creator_id: str | None) -> bool:
    acct = get_account(user_id, creator_id)
    if acct is None or not acct.frozen:
        return False
    acct.frozen = False
    acct.frozen_reason = None
    acct.updated_at = datetime.utcnow()
    record_audit("account_unfrozen", target_type="points_account", target_key=account_key(user_id, creator_id))
    db.session.commit()
    return True


def total_user_points(user_id: str) -> int:
    acct = get_account(user_id, None)
    return int(acct.total_points or 0) if acct else 0
