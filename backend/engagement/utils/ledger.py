from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func

from engagement.errors import InvalidAward
from engagement.extensions import db
from engagement.models import PointTransaction
from engagement.utils.calendar import day_of
from engagement.utils.tx_metadata import TransactionMeta, TransactionType, check_metadata, coerce_type, dump_metadata


def find_by_idempotency_key(key: str | None) -> PointTransaction | None:
    if not key:
        return None
    return PointTransaction.query.filter_by(idempotency_key=str(key)[:160]).first()


def append(
    user_id: str,
    creator_id: str | None,
    tx_type: TransactionType | str,
    points: int,
    metadata: TransactionMeta,
    *,
    now: datetime,
    idempotency_key: str | None = None,
) -> PointTransaction:
    """Add one immutable ledger row to the current session.

    The caller commits it together with the account update. A known idempotency
    key returns the stored row instead of writing a second one.
    """
    tx_type = coerce_type(tx_type)
    if int(points) <= 0:
        raise InvalidAward(f"{tx_type.value} needs points > 0, got {points}")
    check_metadata(tx_type, metadata)

    existing = find_by_idempotency_key(idempotency_key)
    if existing:
        return existing

    txn = PointTransaction(
        user_id=str(user_id),
        creator_id=creator_id,
        points=int(points),
        transaction_type=tx_type.value,
        activity_date=day_of(now),
        meta=dump_metadata(metadata),
        idempotency_key=str(idempotency_key)[:160] if idempotency_key else None,
        created_at=now,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def sum_points(user_id: str, creator_id: str | None) -> int:
    """Ledger total for one creator, or across every creator when creator_id is None."""
    q = db.session.query(func.coalesce(func.sum(PointTransaction.points), 0)).filter(
        PointTransaction.user_id == str(user_id)
    )
    if creator_id is not None:
        q = q.filter(PointTransaction.creator_id == creator_id)
    return int(q.scalar() or 0)


def sum_points_for_day(user_id: str, creator_id: str, tx_type: TransactionType | str, day: date) -> int:
    tx_type = coerce_type(tx_type)
    total = db.session.query(func.coalesce(func.sum(PointTransaction.points), 0)).filter(
        PointTransaction.user_id == str(user_id),
        PointTransaction.creator_id == creator_id,
        PointTransaction.transaction_type == tx_type.value,
        PointTransaction.activity_date == day,
    ).scalar()
    return int(total or 0)


def iter_transactions(user_id: str, creator_id: str | None):
    """Replay order: oldest first."""
    q = PointTransaction.query.filter_by(user_id=str(user_id))
    if creator_id is not None:
        q = q.filter_by(creator_id=creator_id)
    return q.order_by(PointTransaction.created_at.asc(), PointTransaction.id.asc()).yield_per(500)


def recent_transactions(user_id: str, creator_id: str | None = None, limit: int = 20) -> list[PointTransaction]:
    q = PointTransaction.query.filter_by(user_id=str(user_id))
    if creator_id is not None:
        q = q.filter_by(creator_id=creator_id)
    return q.order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc()).limit(int(limit)).all()
