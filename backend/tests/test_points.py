import pytest

from engagement.errors import InvalidAward, KeyFrozen
from engagement.extensions import db
from engagement.jobs.points_reconciler import reconcile_accounts
from engagement.models import AuditLog, PointsAccount, PointTransaction
from engagement.services import engine
from engagement.utils import ledger
from engagement.utils import points as points_acct
from engagement.utils.store import unit_of_work
from engagement.utils.tx_metadata import (
    ChatMessagesMeta,
    GoalCompletedMeta,
    TransactionType,
    VideoCompletedMeta,
)


def _award(user, creator, tx_type, pts, meta, now, key=None):
    with unit_of_work():
        return points_acct.award(user, creator, tx_type, pts, meta, now=now, idempotency_key=key)


def test_award_credits_category_and_cross_creator_row(app, day):
    _award("u1", "c1", TransactionType.GOAL_COMPLETED, 100, GoalCompletedMeta(goal_id="g1"), day(0))
    _award("u1", "c2", TransactionType.VIDEO_COMPLETED, 20, VideoCompletedMeta(video_id="v1"), day(0))

    c1 = points_acct.get_account("u1", "c1")
    assert c1.total_points == 100
    assert c1.goal_points == 100
    assert c1.category_sum() == c1.total_points

    overall = points_acct.get_account("u1", None)
    assert overall.creator_id is None
    assert overall.total_points == 120
    assert overall.goal_points == 100
    assert overall.video_points == 20
    assert points_acct.total_user_points("u1") == 120


def test_ledger_sum_matches_account_total(app, day):
    for i in range(5):
        _award("u1", "c1", TransactionType.GOAL_COMPLETED, 10 + i, GoalCompletedMeta(goal_id=f"g{i}"), day(i))
    assert ledger.sum_points("u1", "c1") == points_acct.get_account("u1", "c1").total_points == 60
    assert ledger.sum_points("u1", None) == points_acct.get_account("u1", None).total_points


def test_non_positive_points_rejected(app, day):
    with pytest.raises(InvalidAward):
        _award("u1", "c1", TransactionType.GOAL_COMPLETED, 0, GoalCompletedMeta(goal_id="g"), day(0))
    assert PointTransaction.query.count() == 0


def test_metadata_must_match_type(app, day):
    with pytest.raises(InvalidAward):
        _award("u1", "c1", TransactionType.GOAL_COMPLETED, 10, VideoCompletedMeta(video_id="v"), day(0))


def test_metadata_round_trips_through_ledger_row(app, day):
    res = _award("u1", "c1", TransactionType.CHAT_MESSAGES, 3, ChatMessagesMeta(message_count=3, requested_points=3), day(0))
    row = db.session.get(PointTransaction, res.transaction.id)
    meta = row.metadata_obj()
    assert meta == ChatMessagesMeta(message_count=3, requested_points=3)
    assert row.to_dict()["metadata"]["message_count"] == 3


def test_idempotency_key_writes_once(app, day):
    first = _award("u1", "c1", TransactionType.VIDEO_COMPLETED, 20, VideoCompletedMeta(video_id="v"), day(0), key="vc:v")
    second = _award("u1", "c1", TransactionType.VIDEO_COMPLETED, 20, VideoCompletedMeta(video_id="v"), day(0), key="vc:v")
    assert first.accepted and not first.duplicate
    assert not second.accepted and second.duplicate
    assert points_acct.get_account("u1", "c1").total_points == 20
    assert PointTransaction.query.count() == 1


def test_chat_cap_single_large_request(app, day):
    res = _award("u1", "c1", TransactionType.CHAT_MESSAGES, 15, ChatMessagesMeta(message_count=15, requested_points=15), day(0))
    assert res.accepted
    assert res.points_awarded == 10
    assert ledger.sum_points_for_day("u1", "c1", TransactionType.CHAT_MESSAGES, day(0).date()) == 10


def test_chat_cap_many_small_requests(app, day):
    results = [
        _award("u1", "c1", TransactionType.CHAT_MESSAGES, 1, ChatMessagesMeta(message_count=1, requested_points=1), day(0, hours=0))
        for _ in range(15)
    ]
    assert sum(r.points_awarded for r in results) == 10
    assert [r.accepted for r in results].count(False) == 5
    assert points_acct.get_account("u1", "c1").chat_points == 10


def test_chat_cap_resets_next_day(app, day):
    _award("u1", "c1", TransactionType.CHAT_MESSAGES, 15, ChatMessagesMeta(message_count=15), day(0))
    res = _award("u1", "c1", TransactionType.CHAT_MESSAGES, 4, ChatMessagesMeta(message_count=4), day(1))
    assert res.points_awarded == 4


def test_chat_cap_is_per_creator(app, day):
    _award("u1", "c1", TransactionType.CHAT_MESSAGES, 10, ChatMessagesMeta(message_count=10), day(0))
    res = _award("u1", "c2", TransactionType.CHAT_MESSAGES, 10, ChatMessagesMeta(message_count=10), day(0))
    assert res.points_awarded == 10


def test_frozen_account_refuses_writes(app, day):
    _award("u1", "c1", TransactionType.GOAL_COMPLETED, 100, GoalCompletedMeta(goal_id="g1"), day(0))
    points_acct.freeze_account("u1", "c1", "manual", {"issue": "test"})

    with pytest.raises(KeyFrozen):
        _award("u1", "c1", TransactionType.GOAL_COMPLETED, 100, GoalCompletedMeta(goal_id="g2"), day(0))
    assert points_acct.get_account("u1", "c1").total_points == 100
    assert AuditLog.query.filter_by(action="reconciliation_violation").count() == 1

    assert points_acct.unfreeze_account("u1", "c1") is True
    res = _award("u1", "c1", TransactionType.GOAL_COMPLETED, 100, GoalCompletedMeta(goal_id="g2"), day(0))
    assert res.accepted


def test_category_split_holds_for_every_account(app, day):
    _award("u1", "c1", TransactionType.GOAL_COMPLETED, 100, GoalCompletedMeta(goal_id="g1"), day(0))
    _award("u1", "c1", TransactionType.CHAT_MESSAGES, 4, ChatMessagesMeta(message_count=4), day(0))
    _award("u1", "c2", TransactionType.VIDEO_COMPLETED, 20, VideoCompletedMeta(video_id="v"), day(0))
    for acct in PointsAccount.query.all():
        assert acct.category_sum() == acct.total_points


def test_frozen_cross_creator_row_refuses_writes(app, day):
    engine.record_video_completion("u1", "c1", video_id="v1", now=day(0))
    overall = points_acct.get_account("u1", None)
    overall.total_points += 3
    db.session.commit()
    reconcile_accounts()
    assert points_acct.get_account("u1", None).frozen is True

    with pytest.raises(KeyFrozen):
        _award("u1", "c2", TransactionType.VIDEO_COMPLETED, 20, VideoCompletedMeta(video_id="v2"), day(0))
    assert engine.record_video_completion("u1", "c2", video_id="v3", now=day(0)) == 0

    assert points_acct.get_account("u1", None).total_points == 23
    assert PointTransaction.query.filter_by(creator_id="c2").count() == 0
