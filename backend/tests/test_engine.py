import pytest

from engagement.errors import InvalidAward, KeyFrozen, NotConfigured, ReconciliationViolation, TransientStoreError
from engagement.extensions import db
from engagement.models import AuditLog, DailyActivityRecord, Notification, PointsAccount, PointTransaction
from engagement.services import engine
from engagement.utils import ledger
from engagement.utils import points as points_acct


def _types(user, creator):
    rows = PointTransaction.query.filter_by(user_id=user, creator_id=creator).order_by(PointTransaction.id.asc()).all()
    return [r.transaction_type for r in rows]


def test_first_video_activity_scenario(app, day):
    out = engine.record_activity("u1", "c1", "video", {"video_watch_seconds": 42}, now=day(0))

    assert out.streak["current_streak"] == 1
    assert out.streak["longest_streak"] == 1
    assert out.points_earned == 35
    assert sorted(_types("u1", "c1")) == ["first_activity", "video_watched"]
    assert points_acct.get_account("u1", "c1").total_points == 35
    assert points_acct.get_account("u1", "c1").streak_points == 25
    assert points_acct.get_account("u1", "c1").video_points == 10
    row = DailyActivityRecord.query.filter_by(user_id="u1").one()
    assert row.watched_video and row.videos_watched == 1 and row.watch_seconds == 42


def test_day_seven_scenario(app, day):
    for n in range(6):
        engine.apply_activity("u1", "c1", "goal", now=day(n))
    before = points_acct.get_account("u1", "c1").total_points

    out = engine.apply_activity("u1", "c1", "goal", now=day(6))

    assert out.streak["current_streak"] == 7
    assert out.milestones == [7]
    assert out.badges == ["streak_7"]
    assert out.points_earned == 5 + 50 + 100
    assert points_acct.get_account("u1", "c1").total_points == before + 155
    milestone = PointTransaction.query.filter_by(transaction_type="streak_milestone").one()
    assert milestone.points == 50
    assert milestone.to_dict()["metadata"] == {"milestone": 7}


def test_crossing_policy_awards_skipped_milestone(make_app, day):
    app = make_app(ENGAGEMENT_MILESTONE_POLICY="crossing")
    with app.app_context():
        db.create_all()
        for n in range(7):
            engine.apply_activity("u1", "c1", "goal", now=day(n))
        assert PointTransaction.query.filter_by(transaction_type="streak_milestone").count() == 1
        db.drop_all()


def test_chat_session_awarded_once_per_day(app, day):
    first = engine.record_activity("u1", "c1", "chat", {"message_count": 2}, now=day(0))
    second = engine.record_activity("u1", "c1", "chat", {"message_count": 3}, now=day(0, hours=1))

    assert first.points_earned == 25 + 5
    assert second.points_earned == 0
    assert _types("u1", "c1").count("chat_session") == 1
    assert DailyActivityRecord.query.filter_by(user_id="u1").one().messages_sent == 5


def test_no_chat_session_when_video_opened_the_day(app, day):
    engine.record_activity("u1", "c1", "video", now=day(0))
    out = engine.record_activity("u1", "c1", "chat", now=day(0, hours=1))
    assert out.points_earned == 0
    assert _types("u1", "c1").count("chat_session") == 0


def test_chat_opening_a_later_day_pays_session(app, day):
    engine.record_activity("u1", "c1", "video", now=day(0))
    out = engine.record_activity("u1", "c1", "chat", now=day(1))
    assert out.points_earned == 5 + 5
    assert _types("u1", "c1").count("chat_session") == 1


def test_video_activity_token_is_idempotent(app, day):
    engine.record_activity("u1", "c1", "video", now=day(0), idempotency_key="evt-1")
    again = engine.record_activity("u1", "c1", "video", now=day(0), idempotency_key="evt-1")

    assert again.points_earned == 0
    assert _types("u1", "c1").count("video_watched") == 1
    assert DailyActivityRecord.query.filter_by(user_id="u1").one().videos_watched == 1


def test_video_completion_once_per_video(app, day):
    assert engine.record_video_completion("u1", "c1", video_id="v1", now=day(0)) == 20
    assert engine.record_video_completion("u1", "c1", video_id="v1", now=day(0)) == 0
    assert engine.record_video_completion("u1", "c1", video_id="v2", now=day(0)) == 20
    assert points_acct.get_account("u1", "c1").video_points == 40


def test_chat_messages_respect_daily_cap(app, day):
    assert engine.record_chat_messages("u1", "c1", 6, now=day(0)) == 6
    assert engine.record_chat_messages("u1", "c1", 6, now=day(0)) == 4
    assert engine.record_chat_messages("u1", "c1", 6, now=day(0)) == 0
    assert engine.record_chat_messages("u1", "c1", 0, now=day(0)) == 0
    assert ledger.sum_points_for_day("u1", "c1", "chat_messages", day(0).date()) == 10


def test_goal_completion_counts_as_activity_and_pays_once(app, day):
    first = engine.record_goal_completion("u1", "c1", "goal-9", now=day(0))
    again = engine.record_goal_completion("u1", "c1", "goal-9", now=day(0))

    assert first == 25 + 100
    assert again == 0
    acct = points_acct.get_account("u1", "c1")
    assert acct.goal_points == 100
    assert acct.total_points == 125
    assert DailyActivityRecord.query.filter_by(user_id="u1").one().completed_goal


def test_strict_calls_validate_input(app, day):
    with pytest.raises(InvalidAward):
        engine.apply_activity("u1", "c1", "dance", now=day(0))
    with pytest.raises(NotConfigured):
        engine.apply_activity("", "c1", "video", now=day(0))
    with pytest.raises(InvalidAward):
        engine.apply_goal_completion("u1", "c1", " ", now=day(0))


def test_best_effort_calls_never_raise(app, day):
    assert engine.record_activity("u1", "c1", "dance", now=day(0)).points_earned == 0
    assert engine.record_activity("", "c1", "video", now=day(0)).points_earned == 0
    assert engine.record_goal_completion("u1", "c1", "", now=day(0)) == 0
    assert PointTransaction.query.count() == 0


def test_not_configured_without_app_context():
    out = engine.record_activity("u1", "c1", "video")
    assert out.points_earned == 0
    assert out.streak is None
    assert engine.get_leaderboard("c1") == []
    assert engine.get_total_user_points("u1") == 0


def test_store_disabled_is_a_no_op(make_app, day):
    app = make_app(ENGAGEMENT_STORE_ENABLED=False)
    with app.app_context():
        db.create_all()
        assert engine.record_video_completion("u1", "c1", video_id="v", now=day(0)) == 0
        summary = engine.get_engagement_summary("u1", "c1", now=day(0))
        assert summary["streak"] is None and summary["badges"] == []
        assert PointTransaction.query.count() == 0
        db.drop_all()


def test_transient_errors_are_retried(app, day, monkeypatch):
    calls = {"n": 0}
    real = engine.apply_video_completion

    def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] < 3:
            raise TransientStoreError("database is locked")
        return real(*args, **kwargs)

    monkeypatch.setattr(engine, "apply_video_completion", flaky)
    assert engine.record_video_completion("u1", "c1", video_id="v", now=day(0)) == 20
    assert calls["n"] == 3


def test_transient_errors_give_up_after_retries(app, day, monkeypatch):
    app.config["ENGAGEMENT_STORE_RETRIES"] = 1
    calls = {"n": 0}

    def always(*args, **kwargs):
        calls["n"] += 1
        raise TransientStoreError("gone")

    monkeypatch.setattr(engine, "apply_video_completion", always)
    assert engine.record_video_completion("u1", "c1", video_id="v", now=day(0)) == 0
    assert calls["n"] == 2


def test_reconciliation_violation_freezes_account(app, day):
    engine.record_goal_completion("u1", "c1", "g1", now=day(0))
    acct = points_acct.get_account("u1", "c1")
    acct.total_points += 7
    acct.goal_points += 7
    db.session.commit()

    assert engine.record_video_completion("u1", "c1", video_id="v", now=day(0)) == 0

    acct = points_acct.get_account("u1", "c1")
    assert acct.frozen is True
    assert acct.total_points == 132
    audit = AuditLog.query.filter_by(action="reconciliation_violation").one()
    assert audit.target_key == "u1:c1"
    assert "ledger_mismatch" in audit.meta

    # frozen: later writes are dropped too
    assert engine.record_goal_completion("u1", "c1", "g2", now=day(0)) == 0
    assert PointTransaction.query.filter_by(transaction_type="video_completed").count() == 0


def test_notifications_queued_and_popped(app, day):
    engine.record_activity("u1", "c1", "video", now=day(0))
    items = engine.pop_notifications("u1")
    assert [n["kind"] for n in items] == ["points_earned"]
    assert items[0]["meta"]["points"] == 35
    assert engine.pop_notifications("u1") == []
    assert Notification.query.filter_by(status="seen").count() == 1


def test_engagement_summary(app, day):
    for n in range(3):
        engine.record_activity("u1", "c1", "video", now=day(n))
    engine.record_activity("u2", "c1", "video", now=day(2))

    summary = engine.get_engagement_summary("u1", "c1", now=day(2))
    assert summary["streak"]["current_streak"] == 3
    assert summary["streak"]["status"] == "3 day streak! Keep it up!"
    assert summary["points"]["total_points"] == 25 + 30 + 10 + 75
    assert summary["rank"]["rank"] == 1
    assert summary["rank"]["total_users"] == 2
    assert [b["badge_type"] for b in summary["badges"]] == ["streak_3"]
    assert summary["badges"][0]["name"] == "On Fire"
    assert summary["level"] == {"level": 2, "next_level_at": 250}
    assert summary["recent"]["active_days"] == 3

    lapsed = engine.get_engagement_summary("u1", "c1", now=day(6))
    assert lapsed["streak"]["current_streak"] == 0
    assert lapsed["streak"]["longest_streak"] == 3


def test_reads_for_user(app, day):
    engine.record_activity("u1", "c1", "video", now=day(0))
    engine.record_video_completion("u1", "c2", video_id="v", now=day(0))

    txns = engine.get_recent_transactions("u1")
    assert len(txns) == 3
    assert {t["creator_id"] for t in txns} == {"c1", "c2"}
    assert len(engine.get_recent_transactions("u1", "c2")) == 1
    assert engine.get_total_user_points("u1") == 55
    assert engine.get_user_badges("u1", "c1") == []
    assert PointsAccount.query.filter_by(user_id="u1").count() == 3


def test_strict_call_freezes_account_on_violation(app, day):
    engine.apply_video_completion("u1", "c1", video_id="v1", now=day(0))
    acct = points_acct.get_account("u1", "c1")
    acct.video_points += 4
    acct.total_points += 4
    db.session.commit()

    with pytest.raises(ReconciliationViolation):
        engine.apply_video_completion("u1", "c1", video_id="v2", now=day(0))

    assert points_acct.get_account("u1", "c1").frozen is True
    assert AuditLog.query.filter_by(action="reconciliation_violation", target_key="u1:c1").count() == 1
    with pytest.raises(KeyFrozen):
        engine.apply_video_completion("u1", "c1", video_id="v3", now=day(0))
