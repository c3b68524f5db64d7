from engagement.models import PointTransaction, StreakRecord, UserBadge
from engagement.services import engine
from engagement.utils import badges
from engagement.utils import points as points_acct
from engagement.utils.store import unit_of_work


def _streak(n):
    return StreakRecord(user_id="u", creator_id="c", current_streak=n, longest_streak=n)


def test_evaluate_streak_thresholds():
    assert badges.evaluate(_streak(2), 2, set()) == []
    assert badges.evaluate(_streak(3), 3, set()) == ["streak_3"]
    assert badges.evaluate(_streak(7), 7, {"streak_3"}) == ["streak_7"]
    assert badges.evaluate(_streak(30), 30, {"streak_3", "streak_7"}) == ["streak_30", "consistent"]


def test_evaluate_consistent_needs_ten_check_ins():
    assert badges.evaluate(_streak(1), 9, set()) == []
    assert badges.evaluate(_streak(1), 10, set()) == ["consistent"]
    assert badges.evaluate(None, 12, {"consistent"}) == []


def test_award_badge_is_unique_with_single_transaction(app, day):
    with unit_of_work():
        assert badges.award_badge("u1", "c1", "streak_7", now=day(0)) is True
    with unit_of_work():
        assert badges.award_badge("u1", "c1", "streak_7", now=day(1)) is False

    assert UserBadge.query.filter_by(user_id="u1", creator_id="c1", badge_type="streak_7").count() == 1
    assert PointTransaction.query.filter_by(user_id="u1", transaction_type="badge_earned").count() == 1
    acct = points_acct.get_account("u1", "c1")
    assert acct.total_points == 100
    assert acct.streak_points == 100


def test_consistent_badge_from_ten_separate_days(app, day):
    for n in range(0, 20, 2):
        out = engine.apply_activity("u1", "c1", "video", now=day(n))
    assert out.badges == ["consistent"]
    assert badges.earned_badge_types("u1", "c1") == {"consistent"}


def test_badge_info_for_known_and_unknown():
    assert badges.badge_info("streak_7")["name"] == "Week Warrior"
    assert badges.badge_info("mystery") == {"name": "mystery", "description": ""}
