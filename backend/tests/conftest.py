from datetime import datetime, timedelta

import pytest

from engagement import create_app
from engagement.extensions import db

BASE = datetime(2026, 3, 10, 12, 0, 0)


def _make_app(**overrides):
    cfg = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "ENGAGEMENT_STORE_ENABLED": True,
        "ENGAGEMENT_ADMIN_TOKEN": "admin-secret",
        "LEADERBOARD_EXCLUDED_USERS": [],
        "ENGAGEMENT_POINTS_JSON": "",
        "ENGAGEMENT_MILESTONE_POLICY": "exact",
    }
    cfg.update(overrides)
    return create_app(cfg)


@pytest.fixture
def make_app():
    return _make_app


@pytest.fixture
def app():
    app = _make_app()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def day():
    """day(n) -> noon UTC n days after the fixed base date."""
    def _day(n: int = 0, hours: int = 0) -> datetime:
        return BASE + timedelta(days=n, hours=hours)
    return _day
