from __future__ import annotations

import logging
from contextlib import contextmanager

from flask import current_app, has_app_context
from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError

from engagement.errors import NotConfigured, TransientStoreError
from engagement.extensions import db


def get_logger() -> logging.Logger:
    if has_app_context():
        return current_app.logger
    return logging.getLogger("engagement")


def store_configured() -> bool:
    if not has_app_context():
        return False
    if not current_app.config.get("ENGAGEMENT_STORE_ENABLED", True):
        return False
    return "sqlalchemy" in current_app.extensions


def require_store() -> None:
    if not store_configured():
        raise NotConfigured("No engagement store configured")


@contextmanager
def unit_of_work():
    """One atomic write: commit on success, rollback on any error."""
    try:
        yield db.session
        db.session.commit()
    except (OperationalError, DisconnectionError, IntegrityError) as e:
        # IntegrityError here means a concurrent writer created the same row first
        db.session.rollback()
        raise TransientStoreError(str(e)) from e
    except Exception:
        db.session.rollback()
        raise
