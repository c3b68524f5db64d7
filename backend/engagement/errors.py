from __future__ import annotations


class EngagementError(Exception):
    """Base class for engagement engine failures."""


class TransientStoreError(EngagementError):
    """Connection or timeout against the store. The whole operation can be retried."""


class NotConfigured(EngagementError):
    """No store configured; the engine degrades to a no-op."""


class InvalidAward(EngagementError):
    """Award request that can never succeed (bad type, non-positive points)."""


class ReconciliationViolation(EngagementError):
    """An account no longer matches its ledger or its category split.

    Fatal for the key: writes are halted until an operator rebuilds or unfreezes it.
    """

    def __init__(self, message: str, *, user_id: str | None = None, creator_id: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.user_id = user_id
        self.creator_id = creator_id
        self.details = details or {}


class KeyFrozen(ReconciliationViolation):
    """Write attempted against an account frozen by a previous violation."""
