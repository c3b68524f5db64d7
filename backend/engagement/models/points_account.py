from datetime import datetime

from engagement.extensions import db

# scope value of the per-user row that aggregates every creator
ALL_CREATORS = "*"


class PointsAccount(db.Model):
    __tablename__ = "points_accounts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    creator_id = db.Column(db.String(64), nullable=True, index=True)  # NULL on the cross-creator row
    scope = db.Column(db.String(64), nullable=False)

    total_points = db.Column(db.Integer, nullable=False, default=0)
    streak_points = db.Column(db.Integer, nullable=False, default=0)
    goal_points = db.Column(db.Integer, nullable=False, default=0)
    video_points = db.Column(db.Integer, nullable=False, default=0)
    chat_points = db.Column(db.Integer, nullable=False, default=0)

    frozen = db.Column(db.Boolean, nullable=False, default=False)
    frozen_reason = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "scope", name="uq_points_accounts_user_scope"),
        db.Index("idx_points_accounts_scope_total", "scope", "total_points"),
    )

    def category_sum(self) -> int:
        return (
            int(self.streak_points or 0)
            + int(self.goal_points or 0)
            + int(self.video_points or 0)
            + int(self.chat_points or 0)
        )

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "creator_id": self.creator_id,
            "total_points": int(self.total_points or 0),
            "streak_points": int(self.streak_points or 0),
            "goal_points": int(self.goal_points or 0),
            "video_points": int(self.video_points or 0),
            "chat_points": int(self.chat_points or 0),
            "frozen": bool(self.frozen),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
