from datetime import datetime

from engagement.extensions import db


class UserBadge(db.Model):
    __tablename__ = "user_badges"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    creator_id = db.Column(db.String(64), nullable=False)
    badge_type = db.Column(db.String(32), nullable=False)  # streak_3 | streak_7 | streak_30 | consistent
    earned_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "creator_id", "badge_type", name="uq_user_badges_user_creator_type"),
    )

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "creator_id": self.creator_id,
            "badge_type": self.badge_type,
            "earned_at": self.earned_at.isoformat() if self.earned_at else None,
        }
