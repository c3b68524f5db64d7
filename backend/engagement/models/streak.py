from datetime import datetime

from engagement.extensions import db


class StreakRecord(db.Model):
    __tablename__ = "streaks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    creator_id = db.Column(db.String(64), nullable=False, index=True)

    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)

    last_activity_date = db.Column(db.Date, nullable=True)
    last_video_date = db.Column(db.Date, nullable=True)
    last_chat_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "creator_id", name="uq_streaks_user_creator"),
    )

    def effective_streak(self, today) -> int:
        """Stored streak, or 0 once more than a day has passed without activity."""
        if not self.last_activity_date:
            return 0
        if (today - self.last_activity_date).days > 1:
            return 0
        return int(self.current_streak or 0)

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "creator_id": self.creator_id,
            "current_streak": int(self.current_streak or 0),
            "longest_streak": int(self.longest_streak or 0),
            "last_activity_date": self.last_activity_date.isoformat() if self.last_activity_date else None,
            "last_video_date": self.last_video_date.isoformat() if self.last_video_date else None,
            "last_chat_date": self.last_chat_date.isoformat() if self.last_chat_date else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
