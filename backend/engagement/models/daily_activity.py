from datetime import datetime

from engagement.extensions import db


class DailyActivityRecord(db.Model):
    __tablename__ = "daily_activity"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    creator_id = db.Column(db.String(64), nullable=False, index=True)
    activity_date = db.Column(db.Date, nullable=False, index=True)

    watched_video = db.Column(db.Boolean, nullable=False, default=False)
    chatted = db.Column(db.Boolean, nullable=False, default=False)
    completed_goal = db.Column(db.Boolean, nullable=False, default=False)

    videos_watched = db.Column(db.Integer, nullable=False, default=0)
    messages_sent = db.Column(db.Integer, nullable=False, default=0)
    watch_seconds = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "creator_id", "activity_date", name="uq_daily_activity_user_creator_date"),
    )

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "creator_id": self.creator_id,
            "activity_date": self.activity_date.isoformat() if self.activity_date else None,
            "watched_video": bool(self.watched_video),
            "chatted": bool(self.chatted),
            "completed_goal": bool(self.completed_goal),
            "videos_watched": int(self.videos_watched or 0),
            "messages_sent": int(self.messages_sent or 0),
            "watch_seconds": int(self.watch_seconds or 0),
        }
