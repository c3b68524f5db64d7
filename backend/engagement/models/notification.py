from datetime import datetime

from engagement.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    creator_id = db.Column(db.String(64), nullable=True)

    kind = db.Column(db.String(32), nullable=False, default="points_earned")  # points_earned | badge_earned | streak_milestone
    title = db.Column(db.String(160), nullable=True)
    message = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(24), nullable=False, default="queued")  # queued | seen

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    meta = db.Column(db.Text, nullable=True)  # JSON string

    def meta_dict(self):
        raw = (self.meta or "").strip()
        if not raw:
            return {}
        try:
            import json
            d = json.loads(raw)
            return d if isinstance(d, dict) else {}
        except ValueError:
            return {}

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "creator_id": self.creator_id,
            "kind": self.kind,
            "title": self.title or "",
            "message": self.message or "",
            "status": self.status or "queued",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "meta": self.meta_dict(),
        }
