from datetime import datetime

from engagement.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(64), nullable=False)
    target_type = db.Column(db.String(64), nullable=True)
    target_key = db.Column(db.String(200), nullable=True)
    meta = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "action": self.action,
            "target_type": self.target_type or "",
            "target_key": self.target_key or "",
            "meta": self.meta or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
