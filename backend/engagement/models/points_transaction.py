from datetime import datetime

from engagement.extensions import db


class PointTransaction(db.Model):
    __tablename__ = "points_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    creator_id = db.Column(db.String(64), nullable=True, index=True)

    points = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    activity_date = db.Column(db.Date, nullable=False)

    meta = db.Column(db.Text, nullable=True)  # JSON string, shape depends on transaction_type
    idempotency_key = db.Column(db.String(160), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("points > 0", name="ck_points_transactions_positive"),
        db.Index("idx_points_transactions_user_creator_type_date", "user_id", "creator_id", "transaction_type", "activity_date"),
    )

    def metadata_obj(self):
        from engagement.utils.tx_metadata import parse_metadata
        return parse_metadata(self.transaction_type, self.meta)

    def to_dict(self):
        import json
        try:
            meta = json.loads(self.meta or "{}")
        except ValueError:
            meta = {}
        return {
            "id": int(self.id),
            "user_id": self.user_id,
            "creator_id": self.creator_id,
            "points": int(self.points or 0),
            "transaction_type": self.transaction_type,
            "activity_date": self.activity_date.isoformat() if self.activity_date else None,
            "metadata": meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
