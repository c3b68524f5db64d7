from datetime import datetime

from engagement.extensions import db


class UserProfile(db.Model):
    """Display data pushed by the identity provider; never required for accounting."""

    __tablename__ = "user_profiles"

    user_id = db.Column(db.String(128), primary_key=True)
    display_name = db.Column(db.String(120), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)

    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
        }
