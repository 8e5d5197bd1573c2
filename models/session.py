from datetime import datetime
from models.db import db

class UserSession(db.Model):
    __tablename__ = "user_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    device_name = db.Column(db.String(120), nullable=True)
    location = db.Column(db.String(120), nullable=True)

    start_time = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_activity = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    # is_active is true exactly when end_time is null
    end_time = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    user = db.relationship("User", back_populates="sessions")

    def end(self, when=None):
        if not self.is_active:
            return
        self.is_active = False
        self.end_time = when or datetime.utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ip_address": self.ip_address,
            "device_name": self.device_name,
            "location": self.location,
            "start_time": self.start_time.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "is_active": self.is_active,
        }
