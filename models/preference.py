from datetime import datetime
from models.db import db


class UserPreference(db.Model):
    __tablename__ = "user_preferences"
    __table_args__ = (
        db.UniqueConstraint("user_id", "key", name="uq_user_preference_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.JSON, nullable=True)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="preferences")

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
