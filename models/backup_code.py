from models.db import db


class BackupCode(db.Model):
    __tablename__ = "two_factor_backup_codes"
    __table_args__ = (
        db.UniqueConstraint("user_id", "code", name="uq_backup_code_user_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = db.Column(db.String(32), nullable=False)
    used = db.Column(db.Boolean, default=False, nullable=False)

    user = db.relationship("User", back_populates="backup_codes")
