import json
from flask import g, request
from models import db
from models.audit_log import AuditLog
from security.session import client_ip

def log_event(action: str, user_id=None, metadata=None):
    """
    Writes and commits an audit row; call it after the unit of work it describes.
    Never pass passwords, OTP codes or backup codes in metadata.
    """
    user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        user_id=user_id,
        action=action,
        session_id=getattr(g, "session_id", None),
        ip=client_ip(),
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata) if metadata else None
    )
    db.session.add(row)
    db.session.commit()
