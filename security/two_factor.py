"""
TOTP two-factor authentication and one-time backup codes.

Per-user state:

    DISABLED --begin_setup--> PENDING_SETUP --confirm_setup--> ENABLED
    ENABLED --disable--> DISABLED

PENDING_SETUP is "secret stored, flag still false"; calling begin_setup again
replaces the pending secret. None of these functions commit; callers run them
inside models.unit_of_work so the user row and its backup codes change together.
"""
import base64
import io
import secrets
from typing import List, Optional

import pyotp
import qrcode
from flask import current_app

from models import db
from models.backup_code import BackupCode
from models.user import User
from utils.errors import AlreadyEnabled, InvalidCode

DISABLED = "DISABLED"
PENDING_SETUP = "PENDING_SETUP"
ENABLED = "ENABLED"


def two_factor_state(user: User) -> str:
    if user.two_factor_enabled:
        return ENABLED
    if user.two_factor_secret:
        return PENDING_SETUP
    return DISABLED


def _valid_window() -> int:
    return int(current_app.config.get("TWO_FACTOR_VALID_WINDOW", 1))


def _check_totp(secret: Optional[str], code: Optional[str]) -> bool:
    if not secret or not code:
        return False
    code = str(code).strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=_valid_window())


def _qr_data_url(uri: str) -> str:
    img = qrcode.make(uri)
    buf = io.BytesIO()
    img.save(buf)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def begin_setup(user: User) -> dict:
    if user.two_factor_enabled:
        raise AlreadyEnabled()

    secret = pyotp.random_base32()
    user.two_factor_secret = secret
    db.session.flush()

    issuer = current_app.config.get("TWO_FACTOR_ISSUER", "PlacesDirectory")
    uri = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=issuer)
    return {
        "otpauth_url": uri,
        "qr_code_url": _qr_data_url(uri),
    }


def generate_backup_codes(user: User) -> List[str]:
    """Replaces the user's backup codes with a fresh batch and returns them in plaintext."""
    count = int(current_app.config.get("BACKUP_CODE_COUNT", 10))

    BackupCode.query.filter_by(user_id=user.id).delete(synchronize_session=False)

    codes: List[str] = []
    while len(codes) < count:
        code = secrets.token_hex(4)
        if code not in codes:
            codes.append(code)

    db.session.add_all(BackupCode(user_id=user.id, code=c, used=False) for c in codes)
    db.session.flush()
    return codes


def confirm_setup(user: User, submitted_code: Optional[str]) -> List[str]:
    """
    Turns on 2FA once the authenticator app proves it holds the pending secret.
    The returned codes are shown once; only this response ever carries them.
    """
    if not user.two_factor_secret:
        raise InvalidCode("Two-factor authentication not set up")
    if not _check_totp(user.two_factor_secret, submitted_code):
        raise InvalidCode()

    codes = generate_backup_codes(user)
    user.two_factor_enabled = True
    db.session.flush()
    return codes


def consume_backup_code(user: User, code: Optional[str]) -> bool:
    if not code:
        return False
    # single conditional UPDATE: two concurrent redemptions cannot both match used = false
    updated = (
        BackupCode.query
        .filter(
            BackupCode.user_id == user.id,
            BackupCode.code == code.strip(),
            BackupCode.used.is_(False),
        )
        .update({BackupCode.used: True}, synchronize_session=False)
    )
    return updated == 1


def verify_login(user: User, token: Optional[str] = None, backup_code: Optional[str] = None) -> bool:
    """Second-factor check at login. Callers map False to InvalidCredentials."""
    if token:
        return _check_totp(user.two_factor_secret, token)
    if backup_code:
        return consume_backup_code(user, backup_code)
    return False


def disable(user: User) -> None:
    user.two_factor_enabled = False
    user.two_factor_secret = None
    BackupCode.query.filter_by(user_id=user.id).delete(synchronize_session=False)
    db.session.flush()


def remaining_backup_codes(user: User) -> int:
    return BackupCode.query.filter_by(user_id=user.id, used=False).count()


def two_factor_status(user: User) -> dict:
    return {
        "enabled": user.two_factor_enabled,
        "state": two_factor_state(user),
        "backup_codes_remaining": remaining_backup_codes(user) if user.two_factor_enabled else 0,
    }
