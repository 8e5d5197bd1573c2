import re

from flask import request

from models.user import User
from utils.errors import UserExists, ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def json_body() -> dict:
    """Parsed JSON object of the request; an absent or unparseable body reads as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")
    return data


def is_valid_email(email) -> bool:
    return isinstance(email, str) and len(email) <= 255 and bool(_EMAIL_RE.match(email))


def str_field(data: dict, name: str) -> str:
    value = data.get(name)
    return value.strip() if isinstance(value, str) else ""


def optional_str(data: dict, name: str):
    value = data.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(details={name: ["Must be a string"]})
    return value.strip() or None


def check_name(name: str, errors: dict):
    if not name or len(name) > 120:
        errors["name"] = ["Name is required (max 120 characters)"]


def ensure_email_available(email: str, user_id=None):
    # emails compare exactly; another account's address is a conflict
    existing = User.query.filter_by(email=email).first()
    if existing is not None and existing.id != user_id:
        raise UserExists("Email already in use by another account")
