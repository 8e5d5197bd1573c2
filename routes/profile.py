import copy

from flask import Blueprint, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db, unit_of_work
from models.preference import UserPreference
from models.user import User
from security.session import list_active_sessions
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import Forbidden, NotFound, UserExists, ValidationError
from utils.preferences import DEFAULT_PREFERENCES
from utils.validation import check_name, ensure_email_available, is_valid_email, json_body, str_field


profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")

SECURITY_OPTIONS_KEY = "securityOptions"


def _target_user(user_id: int, action: str) -> User:
    """Own profile, or any profile for an ADMIN."""
    if user_id != g.user.id and not g.user.is_admin:
        raise Forbidden(f"Unauthorized to {action}")
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


@profile_bp.get("/<int:user_id>")
@login_required
def get_profile(user_id):
    user = _target_user(user_id, "view this profile")

    preferences = UserPreference.query.filter_by(user_id=user.id).order_by(UserPreference.key).all()
    sessions = list_active_sessions(user.id)

    return jsonify(profile={
        "personal": user.to_dict(),
        "preferences": [p.to_dict() for p in preferences],
        "security": {
            "two_factor_enabled": user.two_factor_enabled,
            "active_sessions": len(sessions),
            "last_activity": sessions[0].last_activity.isoformat() if sessions else None,
        },
        "sessions": [s.to_dict() for s in sessions],
    }), 200


@profile_bp.put("/<int:user_id>/personal")
@login_required
def update_personal_info(user_id):
    user = _target_user(user_id, "update this profile")

    data = json_body()
    name = str_field(data, "name")
    email = str_field(data, "email")

    errors = {}
    check_name(name, errors)
    if not is_valid_email(email):
        errors["email"] = ["Invalid email"]
    if errors:
        raise ValidationError(details=errors)

    ensure_email_available(email, user_id=user.id)

    try:
        with unit_of_work():
            user.name = name
            user.email = email
    except IntegrityError:
        raise UserExists("Email already in use by another account")

    log_event("PROFILE_UPDATE", user_id=g.user.id, metadata={"target_user_id": user.id, "fields": ["name", "email"]})
    return jsonify(message="Personal information updated successfully", user=user.to_dict()), 200


@profile_bp.put("/<int:user_id>/security")
@login_required
def update_security_settings(user_id):
    user = _target_user(user_id, "update security settings")

    data = json_body()
    login_alerts = data.get("loginAlerts")
    if login_alerts is not None and not isinstance(login_alerts, bool):
        raise ValidationError(details={"loginAlerts": ["Must be a boolean"]})

    with unit_of_work() as session:
        pref = UserPreference.query.filter_by(user_id=user.id, key=SECURITY_OPTIONS_KEY).first()
        if pref is None:
            pref = UserPreference(user_id=user.id, key=SECURITY_OPTIONS_KEY)
            session.add(pref)
        # JSON columns only see reassignment, not in-place edits
        current = pref.value if isinstance(pref.value, dict) else DEFAULT_PREFERENCES[SECURITY_OPTIONS_KEY]
        settings = copy.deepcopy(current)
        if login_alerts is not None:
            settings["loginAlerts"] = login_alerts
        pref.value = settings

    log_event(
        "SECURITY_SETTINGS_UPDATE",
        user_id=g.user.id,
        metadata={"target_user_id": user.id, "login_alerts": login_alerts},
    )
    return jsonify(message="Security settings updated successfully", preference=pref.to_dict()), 200
