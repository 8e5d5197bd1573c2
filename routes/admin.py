from datetime import datetime, timedelta
from flask import Blueprint, jsonify, g, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db, unit_of_work
from models.session import UserSession
from models.user import User, Role
from security.password import hash_password
from security.password_policy import validate_password
from security.rbac import admin_required
from utils.audit import log_event
from utils.errors import NotFound, UserExists, ValidationError
from utils.preferences import setup_default_preferences
from utils.validation import check_name, ensure_email_available, is_valid_email, json_body, str_field

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

TIME_RANGES = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def _since(time_range: str, now: datetime) -> datetime:
    if time_range not in TIME_RANGES:
        raise ValidationError(details={"time_range": [f"Must be one of {', '.join(TIME_RANGES)}"]})
    return now - TIME_RANGES[time_range]


def format_duration(delta: timedelta) -> str:
    seconds = max(int(delta.total_seconds()), 0)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _parse_role(value) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(details={"role": [f"Must be one of {', '.join(r.value for r in Role)}"]})


@admin_bp.get("/active-users")
@admin_required
def active_users():
    now = datetime.utcnow()
    since = _since(request.args.get("time_range", "24h"), now)

    rows = (
        db.session.query(UserSession, User)
        .join(User, UserSession.user_id == User.id)
        .filter(UserSession.start_time >= since, UserSession.end_time.is_(None))
        .order_by(UserSession.start_time.desc())
        .all()
    )

    users = []
    for sess, user in rows:
        active_for = now - sess.start_time
        users.append({
            "session_id": sess.id,
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "start_time": sess.start_time.isoformat(),
            "ip_address": sess.ip_address or "Unknown",
            "user_agent": sess.user_agent or "Unknown",
            "active_duration": format_duration(active_for),
            "active_minutes": int(active_for.total_seconds() // 60),
        })

    return jsonify(active_users=users, total_active_users=len(users)), 200


@admin_bp.get("/users")
@admin_required
def list_users():
    active_counts = dict(
        db.session.query(UserSession.user_id, func.count(UserSession.id))
        .filter(UserSession.is_active.is_(True))
        .group_by(UserSession.user_id)
        .all()
    )
    users = User.query.order_by(User.created_at.desc()).all()
    return jsonify(users=[
        {
            **u.to_dict(),
            "has_two_factor": u.two_factor_enabled,
            "active_sessions": active_counts.get(u.id, 0),
        }
        for u in users
    ]), 200


@admin_bp.patch("/users/<int:user_id>/role")
@admin_required
def set_role(user_id):
    role = _parse_role(json_body().get("role"))

    user = _get_user_or_404(user_id)
    with unit_of_work():
        user.role = role

    log_event("ADMIN_ROLE_CHANGE", user_id=g.user.id, metadata={"target_user_id": user_id, "role": role.value})
    return jsonify(message="Role updated", user=user.to_dict()), 200


@admin_bp.delete("/users/<int:user_id>")
@admin_required
def delete_user(user_id):
    user = _get_user_or_404(user_id)

    # sessions, backup codes and preferences go with the user (ORM cascade)
    with unit_of_work() as session:
        session.delete(user)

    log_event("ADMIN_USER_DELETE", user_id=g.user.id, metadata={"target_user_id": user_id})
    return jsonify(message="User deleted successfully"), 200

@admin_bp.post("/users")
@admin_required
def create_user():
    data = json_body()
    name = str_field(data, "name")
    email = str_field(data, "email")
    password = data.get("password") or ""

    errors = {}
    check_name(name, errors)
    if not is_valid_email(email):
        errors["email"] = ["Invalid email"]
    valid, pw_errors = validate_password(password)
    if not valid:
        errors["password"] = pw_errors
    if errors:
        raise ValidationError(details=errors)
    role = _parse_role(data.get("role", Role.USER.value))

    ensure_email_available(email)

    try:
        with unit_of_work() as session:
            user = User(name=name, email=email, password_hash=hash_password(password), role=role)
            session.add(user)
            session.flush()
            setup_default_preferences(user.id)
    except IntegrityError:
        raise UserExists()

    log_event("ADMIN_USER_CREATE", user_id=g.user.id, metadata={"target_user_id": user.id, "role": role.value})
    return jsonify(message="User created successfully", user=user.to_dict()), 201


@admin_bp.get("/users/<int:user_id>")
@admin_required
def get_user(user_id):
    user = _get_user_or_404(user_id)
    sessions = (
        UserSession.query
        .filter_by(user_id=user.id, is_active=True)
        .order_by(UserSession.last_activity.desc())
        .all()
    )
    return jsonify(user={
        **user.to_dict(),
        "has_two_factor": user.two_factor_enabled,
        "active_sessions": [s.to_dict() for s in sessions],
    }), 200


@admin_bp.patch("/users/<int:user_id>")
@admin_required
def update_user(user_id):
    """Partial update: any of name, email, role, password."""
    data = json_body()
    user = _get_user_or_404(user_id)

    changes = {}
    errors = {}
    if "name" in data:
        name = str_field(data, "name")
        check_name(name, errors)
        changes["name"] = name
    if "email" in data:
        email = str_field(data, "email")
        if not is_valid_email(email):
            errors["email"] = ["Invalid email"]
        changes["email"] = email
    if "password" in data:
        password = data.get("password") or ""
        valid, pw_errors = validate_password(password)
        if not valid:
            errors["password"] = pw_errors
    if errors:
        raise ValidationError(details=errors)
    if "role" in data:
        changes["role"] = _parse_role(data.get("role"))
    if "email" in changes:
        ensure_email_available(changes["email"], user_id=user.id)

    try:
        with unit_of_work():
            for field, value in changes.items():
                setattr(user, field, value)
            if "password" in data:
                user.password_hash = hash_password(data["password"])
    except IntegrityError:
        raise UserExists("Email already in use by another account")

    fields = sorted(changes) + (["password"] if "password" in data else [])
    log_event("ADMIN_USER_UPDATE", user_id=g.user.id, metadata={"target_user_id": user_id, "fields": fields})
    return jsonify(message="User updated successfully", user=user.to_dict()), 200
