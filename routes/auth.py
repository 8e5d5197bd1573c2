from flask import Blueprint, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db, unit_of_work
from models.user import User, Role
from security import two_factor
from security.password import burn_password_check, hash_password, verify_password
from security.password_policy import validate_password
from security.session import create_session, end_session, resolve_client_info
from security.tokens import issue_token, set_auth_cookie, clear_auth_cookie
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import ApiError, InvalidCredentials, UserExists, ValidationError
from utils.preferences import setup_default_preferences
from utils.validation import check_name, is_valid_email, json_body, optional_str, str_field


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user: User) -> dict:
    return {**user.to_dict(), "has_two_factor": user.two_factor_enabled}


@auth_bp.post("/register")
def register():
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

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        raise UserExists()

    client = resolve_client_info()

    # user, default preferences, session and token succeed or fail together
    try:
        with unit_of_work():
            user = User(
                name=name,
                email=email,
                password_hash=hash_password(password),
                role=Role.USER,
            )
            db.session.add(user)
            db.session.flush()

            setup_default_preferences(user.id)
            sess = create_session(user.id, client)
            token = issue_token(user.id, sess.id)
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        raise UserExists()

    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"session_id": sess.id})

    resp = jsonify(message="User created successfully", user=user.to_dict())
    set_auth_cookie(resp, token)
    return resp, 201


@auth_bp.post("/login")
def login():
    data = json_body()
    email = str_field(data, "email")
    password = data.get("password") or ""
    otp = optional_str(data, "two_factor_token")
    backup_code = optional_str(data, "backup_code")

    if not is_valid_email(email) or not isinstance(password, str) or not password:
        raise ValidationError(details={"credentials": ["Email and password are required"]})

    user = User.query.filter_by(email=email).first()
    if user is None:
        burn_password_check(password)
    if user is None or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        raise InvalidCredentials()

    if user.two_factor_enabled and not otp and not backup_code:
        log_event("LOGIN_TWO_FACTOR_REQUIRED", user_id=user.id)
        return jsonify(
            message="Two-factor authentication required",
            require_two_factor=True,
            user_id=user.id,
        ), 200

    client = resolve_client_info()

    # a consumed backup code is rolled back with the session if anything later fails
    try:
        with unit_of_work():
            if user.two_factor_enabled and not two_factor.verify_login(
                user, token=otp, backup_code=backup_code
            ):
                raise InvalidCredentials()
            sess = create_session(user.id, client)
            token = issue_token(user.id, sess.id)
    except InvalidCredentials:
        log_event(
            "LOGIN_TWO_FACTOR_FAIL",
            user_id=user.id,
            metadata={"method": "totp" if otp else "backup_code"},
        )
        raise

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"session_id": sess.id})

    resp = jsonify(user=user.to_dict(), has_two_factor=user.two_factor_enabled)
    set_auth_cookie(resp, token)
    return resp, 200


@auth_bp.post("/logout")
def logout():
    # no login_required: an expired or orphaned cookie must still be clearable
    user = getattr(g, "user", None)
    session_id = getattr(g, "session_id", None)

    if user is not None and session_id is not None:
        try:
            with unit_of_work():
                end_session(session_id, user.id)
            log_event("LOGOUT", user_id=user.id, metadata={"session_id": session_id})
        except (ApiError, SQLAlchemyError):
            current_app.logger.warning("Could not end session %s on logout", session_id, exc_info=True)

    resp = jsonify(message="Logged out successfully")
    clear_auth_cookie(resp)
    return resp, 200


@auth_bp.route("/me", methods=["GET", "POST"])
@login_required
def me():
    return jsonify(user=_user_payload(g.user)), 200


@auth_bp.post("/change-password")
@login_required
def change_password():
    data = json_body()
    current_password = data.get("current_password") or ""
    new_password = data.get("new_password") or ""

    if not isinstance(current_password, str) or not verify_password(current_password, g.user.password_hash):
        raise ValidationError("Current password is incorrect")

    valid, errors = validate_password(new_password)
    if not valid:
        raise ValidationError("Password does not meet policy", details={"new_password": errors})

    with unit_of_work():
        g.user.password_hash = hash_password(new_password)

    log_event("PASSWORD_CHANGED", user_id=g.user.id)
    return jsonify(message="Password updated successfully"), 200
