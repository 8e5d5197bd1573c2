from flask import Blueprint, jsonify, g

from models import unit_of_work
from security import two_factor
from utils.audit import log_event
from utils.auth_context import login_required
from utils.validation import json_body


two_factor_bp = Blueprint("two_factor", __name__, url_prefix="/api/2fa")


@two_factor_bp.post("/setup")
@login_required
def setup():
    with unit_of_work():
        provisioning = two_factor.begin_setup(g.user)

    log_event("TWO_FACTOR_SETUP", user_id=g.user.id)
    return jsonify(message="2FA setup ready", **provisioning), 200


@two_factor_bp.post("/verify")
@login_required
def verify():
    data = json_body()
    code = data.get("token")
    if not isinstance(code, str):
        code = None

    # flag, secret and the new backup code batch commit together
    with unit_of_work():
        backup_codes = two_factor.confirm_setup(g.user, code)

    log_event("TWO_FACTOR_ENABLED", user_id=g.user.id)
    return jsonify(message="2FA enabled successfully", backup_codes=backup_codes), 200


@two_factor_bp.post("/disable")
@login_required
def disable():
    with unit_of_work():
        two_factor.disable(g.user)

    log_event("TWO_FACTOR_DISABLED", user_id=g.user.id)
    return jsonify(message="2FA disabled successfully"), 200


@two_factor_bp.get("/status")
@login_required
def status():
    return jsonify(two_factor.two_factor_status(g.user)), 200
