from flask import Blueprint, jsonify, g

from models import unit_of_work
from security.session import end_session, end_all_other_sessions, get_session, list_active_sessions
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import Forbidden, NotFound


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


@sessions_bp.get("")
@login_required
def list_sessions():
    sessions = list_active_sessions(g.user.id)
    return jsonify(
        sessions=[s.to_dict() for s in sessions],
        current_session_id=g.session_id,
    ), 200


@sessions_bp.get("/<int:session_id>")
@login_required
def get_one(session_id):
    sess = get_session(session_id)
    if sess is None:
        raise NotFound("Session not found")
    if sess.user_id != g.user.id:
        raise Forbidden("Unauthorized")
    return jsonify(session={**sess.to_dict(), "user_agent": sess.user_agent}), 200


@sessions_bp.delete("/<int:session_id>")
@login_required
def end_one(session_id):
    with unit_of_work():
        end_session(session_id, g.user.id)

    log_event("SESSION_END", user_id=g.user.id, metadata={"ended_session_id": session_id})
    return jsonify(message="Session ended successfully"), 200


@sessions_bp.post("/end-others")
@login_required
def end_others():
    with unit_of_work():
        count = end_all_other_sessions(g.user.id, g.session_id)

    log_event("SESSION_END_OTHERS", user_id=g.user.id, metadata={"ended_sessions": count})
    return jsonify(message="All other sessions ended", ended_sessions=count), 200
