from functools import wraps
from flask import g, request, current_app

from models import db, unit_of_work
from models.user import User
from security.session import get_session, touch_session
from security.tokens import verify_token
from utils.errors import InvalidToken, SessionExpired, Unauthenticated


def _reset():
    g.user = None
    g.session_id = None
    g.auth_error = None


def load_current_user():
    """
    Resolves the caller from the auth cookie: token -> user -> bound session.
    Leaves g.user unset and records why in g.auth_error; login_required raises it.
    """
    _reset()

    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "token")
    raw_token = request.cookies.get(cookie_name)
    if not raw_token:
        return

    try:
        payload = verify_token(raw_token)
    except InvalidToken:
        g.auth_error = Unauthenticated("Invalid token")
        return

    user = db.session.get(User, payload["userId"])
    if user is None:
        # deleted account
        g.auth_error = Unauthenticated("User not found")
        return

    session_id = payload.get("sessionId")
    if session_id is not None:
        sess = get_session(session_id)
        if sess is None or not sess.is_active:
            g.auth_error = SessionExpired()
            return
        with unit_of_work():
            touch_session(sess.id)
        g.session_id = sess.id

    g.user = user


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            raise getattr(g, "auth_error", None) or Unauthenticated()
        return fn(*args, **kwargs)
    return wrapper
