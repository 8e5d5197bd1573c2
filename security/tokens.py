from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app
from jose import jwt, JWTError

from utils.errors import InvalidToken


def _secret() -> str:
    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return secret


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def issue_token(user_id: int, session_id: Optional[int] = None, issued_at: Optional[datetime] = None) -> str:
    """
    Signs a bearer token for the user, bound to the session when one is given.
    Expiry is fixed at TOKEN_TTL_SECONDS after issued_at; there is no refresh.
    """
    issued_at = issued_at or datetime.now(timezone.utc)
    ttl = current_app.config.get("TOKEN_TTL_SECONDS", 3600)

    claims = {
        "userId": user_id,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(seconds=ttl)).timestamp()),
    }
    if session_id is not None:
        claims["sessionId"] = session_id

    return jwt.encode(claims, _secret(), algorithm=_algorithm())


def verify_token(token: str) -> dict:
    if not token or not isinstance(token, str):
        raise InvalidToken("Missing token")

    try:
        payload = jwt.decode(token, _secret(), algorithms=[_algorithm()])
    except JWTError as exc:
        # covers bad signature, malformed token and ExpiredSignatureError
        raise InvalidToken(str(exc)) from exc

    if payload.get("userId") is None:
        raise InvalidToken("Token has no subject")
    return payload


def _cookie_kwargs() -> dict:
    return {
        "httponly": True,
        "secure": current_app.config.get("AUTH_COOKIE_SECURE", True),
        "samesite": current_app.config.get("AUTH_COOKIE_SAMESITE", "None"),
        "path": "/",
    }


def set_auth_cookie(resp, token: str):
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "token"),
        token,
        max_age=current_app.config.get("TOKEN_TTL_SECONDS", 3600),
        **_cookie_kwargs(),
    )
    return resp


def clear_auth_cookie(resp):
    # attributes must match the ones used when setting, or browsers keep the cookie
    resp.delete_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "token"),
        **_cookie_kwargs(),
    )
    return resp
