import ipaddress
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import requests
from flask import request, current_app
from user_agents import parse as parse_user_agent

from models import db
from models.session import UserSession
from utils.errors import Forbidden

LOCAL_LOCATION = "Local Development"
UNKNOWN_LOCATION = "Unknown location"


@dataclass
class ClientInfo:
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    device_name: Optional[str] = None
    location: Optional[str] = None


def client_ip() -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # client, proxy1, proxy2
        return forwarded.split(",")[0].strip() or None
    return request.remote_addr


def describe_device(user_agent: Optional[str]) -> str:
    """Human readable label such as "Chrome on Windows" or "Mobile Safari on Apple iPhone"."""
    if not user_agent:
        return "Unknown"

    ua = parse_user_agent(user_agent)
    browser = ua.browser.family if ua.browser.family != "Other" else None
    os_name = ua.os.family if ua.os.family != "Other" else None
    brand = ua.device.brand
    model = ua.device.model

    if browser:
        if not os_name:
            return browser
        if ua.is_mobile or ua.is_tablet:
            return f"{browser} on {brand or ''} {model or os_name}".replace("  ", " ").strip()
        return f"{browser} on {os_name}"

    if brand:
        return f"{brand} {model or ''}".strip()
    return os_name or "Unknown Device"


def _is_local(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return addr.is_loopback or addr.is_private or addr.is_link_local


def lookup_location(ip: Optional[str]) -> Optional[str]:
    """
    Coarse "City, Country" for an IP via ipinfo.
    Local addresses short-circuit; lookup failures give UNKNOWN_LOCATION, never raise.
    """
    if not ip or _is_local(ip):
        return LOCAL_LOCATION

    if not current_app.config.get("GEOLOCATION_ENABLED", True):
        return None

    base_url = current_app.config.get("IPINFO_URL", "https://ipinfo.io").rstrip("/")
    token = current_app.config.get("IPINFO_TOKEN")
    timeout = current_app.config.get("GEOLOCATION_TIMEOUT_SECONDS", 2)

    try:
        resp = requests.get(
            f"{base_url}/{ip}/json",
            params={"token": token} if token else None,
            timeout=timeout,
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        current_app.logger.warning("IP lookup failed for %s: %s", ip, exc)
        return UNKNOWN_LOCATION

    parts = [p for p in (data.get("city"), data.get("country")) if p]
    return ", ".join(parts) if parts else UNKNOWN_LOCATION


def resolve_client_info() -> ClientInfo:
    """
    Request metadata for a new session. Enrichment is best effort:
    if anything goes wrong the caller gets an empty ClientInfo and login goes on.
    """
    try:
        ip = client_ip()
        user_agent = (request.headers.get("User-Agent") or "")[:255] or None
        return ClientInfo(
            ip=ip,
            user_agent=user_agent,
            device_name=describe_device(user_agent),
            location=lookup_location(ip),
        )
    except Exception:
        current_app.logger.warning("Session enrichment failed, using minimal session", exc_info=True)
        return ClientInfo()


def _clip(value: Optional[str], size: int) -> Optional[str]:
    return value[:size] if value else None


def create_session(user_id: int, client: Optional[ClientInfo] = None) -> UserSession:
    """
    Adds an active session row and flushes it so the id is available.
    The caller owns the transaction (see models.unit_of_work).
    """
    if client is None:
        client = resolve_client_info()

    now = datetime.utcnow()
    row = UserSession(
        user_id=user_id,
        ip_address=client.ip,
        user_agent=client.user_agent,
        device_name=_clip(client.device_name, 120),
        location=_clip(client.location, 120),
        start_time=now,
        last_activity=now,
        is_active=True,
    )
    db.session.add(row)
    db.session.flush()
    return row


def get_session(session_id) -> Optional[UserSession]:
    if session_id is None:
        return None
    try:
        return db.session.get(UserSession, int(session_id))
    except (TypeError, ValueError):
        return None


def touch_session(session_id) -> None:
    if session_id is None:
        return
    # last writer wins on last_activity
    UserSession.query.filter_by(id=int(session_id)).update(
        {UserSession.last_activity: datetime.utcnow()}, synchronize_session=False
    )


def end_session(session_id, user_id: int) -> UserSession:
    """
    Ends one session owned by user_id. A session that does not exist or
    belongs to someone else is refused the same way (Forbidden).
    """
    sess = get_session(session_id)
    if sess is None or sess.user_id != user_id:
        raise Forbidden("Unauthorized")
    sess.end()
    return sess


def end_all_other_sessions(user_id: int, except_session_id=None) -> int:
    query = UserSession.query.filter(
        UserSession.user_id == user_id,
        UserSession.is_active.is_(True),
    )
    if except_session_id is not None:
        query = query.filter(UserSession.id != int(except_session_id))

    now = datetime.utcnow()
    sessions = query.all()
    for s in sessions:
        s.end(now)
    return len(sessions)


def list_active_sessions(user_id: int) -> List[UserSession]:
    return (
        UserSession.query
        .filter_by(user_id=user_id, is_active=True)
        .order_by(UserSession.last_activity.desc(), UserSession.id.desc())
        .all()
    )
