"""Shared fixtures: an app on in-memory SQLite and helpers to drive the auth API."""

import pyotp
import pytest

from app import create_app
from config import TestConfig
from models import db
from models.user import User


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_client(app):
    """Independent clients (separate cookie jars) for multi-user / multi-device tests."""
    return app.test_client


@pytest.fixture
def fetch_user(app):
    """Reads a user fresh from the database, bypassing anything cached in the test's session."""
    def _fetch(user_id):
        db.session.expire_all()
        return db.session.get(User, user_id)
    return _fetch


@pytest.fixture
def register(client):
    def _register(email="alice@example.com", password="Passw0rd!", name="Alice", using=None):
        return (using or client).post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
    return _register


@pytest.fixture
def login(client):
    def _login(email="alice@example.com", password="Passw0rd!", using=None, **extra):
        return (using or client).post(
            "/api/auth/login",
            json={"email": email, "password": password, **extra},
        )
    return _login


@pytest.fixture
def enable_two_factor(fetch_user):
    """Runs setup + confirm for the client's user; returns (secret, backup_codes)."""
    def _enable(using, user_id):
        resp = using.post("/api/2fa/setup")
        assert resp.status_code == 200

        secret = fetch_user(user_id).two_factor_secret
        resp = using.post("/api/2fa/verify", json={"token": pyotp.TOTP(secret).now()})
        assert resp.status_code == 200
        return secret, resp.get_json()["backup_codes"]
    return _enable


@pytest.fixture
def token_cookie_header():
    """Returns the Set-Cookie header for the auth token, or None."""
    def _header(resp):
        for header in resp.headers.getlist("Set-Cookie"):
            if header.startswith("token="):
                return header
        return None
    return _header
