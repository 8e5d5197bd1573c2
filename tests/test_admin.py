from datetime import timedelta

import pytest

from models import db
from models.backup_code import BackupCode
from models.preference import UserPreference
from models.session import UserSession
from models.user import Role
from routes.admin import format_duration


@pytest.fixture
def admin_client(make_client, register, fetch_user):
    admin = make_client()
    user_id = register(email="admin@example.com", name="Admin", using=admin).get_json()["user"]["id"]
    user = fetch_user(user_id)
    user.role = Role.ADMIN
    db.session.commit()
    return admin


def test_admin_gate_rejects_regular_user(client, register):
    register()
    resp = client.get("/api/admin/users")
    assert resp.status_code == 403


def test_admin_gate_requires_auth(client):
    assert client.get("/api/admin/users").status_code == 401


def test_list_users(admin_client, register):
    register()
    users = admin_client.get("/api/admin/users").get_json()["users"]

    by_email = {u["email"]: u for u in users}
    assert by_email["admin@example.com"]["role"] == "ADMIN"
    assert by_email["alice@example.com"]["active_sessions"] == 1
    assert all("password_hash" not in u for u in users)


def test_active_users(admin_client, register):
    register()
    body = admin_client.get("/api/admin/active-users?time_range=1h").get_json()

    assert body["total_active_users"] == 2
    assert {u["email"] for u in body["active_users"]} == {"admin@example.com", "alice@example.com"}
    assert body["active_users"][0]["ip_address"] == "127.0.0.1"


def test_active_users_excludes_ended_sessions(admin_client, client, register):
    register()
    client.post("/api/auth/logout")

    body = admin_client.get("/api/admin/active-users").get_json()
    assert [u["email"] for u in body["active_users"]] == ["admin@example.com"]


def test_active_users_bad_range(admin_client):
    assert admin_client.get("/api/admin/active-users?time_range=2y").status_code == 400


def test_set_role(admin_client, client, register):
    user_id = register().get_json()["user"]["id"]

    resp = admin_client.patch(f"/api/admin/users/{user_id}/role", json={"role": "ADMIN"})
    assert resp.status_code == 200
    assert client.get("/api/admin/users").status_code == 200

    assert admin_client.patch(f"/api/admin/users/{user_id}/role", json={"role": "ROOT"}).status_code == 400
    assert admin_client.patch("/api/admin/users/9999/role", json={"role": "USER"}).status_code == 404


def test_delete_user_cascades(admin_client, client, register, enable_two_factor):
    user_id = register().get_json()["user"]["id"]
    enable_two_factor(client, user_id)

    assert admin_client.delete(f"/api/admin/users/{user_id}").status_code == 200

    assert UserSession.query.filter_by(user_id=user_id).count() == 0
    assert BackupCode.query.filter_by(user_id=user_id).count() == 0
    assert UserPreference.query.filter_by(user_id=user_id).count() == 0
    assert client.get("/api/auth/me").status_code == 401


def test_create_user(admin_client, make_client, login):
    resp = admin_client.post("/api/admin/users", json={
        "name": "Bob", "email": "bob@example.com", "password": "Passw0rd!", "role": "ADMIN",
    })

    assert resp.status_code == 201
    user = resp.get_json()["user"]
    assert user["role"] == "ADMIN"
    assert "password_hash" not in user
    assert UserPreference.query.filter_by(user_id=user["id"]).count() > 0
    assert login(email="bob@example.com", using=make_client()).status_code == 200


def test_create_user_validation_and_duplicates(admin_client):
    bad = admin_client.post("/api/admin/users", json={"name": "", "email": "nope", "password": "short"})
    assert bad.status_code == 400
    assert set(bad.get_json()["details"]) == {"name", "email", "password"}

    bad_role = admin_client.post("/api/admin/users", json={
        "name": "Bob", "email": "bob@example.com", "password": "Passw0rd!", "role": "ROOT",
    })
    assert bad_role.status_code == 400

    duplicate = admin_client.post("/api/admin/users", json={
        "name": "Other", "email": "admin@example.com", "password": "Passw0rd!",
    })
    assert duplicate.status_code == 409


def test_create_user_requires_admin(client, register):
    register()
    resp = client.post("/api/admin/users", json={
        "name": "Bob", "email": "bob@example.com", "password": "Passw0rd!",
    })
    assert resp.status_code == 403


def test_get_user(admin_client, register):
    user_id = register().get_json()["user"]["id"]

    body = admin_client.get(f"/api/admin/users/{user_id}").get_json()["user"]
    assert body["email"] == "alice@example.com"
    assert body["has_two_factor"] is False
    assert len(body["active_sessions"]) == 1

    assert admin_client.get("/api/admin/users/9999").status_code == 404


def test_update_user(admin_client, register, login, make_client, fetch_user):
    user_id = register().get_json()["user"]["id"]

    resp = admin_client.patch(f"/api/admin/users/{user_id}", json={
        "name": "Alice B", "email": "alice.b@example.com", "role": "ADMIN", "password": "N3wPassw0rd",
    })

    assert resp.status_code == 200
    user = fetch_user(user_id)
    assert (user.name, user.email, user.role) == ("Alice B", "alice.b@example.com", Role.ADMIN)
    assert login(email="alice.b@example.com", password="N3wPassw0rd", using=make_client()).status_code == 200


def test_update_user_is_partial(admin_client, register, fetch_user):
    user_id = register().get_json()["user"]["id"]

    assert admin_client.patch(f"/api/admin/users/{user_id}", json={"name": "Al"}).status_code == 200
    user = fetch_user(user_id)
    assert (user.name, user.email, user.role) == ("Al", "alice@example.com", Role.USER)


def test_update_user_rejects_taken_email_and_bad_input(admin_client, register, fetch_user):
    user_id = register().get_json()["user"]["id"]

    taken = admin_client.patch(f"/api/admin/users/{user_id}", json={"email": "admin@example.com"})
    assert taken.status_code == 409
    assert taken.get_json()["error"] == "Email already in use by another account"

    assert admin_client.patch(f"/api/admin/users/{user_id}", json={"password": "short"}).status_code == 400
    assert admin_client.patch(f"/api/admin/users/{user_id}", json={"role": "ROOT"}).status_code == 400
    assert admin_client.patch("/api/admin/users/9999", json={"name": "X"}).status_code == 404
    assert fetch_user(user_id).email == "alice@example.com"


@pytest.mark.parametrize("delta, expected", [
    (timedelta(seconds=42), "42s"),
    (timedelta(minutes=3, seconds=5), "3m 5s"),
    (timedelta(hours=2, minutes=10), "2h 10m"),
])
def test_format_duration(delta, expected):
    assert format_duration(delta) == expected
