import pytest

from models import db
from models.preference import UserPreference
from models.user import Role


@pytest.fixture
def alice_id(register):
    return register().get_json()["user"]["id"]


@pytest.fixture
def bob(make_client, register):
    bob_client = make_client()
    bob_id = register(email="bob@example.com", name="Bob", using=bob_client).get_json()["user"]["id"]
    return bob_client, bob_id


def test_full_profile(client, alice_id):
    resp = client.get(f"/api/profile/{alice_id}")

    assert resp.status_code == 200
    profile = resp.get_json()["profile"]
    assert profile["personal"]["email"] == "alice@example.com"
    assert "password_hash" not in profile["personal"]
    assert {p["key"] for p in profile["preferences"]} >= {"language", "securityOptions"}
    assert profile["security"]["two_factor_enabled"] is False
    assert profile["security"]["active_sessions"] == 1
    assert profile["security"]["last_activity"] == profile["sessions"][0]["last_activity"]


def test_profile_of_someone_else_is_forbidden(client, alice_id, bob):
    bob_client, bob_id = bob

    assert client.get(f"/api/profile/{bob_id}").status_code == 403
    assert bob_client.put(f"/api/profile/{alice_id}/personal", json={
        "name": "Mallory", "email": "mallory@example.com",
    }).status_code == 403
    assert bob_client.put(f"/api/profile/{alice_id}/security", json={"loginAlerts": False}).status_code == 403


def test_admin_can_view_any_profile(client, alice_id, bob, fetch_user):
    bob_client, bob_id = bob
    admin = fetch_user(bob_id)
    admin.role = Role.ADMIN
    db.session.commit()

    assert bob_client.get(f"/api/profile/{alice_id}").status_code == 200
    assert bob_client.get("/api/profile/9999").status_code == 404


def test_profile_requires_login(client):
    assert client.get("/api/profile/1").status_code == 401


def test_update_personal_info(client, alice_id, fetch_user, login, make_client):
    resp = client.put(f"/api/profile/{alice_id}/personal", json={
        "name": "Alice Liddell", "email": "liddell@example.com",
    })

    assert resp.status_code == 200
    user = fetch_user(alice_id)
    assert (user.name, user.email) == ("Alice Liddell", "liddell@example.com")
    assert login(email="liddell@example.com", using=make_client()).status_code == 200


def test_update_personal_info_keeps_own_email(client, alice_id):
    resp = client.put(f"/api/profile/{alice_id}/personal", json={
        "name": "Alice Liddell", "email": "alice@example.com",
    })
    assert resp.status_code == 200


def test_update_personal_info_rejects_email_in_use(client, alice_id, bob, fetch_user):
    resp = client.put(f"/api/profile/{alice_id}/personal", json={
        "name": "Alice", "email": "bob@example.com",
    })

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Email already in use by another account"
    assert fetch_user(alice_id).email == "alice@example.com"


def test_update_personal_info_validation(client, alice_id):
    resp = client.put(f"/api/profile/{alice_id}/personal", json={"name": "", "email": "nope"})

    assert resp.status_code == 400
    assert set(resp.get_json()["details"]) == {"name", "email"}


def test_update_security_settings(client, alice_id):
    resp = client.put(f"/api/profile/{alice_id}/security", json={"loginAlerts": False})

    assert resp.status_code == 200
    db.session.expire_all()
    pref = UserPreference.query.filter_by(user_id=alice_id, key="securityOptions").one()
    assert pref.value == {"twoFactorAuthentication": False, "loginAlerts": False}


def test_update_security_settings_creates_missing_preference(client, alice_id):
    client.delete("/api/preferences/securityOptions")

    resp = client.put(f"/api/profile/{alice_id}/security", json={"loginAlerts": False})

    assert resp.status_code == 200
    assert resp.get_json()["preference"]["value"]["loginAlerts"] is False


def test_update_security_settings_rejects_non_boolean(client, alice_id):
    resp = client.put(f"/api/profile/{alice_id}/security", json={"loginAlerts": "yes"})
    assert resp.status_code == 400
