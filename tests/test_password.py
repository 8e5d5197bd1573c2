import pytest

from security.password import hash_password, verify_password
from security.password_policy import validate_password


def test_hash_is_not_plaintext_and_verifies(app):
    digest = hash_password("Passw0rd!")

    assert digest != "Passw0rd!"
    assert verify_password("Passw0rd!", digest)
    assert not verify_password("passw0rd!", digest)


def test_hash_uses_fresh_salt(app):
    assert hash_password("same-password") != hash_password("same-password")


def test_empty_password_rejected(app):
    with pytest.raises(ValueError):
        hash_password("")
    assert verify_password("", hash_password("something")) is False


def test_malformed_digest_is_an_error_not_a_mismatch(app):
    with pytest.raises(ValueError):
        verify_password("Passw0rd!", "not-a-bcrypt-hash")


def test_policy_min_length(app):
    ok, errors = validate_password("short")
    assert not ok
    assert "at least 8" in errors[0]

    assert validate_password("Passw0rd!") == (True, [])


def test_policy_character_classes_are_configurable(app):
    app.config["PASSWORD_REQUIRE_DIGIT"] = True
    ok, errors = validate_password("password-only")
    assert not ok
    assert errors == ["Password must include at least 1 number"]
