import bcrypt
from flask import current_app

def _rounds() -> int:
    try:
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    except RuntimeError:
        # outside an app context (CLI scripts)
        return 12

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    # bcrypt expects bytes; a fresh salt per call
    salt = bcrypt.gensalt(rounds=_rounds())
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    """
    True only when the password matches the stored digest.
    A malformed digest raises (ValueError from bcrypt) instead of reading as a mismatch.
    """
    if not plain_password or not password_hash:
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        password_hash.encode("utf-8")
    )

_dummy_digests = {}

def burn_password_check(plain_password: str) -> bool:
    """
    Runs one bcrypt comparison against a throwaway digest and returns False.
    Login calls it for unknown emails so they cost the same as a wrong password.
    """
    rounds = _rounds()
    digest = _dummy_digests.get(rounds)
    if digest is None:
        digest = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=rounds))
        _dummy_digests[rounds] = digest
    bcrypt.checkpw((plain_password or "").encode("utf-8"), digest)
    return False
