import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    JWT_SECRET = os.getenv("JWT_SECRET") or SECRET_KEY
    JWT_ALGORITHM = "HS256"

    # Bearer token lifetime: 1 hour, no refresh
    TOKEN_TTL_SECONDS = 60 * 60

    # SQLite database file stored next to the app as places.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "places.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Auth cookie carrying the bearer token
    AUTH_COOKIE_NAME = "token"
    AUTH_COOKIE_SECURE = os.getenv("AUTH_COOKIE_SECURE", "true").lower() == "true"
    AUTH_COOKIE_SAMESITE = os.getenv("AUTH_COOKIE_SAMESITE", "None")

    # Password hashing / policy
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    PASSWORD_MIN_LEN = 8
    PASSWORD_MAX_LEN = 128
    PASSWORD_REQUIRE_UPPER = False
    PASSWORD_REQUIRE_LOWER = False
    PASSWORD_REQUIRE_DIGIT = False
    PASSWORD_REQUIRE_SYMBOL = False

    # Two-factor (TOTP + backup codes)
    TWO_FACTOR_ISSUER = os.getenv("TWO_FACTOR_ISSUER", "PlacesDirectory")
    TWO_FACTOR_VALID_WINDOW = 1   # accept +/- one 30s step
    BACKUP_CODE_COUNT = 10

    # IP geolocation for session labels (best effort)
    GEOLOCATION_ENABLED = os.getenv("GEOLOCATION_ENABLED", "true").lower() == "true"
    IPINFO_URL = os.getenv("IPINFO_URL", "https://ipinfo.io")
    IPINFO_TOKEN = os.getenv("IPINFO_TOKEN")
    GEOLOCATION_TIMEOUT_SECONDS = float(os.getenv("GEOLOCATION_TIMEOUT_SECONDS", "2"))

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    JWT_SECRET = "test-jwt-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BCRYPT_ROUNDS = 4
    GEOLOCATION_ENABLED = False
