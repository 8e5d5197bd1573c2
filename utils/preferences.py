import copy

from models import db
from models.preference import UserPreference

DEFAULT_PREFERENCES = {
    "themePreference": "System",
    "language": "Spanish",
    "timezone": "America/Bogota",
    "notificationPreferences": {
        "emailNotifications": True,
        "pushNotifications": True,
        "marketingEmails": False,
    },
    "securityOptions": {
        "twoFactorAuthentication": False,
        "loginAlerts": True,
    },
}


def setup_default_preferences(user_id: int):
    """Adds any missing default preference rows for the user (no commit)."""
    existing = {
        key for (key,) in db.session.query(UserPreference.key).filter_by(user_id=user_id)
    }
    rows = [
        UserPreference(user_id=user_id, key=key, value=copy.deepcopy(value))
        for key, value in DEFAULT_PREFERENCES.items()
        if key not in existing
    ]
    db.session.add_all(rows)
    db.session.flush()
    return rows


def preferences_with_defaults(user_id: int) -> dict:
    stored = {p.key: p.value for p in UserPreference.query.filter_by(user_id=user_id)}
    merged = copy.deepcopy(DEFAULT_PREFERENCES)
    merged.update(stored)
    return merged
