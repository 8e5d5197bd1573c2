from flask import Blueprint, jsonify, g

from models import unit_of_work
from models.preference import UserPreference
from utils.auth_context import login_required
from utils.errors import NotFound, ValidationError
from utils.preferences import preferences_with_defaults
from utils.validation import json_body


preferences_bp = Blueprint("preferences", __name__, url_prefix="/api/preferences")


def _find(key: str):
    pref = UserPreference.query.filter_by(user_id=g.user.id, key=key).first()
    if pref is None:
        raise NotFound(f"Preference with key '{key}' not found")
    return pref


@preferences_bp.get("")
@login_required
def get_all():
    return jsonify(preferences=preferences_with_defaults(g.user.id)), 200


@preferences_bp.get("/<key>")
@login_required
def get_one(key):
    return jsonify(preference=_find(key).to_dict()), 200


@preferences_bp.post("")
@login_required
def set_one():
    data = json_body()
    key = data.get("key")
    if not isinstance(key, str) or not key.strip() or len(key.strip()) > 64:
        raise ValidationError(details={"key": ["Preference key is required"]})
    if "value" not in data:
        raise ValidationError(details={"value": ["Preference value is required"]})
    key = key.strip()

    with unit_of_work() as session:
        pref = UserPreference.query.filter_by(user_id=g.user.id, key=key).first()
        if pref is None:
            pref = UserPreference(user_id=g.user.id, key=key)
            session.add(pref)
        pref.value = data["value"]

    return jsonify(message="Preference updated successfully", preference=pref.to_dict()), 200


@preferences_bp.delete("/<key>")
@login_required
def delete_one(key):
    with unit_of_work() as session:
        session.delete(_find(key))
    return jsonify(message="Preference deleted successfully"), 200


@preferences_bp.delete("")
@login_required
def delete_all():
    with unit_of_work():
        count = UserPreference.query.filter_by(user_id=g.user.id).delete(synchronize_session=False)
    return jsonify(message="All preferences deleted successfully", deleted=count), 200
