from functools import wraps
from flask import g

from models.user import Role
from utils.errors import Forbidden, Unauthenticated

def require_roles(*roles: Role):
    """
    Usage: @require_roles(Role.ADMIN)
    Runs the authentication check first, then the role check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                raise getattr(g, "auth_error", None) or Unauthenticated()

            if user.role not in roles:
                raise Forbidden("Access denied: insufficient privileges")

            return fn(*args, **kwargs)
        return wrapper
    return decorator

admin_required = require_roles(Role.ADMIN)
