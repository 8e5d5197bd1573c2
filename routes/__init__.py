from .health import health_bp
from .auth import auth_bp
from .two_factor import two_factor_bp
from .sessions import sessions_bp
from .preferences import preferences_bp
from .admin import admin_bp
from .profile import profile_bp
