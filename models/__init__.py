from .db import db
from .user import User, Role
from .audit_log import AuditLog
from .session import UserSession
from .backup_code import BackupCode
from .preference import UserPreference
from .unit_of_work import unit_of_work
