"""
Modelos SQLAlchemy — exportar todos para que Alembic los detecte.
"""

from app.models.clinic import Clinic
from app.models.user import User, UserRole
from app.models.session import UserSession
from app.models.staff_invite import StaffInvite, InviteStatus
from app.models.audit_log import AuditLog

__all__ = [
    "Clinic",
    "User",
    "UserRole",
    "UserSession",
    "StaffInvite",
    "InviteStatus",
    "AuditLog",
]
