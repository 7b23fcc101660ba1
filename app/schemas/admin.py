"""
Schemas de la consola de administración: invitaciones, usuarios, auditoría
y configuración de la clínica.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.config import get_settings
from app.models.staff_invite import InviteStatus
from app.models.user import UserRole
from app.schemas.auth import CamelModel

settings = get_settings()


# ── Invitaciones ─────────────────────────────────────
class InviteCreateRequest(CamelModel):
    email: EmailStr
    role: UserRole
    expires_days: int = Field(
        settings.INVITE_DEFAULT_DAYS, ge=1, le=60, alias="expiresDays"
    )


class InviteResponse(CamelModel):
    id: UUID
    clinic_id: UUID
    email: str
    role: UserRole
    code: str
    status: InviteStatus
    expires_at: datetime
    created_at: datetime
    accepted_at: datetime | None = None


class InviteCreateResponse(BaseModel):
    ok: bool = True
    invite: InviteResponse


class InviteListResponse(BaseModel):
    invites: list[InviteResponse]


# ── Usuarios ─────────────────────────────────────────
class AdminUserResponse(CamelModel):
    id: UUID
    email: str
    role: UserRole
    specialty: str | None = None
    clinic_id: UUID | None = None
    totp_enabled: bool = False
    created_at: datetime


class UserListResponse(BaseModel):
    users: list[AdminUserResponse]


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserUpdateResponse(BaseModel):
    ok: bool = True
    user: AdminUserResponse


# ── Auditoría ────────────────────────────────────────
class AuditLogResponse(CamelModel):
    id: UUID
    user_id: UUID | None = None
    email: str | None = None
    method: str
    path: str
    ip: str | None = None
    user_agent: str | None = None
    status: int
    created_at: datetime


class AuditListResponse(BaseModel):
    logs: list[AuditLogResponse]


# ── Clínica ──────────────────────────────────────────
class DayTiming(BaseModel):
    open: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    close: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    closed: bool = False


class ClinicUpdateRequest(CamelModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    address: str | None = Field(None, max_length=500)
    timezone: str | None = Field(None, max_length=50)
    contact_email: EmailStr | None = Field(None, alias="contactEmail")
    departments: list[str] | None = None
    specialties: list[str] | None = None
    timings: dict[str, DayTiming] | None = None
    permissions: dict[str, list[str]] | None = None


class ClinicResponse(CamelModel):
    id: UUID
    name: str
    address: str | None = None
    timezone: str
    contact_email: str | None = Field(None, alias="contactEmail")
    departments: list[str] = []
    specialties: list[str] = []
    timings: dict[str, DayTiming] = {}
    permissions: dict[str, list[str]] = {}


class ClinicEnvelope(BaseModel):
    clinic: ClinicResponse
