"""
Endpoints de la consola de administración (solo rol admin).
Invitaciones de personal, gestión de usuarios, auditoría y clínica.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_admin_clinic, require_role
from app.database import get_db
from app.models.clinic import Clinic
from app.models.user import User, UserRole
from app.schemas.admin import (
    AdminUserResponse,
    AuditListResponse,
    AuditLogResponse,
    ClinicEnvelope,
    ClinicResponse,
    ClinicUpdateRequest,
    InviteCreateRequest,
    InviteCreateResponse,
    InviteListResponse,
    InviteResponse,
    UserListResponse,
    UserRoleUpdate,
    UserUpdateResponse,
)
from app.schemas.auth import OkResponse
from app.services import audit_service, auth_service, clinic_service, invite_service, user_service

router = APIRouter()

require_admin = require_role(UserRole.ADMIN)


def _clinic_response(clinic: Clinic) -> ClinicResponse:
    settings = clinic.settings or {}
    return ClinicResponse(
        id=clinic.id,
        name=clinic.name,
        address=clinic.address,
        timezone=clinic.timezone,
        contact_email=clinic.contact_email,
        departments=settings.get("departments", []),
        specialties=settings.get("specialties", []),
        timings=settings.get("timings", {}),
        permissions=settings.get("permissions", {}),
    )


# ── Invitaciones ─────────────────────────────────────
@router.post("/users/invite", response_model=InviteCreateResponse)
async def create_invite(
    data: InviteCreateRequest,
    user: User = Depends(require_admin),
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Invita a un email a unirse a la clínica con un rol."""
    invite = await invite_service.create_invite(
        db,
        clinic_id=clinic.id,
        email=data.email,
        role=data.role,
        expires_in_days=data.expires_days,
        created_by=user.id,
    )
    return InviteCreateResponse(invite=InviteResponse.model_validate(invite))


@router.get("/invites", response_model=InviteListResponse)
async def list_invites(
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Lista las invitaciones de la clínica (más recientes primero)."""
    invites = await invite_service.list_invites(db, clinic.id)
    return InviteListResponse(invites=[InviteResponse.model_validate(i) for i in invites])


@router.post("/invites/{invite_id}/revoke", response_model=OkResponse)
async def revoke_invite(
    invite_id: UUID,
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Revoca una invitación pendiente."""
    await invite_service.revoke_invite(db, invite_id, clinic.id)
    return OkResponse()


# ── Usuarios ─────────────────────────────────────────
@router.get("/users", response_model=UserListResponse)
async def list_users(
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Lista el equipo de la clínica."""
    users = await user_service.list_clinic_users(db, clinic.id)
    return UserListResponse(users=[AdminUserResponse.model_validate(u) for u in users])


@router.patch("/users/{user_id}", response_model=UserUpdateResponse)
async def update_user(
    user_id: UUID,
    data: UserRoleUpdate,
    admin: User = Depends(require_admin),
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Cambia el rol de un miembro del equipo."""
    user = await user_service.update_user_role(db, admin, user_id, data.role)
    return UserUpdateResponse(user=AdminUserResponse.model_validate(user))


@router.delete("/users/{user_id}", response_model=OkResponse)
async def remove_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Da de baja a un miembro; sus sesiones se revocan."""
    await user_service.remove_user(db, admin, user_id)
    return OkResponse()


@router.post("/users/{user_id}/reset-auth", response_model=OkResponse)
async def reset_user_auth(
    user_id: UUID,
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Fuerza el re-enrolamiento TOTP y cierra todas las sesiones del usuario."""
    user = await user_service.get_clinic_member(db, clinic.id, user_id)
    await auth_service.reset_user_auth(db, user)
    return OkResponse()


# ── Auditoría ────────────────────────────────────────
@router.get("/audit", response_model=AuditListResponse)
async def list_audit_logs(
    limit: int = Query(200, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: UUID | None = Query(None, description="Filtrar por usuario"),
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Actividad reciente de la clínica para cumplimiento."""
    logs = await audit_service.list_audit_logs(
        db, clinic_id=clinic.id, limit=limit, offset=offset, user_id=user_id
    )
    return AuditListResponse(logs=[AuditLogResponse.model_validate(log) for log in logs])


# ── Clínica ──────────────────────────────────────────
@router.get("/clinic", response_model=ClinicEnvelope)
async def get_clinic(
    clinic: Clinic = Depends(get_admin_clinic),
):
    """Datos y configuración de la clínica del admin."""
    return ClinicEnvelope(clinic=_clinic_response(clinic))


@router.put("/clinic", response_model=ClinicEnvelope)
async def update_clinic(
    data: ClinicUpdateRequest,
    clinic: Clinic = Depends(get_admin_clinic),
    db: AsyncSession = Depends(get_db),
):
    """Actualiza datos, horarios y permisos por rol de la clínica."""
    clinic = await clinic_service.update_clinic(db, clinic, data.model_dump(exclude_none=True))
    return ClinicEnvelope(clinic=_clinic_response(clinic))
