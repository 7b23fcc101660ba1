"""
Servicio de invitaciones de personal.

Una invitación pre-autoriza un email a recibir rol + clínica al registrarse.
Se consume exactamente una vez: el cambio de estado y la mutación del rol
ocurren en la misma transacción, con un UPDATE condicionado a `pending`
para que dos registros concurrentes no consuman el mismo ticket.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, InvalidInputException, NotFoundException
from app.core.security import generate_invite_code
from app.core.utils import as_utc, is_valid_email, normalize_email, utcnow
from app.models.staff_invite import InviteStatus, StaffInvite
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

MIN_EXPIRY_DAYS = 1
MAX_EXPIRY_DAYS = 60


async def create_invite(
    db: AsyncSession,
    *,
    clinic_id: UUID,
    email: str,
    role: UserRole,
    expires_in_days: int,
    created_by: UUID | None,
    now: datetime | None = None,
) -> StaffInvite:
    """Crea una invitación `pending` con código aleatorio."""
    email = normalize_email(email)
    if not is_valid_email(email):
        raise InvalidInputException("invalid_email")
    if not MIN_EXPIRY_DAYS <= expires_in_days <= MAX_EXPIRY_DAYS:
        raise InvalidInputException()

    now = now or utcnow()
    invite = StaffInvite(
        clinic_id=clinic_id,
        email=email,
        role=role,
        code=generate_invite_code(),
        status=InviteStatus.PENDING,
        expires_at=now + timedelta(days=expires_in_days),
        created_by=created_by,
        created_at=now,
    )
    db.add(invite)
    await db.flush()
    logger.info(
        "Invitación creada: invite_id=%s clinic_id=%s role=%s",
        invite.id, clinic_id, role.value,
    )
    return invite


async def list_invites(db: AsyncSession, clinic_id: UUID) -> list[StaffInvite]:
    result = await db.execute(
        select(StaffInvite)
        .where(StaffInvite.clinic_id == clinic_id)
        .order_by(StaffInvite.created_at.desc())
    )
    return list(result.scalars().all())


async def revoke_invite(db: AsyncSession, invite_id: UUID, clinic_id: UUID) -> StaffInvite:
    """pending → revoked. Cualquier otro estado es un conflicto."""
    result = await db.execute(
        select(StaffInvite).where(
            StaffInvite.id == invite_id,
            StaffInvite.clinic_id == clinic_id,
        )
    )
    invite = result.scalar_one_or_none()
    if not invite:
        raise NotFoundException()

    transitioned = await _transition(db, invite, InviteStatus.REVOKED)
    if not transitioned:
        raise ConflictException("invite_not_pending")

    logger.info("Invitación revocada: invite_id=%s", invite.id)
    return invite


async def _transition(
    db: AsyncSession,
    invite: StaffInvite,
    status: InviteStatus,
    **values,
) -> bool:
    """UPDATE condicionado a `pending`; False si otro request ganó la carrera."""
    result = await db.execute(
        update(StaffInvite)
        .where(
            StaffInvite.id == invite.id,
            StaffInvite.status == InviteStatus.PENDING,
        )
        .values(status=status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    invite.status = status
    for key, value in values.items():
        setattr(invite, key, value)
    return True


async def _latest_pending(db: AsyncSession, email: str) -> StaffInvite | None:
    result = await db.execute(
        select(StaffInvite)
        .where(
            StaffInvite.email == email,
            StaffInvite.status == InviteStatus.PENDING,
        )
        .order_by(StaffInvite.created_at.desc())
        .limit(1)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def apply_invite_to_new_user(
    db: AsyncSession,
    email: str,
    user: User,
    *,
    now: datetime | None = None,
) -> StaffInvite | None:
    """
    Aplica la invitación pendiente más reciente del email al usuario recién
    registrado. Si está vencida se marca `expired` y se trata como inexistente.
    Retorna la invitación aceptada, o None si no había ninguna aplicable.
    """
    email = normalize_email(email)
    now = now or utcnow()

    invite = await _latest_pending(db, email)
    if invite is None:
        return None

    if as_utc(invite.expires_at) <= now:
        await _transition(db, invite, InviteStatus.EXPIRED)
        logger.info("Invitación vencida al aplicarla: invite_id=%s", invite.id)
        return None

    accepted = await _transition(
        db, invite, InviteStatus.ACCEPTED, accepted_at=now, accepted_by=user.id
    )
    if not accepted:
        return None

    user.role = invite.role
    if user.clinic_id is None:
        user.clinic_id = invite.clinic_id
    await db.flush()

    logger.info(
        "Invitación aceptada: invite_id=%s user_id=%s role=%s",
        invite.id, user.id, invite.role.value,
    )
    return invite


async def expire_stale_invites(db: AsyncSession, *, now: datetime | None = None) -> int:
    """Barrido periódico: marca `expired` las pendientes ya vencidas."""
    now = now or utcnow()
    result = await db.execute(
        update(StaffInvite)
        .where(
            StaffInvite.status == InviteStatus.PENDING,
            StaffInvite.expires_at <= now,
        )
        .values(status=InviteStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
