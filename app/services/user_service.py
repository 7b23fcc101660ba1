"""
Servicio de usuarios: búsqueda por email, auto-provisión y gestión por el admin.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidInputException, NotFoundException
from app.core.utils import normalize_email
from app.models.user import User, UserRole
from app.services.session_service import revoke_all_sessions

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Búsqueda case-insensitive (los emails se guardan en minúsculas)."""
    result = await db.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, email: str) -> User:
    """
    Retorna el usuario del email, creándolo con el rol por defecto si no existe.
    Si otro request lo crea en paralelo, el índice único hace fallar el flush
    y el request perdedor termina en 500 sin efectos parciales.
    """
    email = normalize_email(email)
    user = await get_user_by_email(db, email)
    if user:
        return user

    user = User(email=email)
    db.add(user)
    await db.flush()

    logger.info("Usuario auto-provisionado: user_id=%s", user.id)
    return user


# ── Gestión por el admin de la clínica ───────────────
async def list_clinic_users(db: AsyncSession, clinic_id: UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .where(User.clinic_id == clinic_id)
        .order_by(User.created_at.desc())
    )
    return list(result.scalars().all())


async def get_clinic_member(db: AsyncSession, clinic_id: UUID, user_id: UUID) -> User:
    user = await get_user(db, user_id)
    if not user or user.clinic_id != clinic_id:
        raise NotFoundException()
    return user


async def update_user_role(
    db: AsyncSession,
    admin: User,
    user_id: UUID,
    role: UserRole,
) -> User:
    """Cambia el rol de un miembro de la clínica del admin."""
    user = await get_clinic_member(db, admin.clinic_id, user_id)
    if user.id == admin.id and role != UserRole.ADMIN:
        # Evita que la clínica quede sin su propio admin
        raise InvalidInputException()

    user.role = role
    await db.flush()
    logger.info("Rol actualizado: user_id=%s role=%s by=%s", user.id, role.value, admin.id)
    return user


async def remove_user(db: AsyncSession, admin: User, user_id: UUID) -> None:
    """Baja definitiva: revoca todas las sesiones y borra el usuario."""
    user = await get_clinic_member(db, admin.clinic_id, user_id)
    if user.id == admin.id:
        raise InvalidInputException()

    await revoke_all_sessions(db, user.id)
    await db.delete(user)
    await db.flush()
    logger.info("Usuario eliminado: user_id=%s by=%s", user_id, admin.id)
