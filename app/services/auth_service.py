"""
Servicio de autenticación: registro, login con contraseña y reset de credenciales.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictException,
    InvalidCredentialsException,
    InvalidInputException,
)
from app.core.security import (
    MIN_PASSWORD_LENGTH,
    dummy_password_hash,
    hash_password,
    verify_password,
)
from app.core.utils import is_valid_email, normalize_email
from app.models.user import DEFAULT_ROLE, User, UserRole
from app.services.invite_service import apply_invite_to_new_user
from app.services.session_service import issue_session, revoke_all_sessions
from app.services.totp_service import reset_totp
from app.services.user_service import get_user_by_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswordLogin:
    user: User
    token: str


async def register(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    specialty: str | None = None,
    role: UserRole | None = None,
) -> User:
    """
    Registra una cuenta con contraseña y aplica la invitación pendiente.
    Un usuario auto-provisionado por `start` que aún no completó el
    enrolamiento recibe la contraseña, pero conserva su rol: el rol solo
    cambia por invitación o por un admin.
    """
    email = normalize_email(email)
    if not is_valid_email(email) or len(password or "") < MIN_PASSWORD_LENGTH:
        raise InvalidInputException()

    user = await get_user_by_email(db, email)
    if user and (user.password_hash or user.totp_enabled):
        raise ConflictException("account_exists")

    if user is None:
        user = User(email=email, role=role or DEFAULT_ROLE)
        db.add(user)

    user.password_hash = hash_password(password)
    if specialty:
        user.specialty = specialty.strip()
    await db.flush()

    await apply_invite_to_new_user(db, email, user)

    logger.info("Usuario registrado: user_id=%s role=%s", user.id, user.role.value)
    return user


async def login_password(
    db: AsyncSession,
    *,
    email: str,
    password: str,
) -> PasswordLogin:
    """Autentica con email y contraseña y emite una sesión."""
    user = await get_user_by_email(db, email)

    if not user or not user.password_hash:
        # Verificación señuelo: mismo costo exista o no el email
        verify_password(password or "", dummy_password_hash())
        logger.warning("Login fallido para email=%s", normalize_email(email))
        raise InvalidCredentialsException()

    if not verify_password(password or "", user.password_hash):
        logger.warning("Login fallido para email=%s", normalize_email(email))
        raise InvalidCredentialsException()

    token = await issue_session(db, user.id)
    return PasswordLogin(user=user, token=token)


async def reset_user_auth(db: AsyncSession, user: User) -> None:
    """Reset de credenciales: limpia TOTP y revoca todas las sesiones."""
    reset_totp(user)
    await db.flush()
    await revoke_all_sessions(db, user.id)
    logger.info("Credenciales TOTP reiniciadas: user_id=%s", user.id)
