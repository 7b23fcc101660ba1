"""
Servicio de sesiones: emisión, validación y revocación.

Solo se persiste el SHA-256 del token. La expiración es absoluta desde la
emisión (sin renovación deslizante) y se evalúa de forma perezosa: una fila
vencida equivale a una fila inexistente.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import UnauthorizedException
from app.core.security import generate_session_token, hash_token
from app.core.utils import utcnow
from app.models.session import UserSession

logger = logging.getLogger(__name__)

settings = get_settings()


def session_ttl() -> timedelta:
    return timedelta(days=settings.SESSION_TTL_DAYS)


async def issue_session(
    db: AsyncSession,
    user_id: UUID,
    *,
    now: datetime | None = None,
) -> str:
    """
    Crea la fila de sesión y retorna el token crudo (una sola vez).
    El caller debe hacer commit antes de escribir la cookie.
    """
    now = now or utcnow()
    token = generate_session_token()
    db.add(
        UserSession(
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=now + session_ttl(),
            created_at=now,
        )
    )
    await db.flush()
    return token


async def find_session_user(
    db: AsyncSession,
    token: str | None,
    *,
    now: datetime | None = None,
) -> UUID | None:
    """Retorna el user_id de una sesión vigente, o None."""
    if not token:
        return None
    now = now or utcnow()
    result = await db.execute(
        select(UserSession.user_id).where(
            UserSession.token_hash == hash_token(token),
            UserSession.expires_at > now,
        )
    )
    return result.scalar_one_or_none()


async def validate_session(
    db: AsyncSession,
    token: str | None,
    *,
    now: datetime | None = None,
) -> UUID:
    """Igual que find_session_user pero lanza 401 si no hay sesión vigente."""
    user_id = await find_session_user(db, token, now=now)
    if user_id is None:
        raise UnauthorizedException()
    return user_id


async def revoke_session(db: AsyncSession, token: str | None) -> bool:
    """Logout: borra la sesión del token. Retorna si existía."""
    if not token:
        return False
    result = await db.execute(
        delete(UserSession).where(UserSession.token_hash == hash_token(token))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def revoke_all_sessions(db: AsyncSession, user_id: UUID) -> int:
    """Borra todas las sesiones de un usuario (reset de credenciales / baja)."""
    result = await db.execute(
        delete(UserSession).where(UserSession.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("Sesiones revocadas: user_id=%s count=%s", user_id, result.rowcount)
    return result.rowcount


async def purge_expired_sessions(
    db: AsyncSession,
    *,
    now: datetime | None = None,
) -> int:
    """Limpieza de filas vencidas; la validez no depende de este proceso."""
    now = now or utcnow()
    result = await db.execute(
        delete(UserSession).where(UserSession.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
