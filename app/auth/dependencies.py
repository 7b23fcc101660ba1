"""
Dependencies de FastAPI para autenticación por cookie de sesión y roles.
"""

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.database import get_db
from app.models.clinic import Clinic
from app.models.user import User, UserRole
from app.services.clinic_service import ensure_admin_clinic
from app.services.session_service import find_session_user
from app.services.user_service import get_user

settings = get_settings()


# ── Cookie de sesión ─────────────────────────────────
def get_session_token(request: Request) -> str | None:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def set_session_cookie(response: Response, token: str) -> None:
    """HttpOnly; SameSite=None + Secure en producción (frontend cross-site)."""
    secure = settings.cookie_secure
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        secure=secure,
        samesite="none" if secure else "lax",
    )


def clear_session_cookie(response: Response) -> None:
    secure = settings.cookie_secure
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=secure,
        samesite="none" if secure else "lax",
    )


def _remember_actor(request: Request, user: User) -> None:
    """Deja el actor en request.state para el middleware de auditoría."""
    request.state.user_id = user.id
    request.state.clinic_id = user.clinic_id


# ── Obtener usuario actual ───────────────────────────
async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Usuario de la sesión vigente, o None si no hay sesión válida."""
    user_id = await find_session_user(db, get_session_token(request))
    if user_id is None:
        return None
    user = await get_user(db, user_id)
    if user is not None:
        _remember_actor(request, user)
    return user


async def get_current_user(
    user: User | None = Depends(get_optional_user),
) -> User:
    if user is None:
        raise UnauthorizedException()
    return user


# ── Factory de dependency con roles ──────────────────
def require_role(*allowed_roles: UserRole):
    """
    Factory que crea un dependency que verifica el rol del usuario.

    Uso:
        @router.get("/admin-only")
        async def admin_endpoint(user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """

    async def _check_role(
        user: User = Depends(get_current_user),
    ) -> User:
        if user.role not in allowed_roles:
            raise ForbiddenException()
        return user

    return _check_role


async def get_admin_clinic(
    request: Request,
    user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> Clinic:
    """Clínica del admin, creada perezosamente en su primera acción."""
    clinic = await ensure_admin_clinic(db, user)
    request.state.clinic_id = clinic.id
    return clinic
