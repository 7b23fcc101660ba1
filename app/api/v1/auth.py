"""
Endpoints de autenticación: registro, login (contraseña y TOTP), sesión, logout.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import (
    clear_session_cookie,
    get_optional_user,
    get_session_token,
    set_session_cookie,
)
from app.config import get_settings
from app.core.crypto import DecryptionError, SecretCipher, get_cipher
from app.core.exceptions import InvalidInputException, NotFoundException
from app.core.utils import is_valid_email, normalize_email, utcnow
from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    AuthOkResponse,
    CodeRequest,
    DebugTotpResponse,
    MeResponse,
    MeUser,
    OkResponse,
    PasswordLoginRequest,
    RegisterRequest,
    ResetUserRequest,
    StartCodeResponse,
    StartEnrollResponse,
    StartRequest,
)
from app.services import auth_service, session_service, totp_service
from app.services.user_service import get_or_create_user, get_user_by_email

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter()


async def _finish_login(
    db: AsyncSession,
    request: Request,
    response: Response,
    user: User,
    token: str,
) -> AuthOkResponse:
    """Persiste la sesión antes de escribir la cookie."""
    await db.commit()
    set_session_cookie(response, token)
    request.state.user_id = user.id
    request.state.clinic_id = user.clinic_id
    return AuthOkResponse(role=user.role)


@router.post("/register", response_model=AuthOkResponse)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Registra una cuenta con contraseña.
    Si existe una invitación pendiente para el email, aplica su rol y clínica.
    """
    user = await auth_service.register(
        db,
        email=data.email,
        password=data.password,
        specialty=data.specialty,
        role=data.role,
    )
    return AuthOkResponse(role=user.role)


@router.post("/login-password", response_model=AuthOkResponse)
async def login_password(
    data: PasswordLoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Login tradicional con email y contraseña."""
    result = await auth_service.login_password(db, email=data.email, password=data.password)
    return await _finish_login(db, request, response, result.user, result.token)


@router.post("/start", response_model=StartEnrollResponse | StartCodeResponse)
async def start(
    data: StartRequest,
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
):
    """
    Inicia el flujo TOTP: `mode=code` si ya está enrolado, o bien
    `mode=enroll` con la URI otpauth, su QR en PNG y el secreto para
    alta manual.
    """
    email = normalize_email(data.email)
    if not is_valid_email(email):
        raise InvalidInputException("invalid_email")

    result = await totp_service.start_enrollment(db, cipher, email, force=data.force)
    if isinstance(result, totp_service.CodeMode):
        return StartCodeResponse()
    return StartEnrollResponse(
        otpauth_url=result.otpauth_url,
        secret=result.secret,
        qr_data_url=result.qr_data_url,
    )


@router.post("/verify-enroll", response_model=AuthOkResponse)
async def verify_enroll(
    data: CodeRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
):
    """Confirma el enrolamiento con el primer código e inicia sesión."""
    result = await totp_service.verify_enrollment(db, cipher, data.email, data.code)
    return await _finish_login(db, request, response, result.user, result.token)


@router.post("/login", response_model=AuthOkResponse)
async def login(
    data: CodeRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
):
    """Login con código de la app autenticadora."""
    result = await totp_service.login_with_code(db, cipher, data.email, data.code)
    return await _finish_login(db, request, response, result.user, result.token)


@router.get("/me", response_model=MeResponse)
async def get_me(
    user: User | None = Depends(get_optional_user),
):
    """Retorna el usuario de la sesión actual, o null."""
    if user is None:
        return MeResponse(user=None)
    return MeResponse(
        user=MeUser(
            id=user.id,
            email=user.email,
            specialty=user.specialty,
            role=user.role,
            clinic_id=user.clinic_id,
        )
    )


@router.post(
    "/logout",
    response_model=OkResponse,
    dependencies=[Depends(get_optional_user)],
)
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Revoca la sesión actual y borra la cookie. El usuario se resuelve
    antes de revocar para que la auditoría registre el actor.
    """
    token = get_session_token(request)
    if token:
        await session_service.revoke_session(db, token)
        clear_session_cookie(response)
    return OkResponse()


# ── Depuración (solo con AUTH_DEBUG fuera de producción) ──
def _require_debug() -> None:
    if not settings.debug_endpoints_enabled:
        raise NotFoundException()


@router.get(
    "/debug-totp",
    response_model=DebugTotpResponse,
    dependencies=[Depends(_require_debug)],
    include_in_schema=False,
)
async def debug_totp(
    email: str,
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
):
    """Código TOTP actual del usuario (pendiente o definitivo)."""
    user = await get_user_by_email(db, email)
    if not user:
        raise NotFoundException()
    try:
        secret = totp_service.debug_secret(user, cipher)
    except DecryptionError:
        raise InvalidInputException("no_secret")
    if not secret:
        raise InvalidInputException("no_secret")

    now = utcnow()
    return DebugTotpResponse(
        now=int(now.timestamp() * 1000),
        token=totp_service.current_code(secret, now=now),
        secret=secret,
    )


@router.post(
    "/admin/reset-user",
    response_model=OkResponse,
    dependencies=[Depends(_require_debug)],
    include_in_schema=False,
)
async def debug_reset_user(
    data: ResetUserRequest,
    db: AsyncSession = Depends(get_db),
):
    """Limpia el TOTP del email y revoca sus sesiones."""
    email = normalize_email(data.email)
    if not is_valid_email(email):
        raise InvalidInputException("invalid_email")
    user = await get_or_create_user(db, email)
    await auth_service.reset_user_auth(db, user)
    return OkResponse()
