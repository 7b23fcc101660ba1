"""
Servicio TOTP (RFC 6238): enrolamiento y login con app autenticadora.

El estado de cada usuario se modela de forma explícita:

    Unenrolled ──start──▶ PendingEnrollment(secret) ──verify──▶ Enrolled(secret)
        ▲                                                            │
        └──────────────────────── start(force=True) ◀────────────────┘

`read_totp_state` / `write_totp_state` son el único punto que traduce entre
este estado y las columnas anulables de `users`, así que combinaciones
inválidas (ambos secretos, habilitado sin secreto) no existen en el código.
"""

import base64
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Union

import pyotp
import qrcode
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.crypto import DecryptionError, SecretCipher
from app.core.exceptions import EnrollRequiredException, InvalidCodeException
from app.core.utils import normalize_email, utcnow
from app.models.user import User
from app.services.session_service import issue_session
from app.services.user_service import get_or_create_user, get_user_by_email

logger = logging.getLogger(__name__)

settings = get_settings()

TOTP_DIGITS = 6
TOTP_STEP_SECONDS = 30
TOTP_VALID_WINDOW = 1
CODE_RE = re.compile(r"^\d{6}$")


# ── Estados ──────────────────────────────────────────
@dataclass(frozen=True)
class Unenrolled:
    pass


@dataclass(frozen=True)
class PendingEnrollment:
    secret: str


@dataclass(frozen=True)
class Enrolled:
    secret: str


TotpState = Union[Unenrolled, PendingEnrollment, Enrolled]


# ── Resultados de start ──────────────────────────────
@dataclass(frozen=True)
class CodeMode:
    """El usuario ya está enrolado: pedir código de 6 dígitos."""


@dataclass(frozen=True)
class EnrollChallenge:
    """Único momento en que el secreto en claro sale del servidor."""
    otpauth_url: str
    secret: str
    qr_data_url: str


StartResult = Union[CodeMode, EnrollChallenge]


@dataclass(frozen=True)
class TotpLogin:
    user: User
    token: str


# ── Traducción estado ⇄ columnas ─────────────────────
def read_totp_state(user: User, cipher: SecretCipher) -> TotpState:
    """
    Lee el estado TOTP del usuario.
    Lanza DecryptionError si el slot relevante no verifica; nunca lo
    confunde con "sin secreto".
    """
    if user.totp_enabled and user.totp_secret_encrypted:
        return Enrolled(cipher.decrypt(user.totp_secret_encrypted))
    if user.totp_temp_secret_encrypted:
        return PendingEnrollment(cipher.decrypt(user.totp_temp_secret_encrypted))
    return Unenrolled()


def write_totp_state(user: User, state: TotpState, cipher: SecretCipher) -> None:
    if isinstance(state, Enrolled):
        user.totp_enabled = True
        user.totp_secret_encrypted = cipher.encrypt(state.secret)
        user.totp_temp_secret_encrypted = None
    elif isinstance(state, PendingEnrollment):
        user.totp_enabled = False
        user.totp_secret_encrypted = None
        user.totp_temp_secret_encrypted = cipher.encrypt(state.secret)
    else:
        user.totp_enabled = False
        user.totp_secret_encrypted = None
        user.totp_temp_secret_encrypted = None


def reset_totp(user: User) -> None:
    """Vuelve a Unenrolled sin necesidad de descifrar nada."""
    user.totp_enabled = False
    user.totp_secret_encrypted = None
    user.totp_temp_secret_encrypted = None


# ── Códigos ──────────────────────────────────────────
def normalize_code(raw: str | None) -> str:
    """Quita espacios/guiones: "123 456" → "123456"."""
    return re.sub(r"\D", "", raw or "")


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_STEP_SECONDS)


def verify_code(secret: str, code: str, *, now: datetime | None = None) -> bool:
    """Acepta el paso actual, el anterior y el siguiente (±30 s), nada más."""
    code = normalize_code(code)
    if not CODE_RE.match(code):
        return False
    return _totp(secret).verify(code, for_time=now or utcnow(), valid_window=TOTP_VALID_WINDOW)


def current_code(secret: str, *, now: datetime | None = None) -> str:
    return _totp(secret).at(now or utcnow())


def provisioning_uri(email: str, secret: str) -> str:
    return _totp(secret).provisioning_uri(name=email, issuer_name=settings.TOTP_ISSUER)


def qr_data_url(uri: str) -> str:
    """Renderiza la URI otpauth como PNG embebido (`data:image/png;base64,...`)."""
    qr = qrcode.QRCode(version=1, box_size=6, border=4)
    qr.add_data(uri)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


async def _self_heal(db: AsyncSession, user: User, slot: str) -> None:
    """
    Limpia un secreto que no descifra y persiste el cambio aunque el
    request termine con error (el rollback de get_db no debe deshacerlo).
    """
    logger.warning("Secreto TOTP corrupto (%s) para user_id=%s; se limpia", slot, user.id)
    if slot == "temp":
        user.totp_temp_secret_encrypted = None
    else:
        reset_totp(user)
    await db.commit()


# ── Operaciones ──────────────────────────────────────
async def start_enrollment(
    db: AsyncSession,
    cipher: SecretCipher,
    email: str,
    *,
    force: bool = False,
) -> StartResult:
    """
    Inicia el flujo TOTP para un email (auto-provisiona el usuario).
    - Enrolled y sin force → CodeMode.
    - force → limpia todo y genera un secreto nuevo.
    - PendingEnrollment → re-muestra el mismo secreto (idempotente).
    """
    email = normalize_email(email)
    user = await get_or_create_user(db, email)

    if force:
        state: TotpState = Unenrolled()
        reset_totp(user)
    else:
        try:
            state = read_totp_state(user, cipher)
        except DecryptionError:
            logger.warning("Secreto TOTP corrupto en start para user_id=%s; se reinicia", user.id)
            state = Unenrolled()
            reset_totp(user)

    if isinstance(state, Enrolled):
        return CodeMode()

    if isinstance(state, PendingEnrollment):
        secret = state.secret
    else:
        secret = pyotp.random_base32()
        write_totp_state(user, PendingEnrollment(secret), cipher)
        await db.flush()

    if settings.debug_endpoints_enabled:
        logger.debug("Enroll start email=%s sample=%s", email, current_code(secret))

    uri = provisioning_uri(email, secret)
    return EnrollChallenge(otpauth_url=uri, secret=secret, qr_data_url=qr_data_url(uri))


async def verify_enrollment(
    db: AsyncSession,
    cipher: SecretCipher,
    email: str,
    code: str,
    *,
    now: datetime | None = None,
) -> TotpLogin:
    """Confirma el enrolamiento: promueve temp → definitivo y emite sesión."""
    user = await get_user_by_email(db, email)
    if not user or not user.totp_temp_secret_encrypted:
        raise EnrollRequiredException()

    try:
        secret = cipher.decrypt(user.totp_temp_secret_encrypted)
    except DecryptionError:
        await _self_heal(db, user, "temp")
        raise EnrollRequiredException()

    if not verify_code(secret, code, now=now):
        raise InvalidCodeException()

    write_totp_state(user, Enrolled(secret), cipher)
    await db.flush()
    token = await issue_session(db, user.id, now=now)
    logger.info("Enrolamiento TOTP completado: user_id=%s", user.id)
    return TotpLogin(user=user, token=token)


async def login_with_code(
    db: AsyncSession,
    cipher: SecretCipher,
    email: str,
    code: str,
    *,
    now: datetime | None = None,
) -> TotpLogin:
    """Login con código TOTP; exige estado Enrolled."""
    user = await get_user_by_email(db, email)
    if not user or not (user.totp_enabled and user.totp_secret_encrypted):
        raise EnrollRequiredException()

    try:
        state = read_totp_state(user, cipher)
    except DecryptionError:
        await _self_heal(db, user, "permanent")
        raise EnrollRequiredException()

    if not verify_code(state.secret, code, now=now):
        logger.warning("Login TOTP fallido: user_id=%s", user.id)
        raise InvalidCodeException()

    token = await issue_session(db, user.id, now=now)
    return TotpLogin(user=user, token=token)


def debug_secret(user: User, cipher: SecretCipher) -> str | None:
    """Secreto pendiente o definitivo, solo para el endpoint de depuración."""
    state = read_totp_state(user, cipher)
    if isinstance(state, (PendingEnrollment, Enrolled)):
        return state.secret
    return None
