"""
Utilidades de seguridad: hashing de contraseñas (Argon2) y tokens de sesión.
"""

import hashlib
import logging
import secrets
from functools import lru_cache

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
SESSION_TOKEN_BYTES = 32

# ── Hashing de contraseñas ───────────────────────────
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    """Genera hash Argon2 (salt único embebido en el resultado)."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verifica una contraseña contra su hash Argon2."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (UnknownHashError, ValueError):
        logger.warning("Hash de contraseña con formato inválido")
        return False


# ── Tokens de sesión ─────────────────────────────────
def generate_session_token() -> str:
    """Token opaco aleatorio; solo viaja en la cookie, nunca se persiste."""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex del token, que es lo único que se guarda en `sessions`."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_invite_code() -> str:
    return secrets.token_urlsafe(12)


@lru_cache
def dummy_password_hash() -> str:
    """Hash fijo para verificar cuando el usuario no existe o no tiene contraseña."""
    return hash_password(secrets.token_urlsafe(16))
