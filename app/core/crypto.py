"""
Cifrado autenticado (AES-256-GCM) de secretos pequeños, como las semillas TOTP.

La clave se deriva una sola vez del secreto maestro con Scrypt, de modo que
AUTH_SECRET no necesita ser una clave de entropía completa. Cada blob es
base64(nonce ‖ tag ‖ ciphertext).
"""

import base64
import binascii
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from app.config import get_settings

NONCE_LEN = 12
TAG_LEN = 16
KEY_LEN = 32
DEFAULT_MASTER_SECRET = "dev-secret-change-me"


class DecryptionError(Exception):
    """El blob no verifica: clave equivocada, datos corruptos o manipulados."""


def derive_key(master_secret: str, salt: str) -> bytes:
    """Deriva la clave AES de 32 bytes (Scrypt n=2**14, r=8, p=1)."""
    kdf = Scrypt(salt=salt.encode(), length=KEY_LEN, n=2**14, r=8, p=1)
    return kdf.derive(master_secret.encode())


class SecretCipher:
    """Cifra y descifra strings; inmutable y seguro de compartir entre requests."""

    __slots__ = ("_aead",)

    def __init__(self, key: bytes):
        if len(key) != KEY_LEN:
            raise ValueError("La clave AES-256-GCM debe tener 32 bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_master_secret(cls, master_secret: str, salt: str) -> "SecretCipher":
        return cls(derive_key(master_secret, salt))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LEN)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        # AESGCM devuelve ciphertext ‖ tag; se almacena nonce ‖ tag ‖ ciphertext
        ciphertext, tag = sealed[:-TAG_LEN], sealed[-TAG_LEN:]
        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Blob no es base64 válido") from exc

        if len(raw) < NONCE_LEN + TAG_LEN:
            raise DecryptionError("Blob demasiado corto")

        nonce = raw[:NONCE_LEN]
        tag = raw[NONCE_LEN:NONCE_LEN + TAG_LEN]
        ciphertext = raw[NONCE_LEN + TAG_LEN:]
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as exc:
            raise DecryptionError("Tag de integridad inválido") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Contenido no es UTF-8") from exc


@lru_cache
def get_cipher() -> SecretCipher:
    """
    Cipher del proceso, derivado una única vez desde la configuración.
    Se inyecta como dependency en los endpoints que lo necesitan.
    """
    settings = get_settings()
    if settings.is_production and settings.AUTH_SECRET == DEFAULT_MASTER_SECRET:
        raise RuntimeError(
            "AUTH_SECRET no configurado. Genera uno con: "
            "python scripts/generate_secret.py y ponlo en .env"
        )
    return SecretCipher.from_master_secret(settings.AUTH_SECRET, settings.AUTH_KDF_SALT)
