"""
Genera un AUTH_SECRET y un AUTH_KDF_SALT nuevos para el .env.
Ejecutar una vez por entorno:

    python scripts/generate_secret.py

Cambiar AUTH_SECRET deja ilegibles los secretos TOTP ya cifrados: los
usuarios afectados se re-enrolan en su siguiente login.
"""

import secrets


def generate_secret() -> None:
    master_secret = secrets.token_urlsafe(48)
    kdf_salt = secrets.token_hex(16)

    print("📌 Agrega las claves a tu .env:")
    print(f"   AUTH_SECRET={master_secret}")
    print(f"   AUTH_KDF_SALT={kdf_salt}")


if __name__ == "__main__":
    generate_secret()
