"""
Crea (o actualiza) un usuario admin con contraseña.

Uso:
    python scripts/seed_admin.py <email> <password>

Si el usuario existe se le asigna rol admin y la nueva contraseña;
su clínica se crea en la primera acción administrativa.
"""

import asyncio
import sys
from pathlib import Path

# Agregar el directorio raíz al path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.security import MIN_PASSWORD_LENGTH, hash_password  # noqa: E402
from app.core.utils import is_valid_email, normalize_email  # noqa: E402
from app.database import async_session_factory, engine  # noqa: E402
from app.models.user import UserRole  # noqa: E402
from app.services.user_service import get_or_create_user  # noqa: E402


async def seed_admin(email: str, password: str) -> None:
    async with async_session_factory() as db:
        user = await get_or_create_user(db, email)
        user.role = UserRole.ADMIN
        user.password_hash = hash_password(password)
        await db.commit()
        print(f"✅ Admin listo: {user.email} (id={user.id})")

    await engine.dispose()


def main() -> None:
    if len(sys.argv) != 3:
        print("Uso: python scripts/seed_admin.py <email> <password>")
        sys.exit(1)

    email, password = normalize_email(sys.argv[1]), sys.argv[2]
    if not is_valid_email(email):
        print(f"ERROR: email inválido: {email}")
        sys.exit(1)
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"ERROR: la contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")
        sys.exit(1)

    asyncio.run(seed_admin(email, password))


if __name__ == "__main__":
    main()
