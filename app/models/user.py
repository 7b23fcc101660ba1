"""
Modelo User — identidad, credenciales y rol RBAC.
El estado TOTP vive en tres columnas; la capa de servicio lo traduce a un
estado explícito (ver app.services.totp_service).
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.utils import utcnow
from app.database import Base


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persistir el valor ('doctor') y no el nombre del miembro ('DOCTOR')."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    """Roles del sistema."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"


DEFAULT_ROLE = UserRole.DOCTOR


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="SET NULL"), index=True
    )

    # ── Datos de acceso ──────────────────────────────
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True,
        comment="Siempre en minúsculas"
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255), comment="Hash Argon2; null hasta fijar contraseña"
    )
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="userrole", values_callable=enum_values),
        nullable=False, default=DEFAULT_ROLE,
    )
    specialty: Mapped[str | None] = mapped_column(String(100))

    # ── TOTP ─────────────────────────────────────────
    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    totp_secret_encrypted: Mapped[str | None] = mapped_column(
        Text, comment="Secreto TOTP definitivo (AES-GCM)"
    )
    totp_temp_secret_encrypted: Mapped[str | None] = mapped_column(
        Text, comment="Secreto TOTP pendiente de confirmar (AES-GCM)"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
