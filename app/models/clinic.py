"""
Modelo Clinic — Tenant del sistema multi-tenant.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.utils import utcnow
from app.database import Base


class Clinic(Base):
    __tablename__ = "clinics"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    timezone: Mapped[str] = mapped_column(String(50), default="UTC")
    contact_email: Mapped[str | None] = mapped_column(String(255))
    settings: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        default=dict,
        comment="Departamentos, especialidades, horarios y permisos por rol",
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, index=True, comment="Admin que creó la clínica"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Clinic {self.name}>"
