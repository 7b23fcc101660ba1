"""
Servicio de clínicas: asignación perezosa del tenant a cada admin.
"""

import logging
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import FEATURES, default_permissions
from app.core.exceptions import InvalidInputException
from app.models.clinic import Clinic
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

WEEK_DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def default_clinic_settings() -> dict:
    timings = {day: {"open": "09:00", "close": "17:00", "closed": False} for day in WEEK_DAYS}
    timings["sat"]["close"] = "13:00"
    timings["sun"]["closed"] = True
    return {
        "departments": ["General"],
        "specialties": [],
        "timings": timings,
        "permissions": default_permissions(),
    }


async def get_clinic(db: AsyncSession, clinic_id: UUID) -> Clinic | None:
    result = await db.execute(select(Clinic).where(Clinic.id == clinic_id))
    return result.scalar_one_or_none()


async def ensure_admin_clinic(db: AsyncSession, user: User) -> Clinic:
    """
    Retorna la clínica del admin, creándola en su primera acción.
    Nunca reasigna un clinic_id existente: la asignación es un UPDATE
    condicionado a `clinic_id IS NULL`.
    """
    if user.clinic_id is not None:
        clinic = await get_clinic(db, user.clinic_id)
        if clinic:
            return clinic
        # El id asignado apunta a una fila inexistente: se recrea con ese id
        clinic = Clinic(
            id=user.clinic_id,
            name="My Clinic",
            contact_email=user.email,
            owner_id=user.id,
            settings=default_clinic_settings(),
        )
        db.add(clinic)
        await db.flush()
        return clinic

    clinic = Clinic(
        name="My Clinic",
        contact_email=user.email,
        owner_id=user.id,
        settings=default_clinic_settings(),
    )
    db.add(clinic)
    await db.flush()

    result = await db.execute(
        update(User)
        .where(User.id == user.id, User.clinic_id.is_(None))
        .values(clinic_id=clinic.id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Otro request asignó la clínica primero: descartar la nuestra
        await db.execute(
            delete(Clinic).where(Clinic.id == clinic.id)
            .execution_options(synchronize_session=False)
        )
        db.expunge(clinic)
        await db.refresh(user, ["clinic_id"])
        return await get_clinic(db, user.clinic_id)

    user.clinic_id = clinic.id
    logger.info("Clínica creada para admin: clinic_id=%s user_id=%s", clinic.id, user.id)
    return clinic


def _validate_permissions(permissions: dict) -> dict[str, list[str]]:
    cleaned: dict[str, list[str]] = {}
    for role, features in permissions.items():
        try:
            UserRole(role)
        except ValueError:
            raise InvalidInputException()
        unknown = set(features) - set(FEATURES)
        if unknown:
            raise InvalidInputException()
        cleaned[role] = list(dict.fromkeys(features))
    return cleaned


async def update_clinic(db: AsyncSession, clinic: Clinic, data: dict) -> Clinic:
    """Actualiza datos y settings de la clínica (merge superficial de settings)."""
    for field in ("name", "address", "timezone", "contact_email"):
        if data.get(field) is not None:
            setattr(clinic, field, data[field])

    settings = dict(clinic.settings or default_clinic_settings())
    for key in ("departments", "specialties", "timings"):
        if data.get(key) is not None:
            settings[key] = data[key]
    if data.get("permissions") is not None:
        settings["permissions"] = _validate_permissions(data["permissions"])
    clinic.settings = settings

    await db.flush()
    return clinic
