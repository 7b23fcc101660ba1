"""
Permisos por rol sobre las funcionalidades de la clínica.
Cada clínica guarda su propio mapa en `settings["permissions"]`; este módulo
define el mapa por defecto y la consulta.
"""

from app.models.user import UserRole

# ── Funcionalidades conocidas ────────────────────────
FEATURES: tuple[str, ...] = (
    "appointments",
    "queue",
    "encounters",
    "labs",
    "referrals",
    "billing",
    "analytics",
    "pharmacy",
)

# ── Permisos por defecto ─────────────────────────────
# Formato: {rol: [funcionalidades permitidas]}
DEFAULT_FEATURE_PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.ADMIN: list(FEATURES),
    UserRole.DOCTOR: ["appointments", "queue", "encounters", "labs", "referrals", "pharmacy"],
    # Recepción no ve historias clínicas ni laboratorio
    UserRole.RECEPTIONIST: ["appointments", "queue", "billing"],
}


def default_permissions() -> dict[str, list[str]]:
    """Copia serializable (JSON) del mapa por defecto."""
    return {role.value: list(features) for role, features in DEFAULT_FEATURE_PERMISSIONS.items()}


def has_feature(clinic_settings: dict | None, role: UserRole, feature: str) -> bool:
    """Verifica si un rol tiene acceso a una funcionalidad en una clínica."""
    if role == UserRole.ADMIN:
        return True
    permissions = (clinic_settings or {}).get("permissions") or default_permissions()
    return feature in permissions.get(role.value, [])
