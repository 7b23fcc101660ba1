"""
Configuración de Celery para tareas periódicas de mantenimiento.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings

settings = get_settings()

celery_app = Celery(
    "clinic_auth",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.maintenance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# ── Celery Beat ──────────────────────────────────────
# Solo higiene de almacenamiento: la expiración se evalúa en cada request.
celery_app.conf.beat_schedule = {
    "purge-expired-sessions": {
        "task": "sessions.purge_expired",
        "schedule": crontab(minute=0),
    },
    "expire-stale-invites": {
        "task": "invites.expire_stale",
        "schedule": crontab(minute=30),
    },
}
