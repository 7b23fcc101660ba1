"""
Tareas Celery de mantenimiento: limpieza de sesiones vencidas y barrido de
invitaciones pendientes ya expiradas.
"""

import asyncio
import logging

from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="sessions.purge_expired")
def purge_expired_sessions_task() -> int:
    """Borra las filas de `sessions` con expires_at ya cumplido."""

    async def _purge() -> int:
        from app.database import async_session_factory
        from app.services.session_service import purge_expired_sessions

        async with async_session_factory() as db:
            deleted = await purge_expired_sessions(db)
            await db.commit()
            return deleted

    deleted = asyncio.run(_purge())
    logger.info("Sesiones vencidas eliminadas: %s", deleted)
    return deleted


@celery_app.task(name="invites.expire_stale")
def expire_stale_invites_task() -> int:
    """Marca `expired` las invitaciones pendientes vencidas."""

    async def _expire() -> int:
        from app.database import async_session_factory
        from app.services.invite_service import expire_stale_invites

        async with async_session_factory() as db:
            updated = await expire_stale_invites(db)
            await db.commit()
            return updated

    updated = asyncio.run(_expire())
    logger.info("Invitaciones marcadas como vencidas: %s", updated)
    return updated
