"""
Servicio de Audit Log — registra cada request observado por el middleware.
INSERT-only, nunca se modifica ni elimina.

La escritura es best-effort: el request solo encola la entrada y un consumidor
asíncrono la persiste. Si la escritura falla se registra en el log local y la
entrada se descarta; el request original nunca se entera.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.utils import utcnow
from app.models.audit_log import AuditLog
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    method: str
    path: str
    status_code: int
    user_id: UUID | None = None
    clinic_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime = field(default_factory=utcnow)


async def log_request(db: AsyncSession, entry: AuditEntry) -> AuditLog:
    """Inserta un registro de auditoría inmutable."""
    row = AuditLog(
        user_id=entry.user_id,
        clinic_id=entry.clinic_id,
        method=entry.method,
        path=entry.path[:500],
        status_code=entry.status_code,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        created_at=entry.created_at,
    )
    db.add(row)
    await db.flush()
    return row


class AuditWriter:
    """Cola acotada + una tarea consumidora que persiste las entradas."""

    def __init__(self, session_factory: async_sessionmaker, maxsize: int = 1000):
        self._session_factory = session_factory
        self._maxsize = maxsize
        self._queue: asyncio.Queue[AuditEntry] | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self._maxsize)
        self._task = asyncio.create_task(self._run(), name="audit-writer")

    async def stop(self, timeout: float = 5.0) -> None:
        """Drena lo pendiente (con timeout) y detiene el consumidor."""
        if not self.running:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Audit writer: %s entradas sin persistir al cerrar", self._queue.qsize())
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def submit(self, entry: AuditEntry) -> bool:
        """Encola sin bloquear. Retorna False si la entrada se descartó."""
        if not self.running:
            logger.warning("Audit writer detenido; entrada descartada: %s %s", entry.method, entry.path)
            return False
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            logger.warning("Cola de auditoría llena; entrada descartada: %s %s", entry.method, entry.path)
            return False
        return True

    async def drain(self) -> None:
        """Espera a que se persista todo lo encolado."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._persist(entry)
            except Exception:
                logger.exception("Error persistiendo audit log: %s %s", entry.method, entry.path)
            finally:
                self._queue.task_done()

    async def _persist(self, entry: AuditEntry) -> None:
        async with self._session_factory() as session:
            await log_request(session, entry)
            await session.commit()


async def list_audit_logs(
    db: AsyncSession,
    *,
    clinic_id: UUID,
    limit: int = 200,
    offset: int = 0,
    user_id: UUID | None = None,
) -> list[dict]:
    """Registros de la clínica, más recientes primero, con el email del actor."""
    query = (
        select(AuditLog, User.email)
        .outerjoin(User, User.id == AuditLog.user_id)
        .where(AuditLog.clinic_id == clinic_id)
    )
    if user_id:
        query = query.where(AuditLog.user_id == user_id)

    query = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)

    return [
        {
            "id": log.id,
            "user_id": log.user_id,
            "email": email,
            "method": log.method,
            "path": log.path,
            "ip": log.ip_address,
            "user_agent": log.user_agent,
            "status": log.status_code,
            "created_at": log.created_at,
        }
        for log, email in result.all()
    ]
