"""
Middleware de auditoría: observa cada request/response y encola una fila.
El usuario actor lo deja en `request.state` la dependency de autenticación.
"""

import logging

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.utils import get_client_ip
from app.services.audit_service import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


class AuditMiddleware(BaseHTTPMiddleware):
    """Registra método, path, status, actor, IP y user-agent de cada request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            response: Response = await call_next(request)
        except Exception:
            self._record(request, 500)
            raise
        self._record(request, response.status_code)
        return response

    def _record(self, request: Request, status_code: int) -> None:
        writer: AuditWriter | None = getattr(request.app.state, "audit_writer", None)
        if writer is None:
            return
        try:
            writer.submit(
                AuditEntry(
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    user_id=getattr(request.state, "user_id", None),
                    clinic_id=getattr(request.state, "clinic_id", None),
                    ip_address=get_client_ip(request),
                    user_agent=request.headers.get("user-agent"),
                )
            )
        except Exception:
            logger.exception("No se pudo encolar el audit log")
