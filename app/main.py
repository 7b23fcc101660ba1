"""
Punto de entrada de la aplicación FastAPI.
Configura CORS, auditoría, manejo de errores y monta los routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_v1_router
from app.config import get_settings
from app.core.crypto import get_cipher
from app.core.exceptions import ApiException
from app.core.logging import configure_logging
from app.database import async_session_factory
from app.middleware.audit import AuditMiddleware
from app.services.audit_service import AuditWriter

settings = get_settings()

logger = logging.getLogger(__name__)


# ── Lifecycle ────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Eventos de inicio y cierre de la aplicación."""
    configure_logging(settings.LOG_LEVEL)
    # Deriva la clave de cifrado una sola vez, antes del primer request
    get_cipher()
    if settings.debug_endpoints_enabled:
        logger.warning("AUTH_DEBUG activo: endpoints de depuración expuestos")

    writer = AuditWriter(async_session_factory, maxsize=settings.AUDIT_QUEUE_SIZE)
    await writer.start()
    app.state.audit_writer = writer
    logger.info("%s iniciando en modo %s", settings.APP_NAME, settings.APP_ENV)
    yield
    logger.info("%s cerrando...", settings.APP_NAME)
    await writer.stop()


# ── App ──────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    description="API de autenticación y seguridad de sesiones para clínicas",
    version="0.1.0",
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
    lifespan=lifespan,
)

# ── Middleware ───────────────────────────────────────
# El último agregado es el más externo: CORS envuelve a auditoría
app.add_middleware(AuditMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=86400,
)


# ── Exception Handlers ───────────────────────────────
@app.exception_handler(ApiException)
async def api_exception_handler(request: Request, exc: ApiException):
    """Errores de dominio con código estable: {"error": code}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Los errores de validación no exponen el detalle de pydantic."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_input"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura excepciones no manejadas para evitar exponer detalles internos."""
    logger.exception("Error no manejado en %s %s", request.method, request.url.path)
    content = {"error": "server_error"}
    if settings.DEBUG and not settings.is_production:
        content["detail"] = str(exc)
        content["type"] = type(exc).__name__
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )


# ── Routers ──────────────────────────────────────────
app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)


# ── Health Check ─────────────────────────────────────
@app.get("/health", tags=["Health"])
async def health_check():
    """Endpoint de health check para monitoreo."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "environment": settings.APP_ENV,
    }
