"""
Excepciones HTTP personalizadas para la API.
Cada excepción lleva un código estable que el frontend traduce a mensajes.
"""

from fastapi import HTTPException, status


class ApiException(HTTPException):
    """Base: se serializa como {"error": code} con el status indicado."""

    code: str = "server_error"

    def __init__(self, status_code: int, code: str | None = None):
        self.code = code or self.code
        super().__init__(status_code=status_code, detail=self.code)


class InvalidInputException(ApiException):
    """Entrada inválida (400), rechazada antes de tocar la base de datos."""

    code = "invalid_input"

    def __init__(self, code: str | None = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, code)


class InvalidCredentialsException(ApiException):
    """
    Email o contraseña incorrectos (400).
    Nunca distingue "usuario inexistente" de "contraseña errónea".
    """

    code = "invalid_credentials"

    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST)


class InvalidCodeException(ApiException):
    """Código TOTP incorrecto o fuera de ventana (400)."""

    code = "invalid_code"

    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST)


class EnrollRequiredException(ApiException):
    """El usuario debe (re)enrolar su app autenticadora (400)."""

    code = "enroll_required"

    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST)


class UnauthorizedException(ApiException):
    """Sesión ausente, inválida o expirada (401)."""

    code = "unauthorized"

    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED)


class ForbiddenException(ApiException):
    """Rol insuficiente (403)."""

    code = "forbidden"

    def __init__(self):
        super().__init__(status.HTTP_403_FORBIDDEN)


class NotFoundException(ApiException):
    """Recurso no encontrado (404)."""

    code = "not_found"

    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND)


class ConflictException(ApiException):
    """Conflicto de datos (409), ej: cuenta ya registrada."""

    code = "conflict"

    def __init__(self, code: str | None = None):
        super().__init__(status.HTTP_409_CONFLICT, code)
