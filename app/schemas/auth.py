"""
Schemas de autenticación: registro, login por contraseña, flujo TOTP.
Los emails llegan como str libre: su formato lo valida el servicio para
responder con el código de error estable de cada endpoint.
"""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Registro / contraseña ────────────────────────────
class RegisterRequest(BaseModel):
    email: str = ""
    password: str = ""
    specialty: str | None = Field(None, max_length=100)
    role: UserRole | None = None


class PasswordLoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class AuthOkResponse(BaseModel):
    ok: bool = True
    role: UserRole


# ── TOTP ─────────────────────────────────────────────
class StartRequest(BaseModel):
    email: str = ""
    force: bool = False


class StartCodeResponse(BaseModel):
    mode: Literal["code"] = "code"


class StartEnrollResponse(CamelModel):
    mode: Literal["enroll"] = "enroll"
    otpauth_url: str = Field(..., alias="otpauthUrl")
    secret: str
    qr_data_url: str = Field(..., alias="qrDataUrl")


class CodeRequest(BaseModel):
    email: str = ""
    code: str = ""


# ── Sesión actual ────────────────────────────────────
class MeUser(CamelModel):
    id: UUID
    email: str
    specialty: str | None = None
    role: UserRole
    clinic_id: UUID | None = Field(None, alias="clinicId")


class MeResponse(BaseModel):
    user: MeUser | None = None


class OkResponse(BaseModel):
    ok: bool = True


# ── Depuración ───────────────────────────────────────
class ResetUserRequest(BaseModel):
    email: str = ""


class DebugTotpResponse(BaseModel):
    now: int
    token: str
    secret: str
