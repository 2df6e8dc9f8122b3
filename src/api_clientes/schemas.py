"""
Pydantic Schemas - Validación de datos API
==========================================

Define todos los esquemas de validación para:
- Request bodies
- Response models

"""

import uuid
from typing import Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

MSG_EMAIL_INVALIDO = "O campo email não é um endereço de email válido."


# ============================================
# Autenticación
# ============================================

class _CredencialesBase(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator('email', mode='wrap')
    def validate_email(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            raise ValueError(MSG_EMAIL_INVALIDO)


class RegisterRequest(_CredencialesBase):
    """Request de registro"""
    confirm_password: Optional[str] = None

    @field_validator('confirm_password')
    def passwords_match(cls, v, info):
        if v is not None and v != info.data.get('password'):
            raise ValueError("As senhas não conferem.")
        return v


class LoginRequest(_CredencialesBase):
    """Request de login"""
    pass


class ClaimResponse(BaseModel):
    type: str
    value: str


class UserTokenResponse(BaseModel):
    """Datos del usuario embebidos en la respuesta de token"""
    id: str
    email: str
    claims: List[ClaimResponse] = []
    roles: List[str] = []


class TokenResponse(BaseModel):
    """Response de autenticación"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserTokenResponse


class IdentityErrorResponse(BaseModel):
    """Error de identidad (registro)"""
    code: str
    description: str


# ============================================
# Clientes
# ============================================

class ClienteRequest(BaseModel):
    """Body de creación / actualización de cliente"""
    name: Optional[str] = Field(None, max_length=200)
    codigo: Optional[str] = Field(None, max_length=50)
    novo: Optional[bool] = Field(None, strict=True)


class ClienteResponse(BaseModel):
    """Respuesta de cliente"""
    id: uuid.UUID
    name: Optional[str] = None
    codigo: Optional[str] = None
    novo: Optional[bool] = None

    class Config:
        from_attributes = True


# ============================================
# Respuestas genéricas
# ============================================

class ValidationProblem(BaseModel):
    """Errores de validación por campo"""
    type: str = "https://tools.ietf.org/html/rfc7231#section-6.5.1"
    title: str = "One or more validation errors occurred."
    status: int = 400
    errors: Dict[str, List[str]]


class MessageResponse(BaseModel):
    """Respuesta de error con mensaje"""
    detail: str
