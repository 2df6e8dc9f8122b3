"""
Módulo de Seguridad - Autenticación y Autorización
==================================================

Implementa:
- Hashing de contraseñas
- Emisión de tokens JWT con claims y roles del usuario
- Verificación del Bearer token
- Políticas basadas en claims

"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from .config import Settings
from .schemas import ClaimResponse, TokenResponse, UserTokenResponse

# Claims registrados que no pueden sobrescribirse con claims de usuario
RESERVED_CLAIMS = {"sub", "email", "jti", "iat", "nbf", "exp", "iss", "aud", "role"}

# Esquema de seguridad Bearer Token (el 401 lo genera verify_token)
security = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    """Datos contenidos en el token"""
    user_id: str
    email: Optional[str] = None
    claims: Dict[str, Any] = {}
    roles: List[str] = []


def crear_pwd_context(settings: Settings) -> CryptContext:
    """Contexto de hashing bcrypt"""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """
    Crea un token JWT

    Args:
        data: Datos a incluir en el token
        settings: Clave, algoritmo, emisor y audiencia
        expires_delta: Tiempo de expiración

    Returns:
        str: Token JWT firmado
    """
    to_encode = data.copy()
    now = datetime.utcnow()

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "jti": str(uuid.uuid4()),
        "iat": now,
        "nbf": now,
        "exp": expire,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    })

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def crear_token_usuario(usuario, settings: Settings) -> TokenResponse:
    """
    Emite el token de un usuario autenticado

    Incluye su identidad, sus claims y sus roles.

    Args:
        usuario: Usuario (con claims y roles cargados)
        settings: Configuración JWT

    Returns:
        TokenResponse: Token y datos del usuario
    """
    claims = [ClaimResponse(type=c.tipo, value=c.valor) for c in usuario.claims]
    roles = [r.nombre for r in usuario.roles]

    data = {"sub": str(usuario.id), "email": usuario.email, "role": roles}
    for claim in claims:
        if claim.type not in RESERVED_CLAIMS:
            data[claim.type] = claim.value

    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(data, settings, expires_delta=expires_delta)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=int(expires_delta.total_seconds()),
        user=UserTokenResponse(
            id=str(usuario.id),
            email=usuario.email,
            claims=claims,
            roles=roles
        )
    )


def decode_token(token: str, settings: Settings) -> TokenData:
    """
    Decodifica y valida un token JWT (firma, expiración, emisor, audiencia)

    Raises:
        JWTError: Si el token es inválido
    """
    payload = jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )

    user_id = payload.get("sub")
    if user_id is None:
        raise JWTError("Token sin sujeto")

    roles = payload.get("role") or []
    if isinstance(roles, str):
        roles = [roles]

    return TokenData(
        user_id=user_id,
        email=payload.get("email"),
        claims={k: v for k, v in payload.items() if k not in RESERVED_CLAIMS},
        roles=roles
    )


def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenData:
    """
    Verifica y decodifica el Bearer token de la petición

    Raises:
        HTTPException: 401 si falta o es inválido
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise credentials_exception

    try:
        return decode_token(credentials.credentials, request.app.state.settings)
    except JWTError:
        raise credentials_exception


def get_current_user(token_data: TokenData = Depends(verify_token)) -> TokenData:
    """Usuario autenticado de la petición"""
    return token_data


def require_claim(claim: str):
    """
    Política: el usuario debe poseer el claim indicado

    Args:
        claim: Nombre del claim requerido

    Returns:
        Dependency de FastAPI
    """
    def _check_claim(current_user: TokenData = Depends(get_current_user)) -> TokenData:
        if claim not in current_user.claims:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Acesso negado."
            )
        return current_user

    return _check_claim
