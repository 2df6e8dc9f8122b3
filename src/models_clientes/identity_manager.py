"""
Identity Manager - Usuarios, claims y roles
===========================================

Implementa:
- Registro de usuarios con política de contraseñas
- Login con bloqueo temporal tras intentos fallidos
- Asignación de claims y roles

El hashing de contraseñas se delega en el CryptContext recibido.

"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm import sessionmaker

from .db_manager import BaseManager
from .db_models import Usuario, UsuarioClaim, Role

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 6


class ResultadoLogin(enum.Enum):
    SUCCESS = "success"
    LOCKED_OUT = "locked_out"
    INVALID_CREDENTIALS = "invalid_credentials"


@dataclass
class IdentityError:
    """Error de identidad (registro, política de contraseñas)"""
    code: str
    description: str


def normalizar_email(email: str) -> str:
    return email.strip().upper()


def validar_password(password: str) -> List[IdentityError]:
    """
    Aplica la política de contraseñas

    Args:
        password: Contraseña en texto plano

    Returns:
        List[IdentityError]: Reglas incumplidas (vacía si es válida)
    """
    errores = []

    if len(password) < PASSWORD_MIN_LENGTH:
        errores.append(IdentityError(
            "PasswordTooShort",
            f"A senha deve ter pelo menos {PASSWORD_MIN_LENGTH} caracteres."
        ))
    if not any(c.isdigit() for c in password):
        errores.append(IdentityError("PasswordRequiresDigit", "A senha deve ter pelo menos um dígito ('0'-'9')."))
    if not any(c.islower() for c in password):
        errores.append(IdentityError("PasswordRequiresLower", "A senha deve ter pelo menos uma letra minúscula ('a'-'z')."))
    if not any(c.isupper() for c in password):
        errores.append(IdentityError("PasswordRequiresUpper", "A senha deve ter pelo menos uma letra maiúscula ('A'-'Z')."))
    if all(c.isalnum() for c in password):
        errores.append(IdentityError("PasswordRequiresNonAlphanumeric", "A senha deve ter pelo menos um caractere não alfanumérico."))

    return errores


class IdentityManager(BaseManager):
    """Manager para registro, login y permisos de usuarios"""

    def __init__(
        self,
        session_factory: sessionmaker,
        pwd_context: CryptContext,
        max_intentos: int = 3,
        minutos_bloqueo: int = 5
    ):
        super().__init__(session_factory)
        self.pwd_context = pwd_context
        self.max_intentos = max_intentos
        self.minutos_bloqueo = minutos_bloqueo

    def buscar_por_email(self, email: str) -> Optional[Usuario]:
        return self.session.scalar(
            select(Usuario).where(Usuario.email_normalizado == normalizar_email(email))
        )

    def registrar(self, email: str, password: str) -> Tuple[Optional[Usuario], List[IdentityError]]:
        """
        Registra un usuario nuevo con el email ya confirmado

        Args:
            email: Email (también es el nombre de usuario)
            password: Contraseña en texto plano

        Returns:
            (usuario creado o None, errores de identidad)
        """
        errores = validar_password(password)

        if self.buscar_por_email(email) is not None:
            errores.append(IdentityError("DuplicateEmail", f"O email '{email}' já está em uso."))

        if errores:
            logger.warning(f"Registro rechazado para {email}: {[e.code for e in errores]}")
            return None, errores

        usuario = Usuario(
            email=email,
            email_normalizado=normalizar_email(email),
            password_hash=self.pwd_context.hash(password),
            email_confirmado=True,
            access_failed_count=0
        )
        self.session.add(usuario)
        try:
            self._commit()
        except IntegrityError:
            # Otro registro con el mismo email se confirmó antes que este
            logger.warning(f"Registro rechazado para {email}: ['DuplicateEmail']")
            return None, [IdentityError("DuplicateEmail", f"O email '{email}' já está em uso.")]

        logger.info(f"✓ Usuario registrado: {email}")

        return usuario, []

    def _registrar_fallo(self, usuario: Usuario) -> int:
        """
        Incrementa access_failed_count en la propia BD

        El UPDATE bloquea la fila hasta el commit, así que los intentos
        concurrentes no pierden incrementos.

        Returns:
            int: Intentos fallidos acumulados
        """
        self.session.execute(
            update(Usuario)
            .where(Usuario.id == usuario.id)
            .values(access_failed_count=Usuario.access_failed_count + 1)
            .execution_options(synchronize_session=False)
        )
        fallos = self.session.scalar(
            select(Usuario.access_failed_count).where(Usuario.id == usuario.id)
        )
        set_committed_value(usuario, 'access_failed_count', fallos)
        return fallos

    def autenticar(self, email: str, password: str) -> Tuple[ResultadoLogin, Optional[Usuario]]:
        """
        Verifica credenciales aplicando el bloqueo por intentos fallidos

        Returns:
            (resultado, usuario si el login fue correcto)
        """
        usuario = self.buscar_por_email(email)

        if usuario is None:
            return ResultadoLogin.INVALID_CREDENTIALS, None

        ahora = datetime.utcnow()

        if usuario.lockout_end is not None and usuario.lockout_end > ahora:
            return ResultadoLogin.LOCKED_OUT, None

        if not self.pwd_context.verify(password, usuario.password_hash):
            fallos = self._registrar_fallo(usuario)

            if fallos >= self.max_intentos:
                usuario.lockout_end = ahora + timedelta(minutes=self.minutos_bloqueo)
                usuario.access_failed_count = 0
                self._commit()
                logger.warning(f"Usuario bloqueado hasta {usuario.lockout_end}: {email}")
                return ResultadoLogin.LOCKED_OUT, None

            self._commit()
            return ResultadoLogin.INVALID_CREDENTIALS, None

        if usuario.access_failed_count or usuario.lockout_end is not None:
            usuario.access_failed_count = 0
            usuario.lockout_end = None
            self._commit()

        return ResultadoLogin.SUCCESS, usuario

    def conceder_claim(self, email: str, tipo: str, valor: str = "") -> bool:
        """
        Añade un claim a un usuario

        Returns:
            bool: False si el usuario no existe
        """
        usuario = self.buscar_por_email(email)
        if usuario is None:
            return False

        if not any(c.tipo == tipo and c.valor == valor for c in usuario.claims):
            usuario.claims.append(UsuarioClaim(tipo=tipo, valor=valor))
            self._commit()
            logger.info(f"✓ Claim '{tipo}' concedido a {email}")

        return True

    def conceder_role(self, email: str, nombre_role: str) -> bool:
        """
        Asigna un rol a un usuario, creándolo si no existe

        Returns:
            bool: False si el usuario no existe
        """
        usuario = self.buscar_por_email(email)
        if usuario is None:
            return False

        role = self.session.scalar(select(Role).where(Role.nombre == nombre_role))
        if role is None:
            role = Role(nombre=nombre_role)
            self.session.add(role)

        if role not in usuario.roles:
            usuario.roles.append(role)
            self._commit()
            logger.info(f"✓ Rol '{nombre_role}' asignado a {email}")

        return True
