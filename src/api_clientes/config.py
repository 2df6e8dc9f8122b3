"""
Configuración de la API de Clientes
===================================

Todas las configuraciones de seguridad, base de datos y rutas.
Se leen de variables de entorno o del fichero .env

"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

DEFAULT_SECRET_KEY = "CHANGE_THIS_IN_PRODUCTION_USE_STRONG_SECRET"


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # Aplicación
    APP_NAME: str = "API de Clientes"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Seguridad / JWT
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_ISSUER: str = "api-clientes"
    JWT_AUDIENCE: str = "https://localhost"
    BCRYPT_ROUNDS: int = 12

    # Bloqueo de cuentas
    MAX_FAILED_ACCESS_ATTEMPTS: int = 3
    LOCKOUT_MINUTES: int = 5

    # Variantes de rutas
    CLIENTE_READ_REQUIRES_AUTH: bool = False
    CLIENTE_WRITE_REQUIRES_AUTH: bool = True
    CLIENTE_DELETE_POLICY: str = "ExcluirPedido"  # Vacío = sin política
    IDENTITY_ENABLED: bool = True

    # CORS - Dominios permitidos (separados por comas)
    CORS_ALLOW_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Lista de orígenes CORS"""
        return [origin.strip() for origin in self.CORS_ALLOW_ORIGINS.split(",") if origin.strip()]

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60

    # Database
    DATABASE_URL: Optional[str] = None  # Si se define, ignora POSTGRES_*
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "clientes_db"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False
    AUTO_CREATE_TABLES: bool = False

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        """URL de conexión a la base de datos"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "logs/api_clientes.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def validar_configuracion(settings: Settings):
    """
    Valida configuración crítica en producción

    Raises:
        ValueError: Si la configuración no es segura
    """
    if not settings.DEBUG and settings.SECRET_KEY == DEFAULT_SECRET_KEY:
        raise ValueError(
            "⚠️  CRITICAL: SECRET_KEY must be changed in production! "
            "Generate one with: openssl rand -hex 32"
        )

    if settings.MAX_FAILED_ACCESS_ATTEMPTS < 1:
        raise ValueError("MAX_FAILED_ACCESS_ATTEMPTS must be >= 1")
