"""
Configuración de la base de datos
=================================

Crea el engine (pool de conexiones) y la fábrica de sesiones.
Ambos se crean una sola vez al arrancar la aplicación y se
comparten entre todas las peticiones.

Soporta:
- PostgreSQL (producción)
- SQLite (desarrollo y tests)

"""

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def crear_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False
) -> Engine:
    """
    Crea el engine de SQLAlchemy

    Args:
        database_url: URL de conexión
        pool_size: Conexiones permanentes del pool
        max_overflow: Conexiones extra permitidas en picos
        echo: True para loguear el SQL generado

    Returns:
        Engine: Engine con pool de conexiones
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}

        # SQLite en memoria: una única conexión compartida
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verifica conexión antes de usar
        pool_size=pool_size,
        max_overflow=max_overflow
    )


def crear_session_factory(engine: Engine) -> sessionmaker:
    """Fábrica de sesiones ligada al engine"""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def probar_conexion(engine: Engine) -> bool:
    """
    Prueba la conexión a la base de datos

    Returns:
        bool: True si la conexión es exitosa
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info(f"✓ Conexión a base de datos exitosa ({engine.url.get_backend_name()})")
        return True
    except Exception as e:
        logger.error(f"✗ Error de conexión a base de datos: {e}")
        return False
