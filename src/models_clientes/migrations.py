"""
Script de migración - Base de datos de clientes
===============================================

Funciones:
- Crear todas las tablas
- Resetear tablas (desarrollo)
- Verificar estructura
- Conceder claims y roles a usuarios existentes

USO:
    python -m models_clientes.migrations crear
    python -m models_clientes.migrations verificar
    python -m models_clientes.migrations reset  # PELIGRO: Borra todo
    python -m models_clientes.migrations conceder-claim usuario@dominio.com ExcluirPedido
    python -m models_clientes.migrations conceder-role usuario@dominio.com Admin

"""

import sys
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from .db_models import Base

logger = logging.getLogger(__name__)


def crear_tablas(engine: Engine) -> bool:
    """Crea todas las tablas definidas en Base"""
    try:
        Base.metadata.create_all(bind=engine)

        logger.info("✓ Tablas creadas/verificadas:")
        for table in Base.metadata.sorted_tables:
            logger.info(f"  - {table.name}")

        return True

    except Exception as e:
        logger.error(f"✗ Error creando tablas: {e}")
        return False


def verificar_estructura(engine: Engine) -> bool:
    """Verifica que las tablas existen y muestra su estructura"""
    try:
        inspector = inspect(engine)
        tablas = inspector.get_table_names()

        faltantes = [t.name for t in Base.metadata.sorted_tables if t.name not in tablas]
        if faltantes:
            logger.error(f"✗ Faltan tablas: {', '.join(faltantes)}")
            return False

        for tabla in tablas:
            logger.info(f"📊 Tabla: {tabla}")

            for col in inspector.get_columns(tabla):
                nullable = "NULL" if col['nullable'] else "NOT NULL"
                logger.info(f"   - {col['name']:30} {str(col['type']):20} {nullable}")

            fks = inspector.get_foreign_keys(tabla)
            if fks:
                logger.info(f"   Foreign Keys:")
                for fk in fks:
                    logger.info(f"     - {fk['constrained_columns']} → {fk['referred_table']}.{fk['referred_columns']}")

        logger.info(f"✓ Total de tablas: {len(tablas)}")
        return True

    except Exception as e:
        logger.error(f"✗ Error verificando estructura: {e}")
        return False


def reset_tablas(engine: Engine) -> bool:
    """
    PELIGRO: Elimina y recrea todas las tablas
    Solo para desarrollo
    """
    print("\n" + "="*60)
    print("⚠️  ADVERTENCIA: RESETEAR TABLAS")
    print("="*60)
    print("\nEsto eliminará TODAS las tablas y todos los datos almacenados.\n")

    respuesta = input("¿Estás seguro? Escribe 'SI BORRAR TODO' para confirmar: ")

    if respuesta != 'SI BORRAR TODO':
        logger.info("Operación cancelada")
        return False

    try:
        logger.info("Eliminando tablas...")
        Base.metadata.drop_all(bind=engine)

        logger.info("Recreando tablas...")
        return crear_tablas(engine)

    except Exception as e:
        logger.error(f"✗ Error reseteando tablas: {e}")
        return False


def main(argv=None):
    """Punto de entrada del script de migración"""
    import argparse

    from api_clientes.config import Settings
    from api_clientes.security import crear_pwd_context
    from .db_config import crear_engine, crear_session_factory
    from .identity_manager import IdentityManager

    parser = argparse.ArgumentParser(description='Script de migración - API de Clientes')
    subparsers = parser.add_subparsers(dest='accion', required=True)
    subparsers.add_parser('crear', help='Crear tablas')
    subparsers.add_parser('verificar', help='Verificar estructura')
    subparsers.add_parser('reset', help='Eliminar y recrear tablas')

    claim_parser = subparsers.add_parser('conceder-claim', help='Conceder un claim a un usuario')
    claim_parser.add_argument('email')
    claim_parser.add_argument('claim')
    claim_parser.add_argument('valor', nargs='?', default='')

    role_parser = subparsers.add_parser('conceder-role', help='Asignar un rol a un usuario')
    role_parser.add_argument('email')
    role_parser.add_argument('role')

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    settings = Settings()
    engine = crear_engine(settings.SQLALCHEMY_DATABASE_URL, echo=settings.DB_ECHO)

    print("\n" + "="*60)
    print("MIGRACIÓN - API DE CLIENTES")
    print("="*60)
    print(f"\nDatabase: {engine.url.render_as_string(hide_password=True)}\n")

    try:
        if args.accion == 'crear':
            ok = crear_tablas(engine) and verificar_estructura(engine)
        elif args.accion == 'verificar':
            ok = verificar_estructura(engine)
        elif args.accion == 'reset':
            ok = reset_tablas(engine)
        else:
            with IdentityManager(crear_session_factory(engine), crear_pwd_context(settings)) as identidad:
                if args.accion == 'conceder-claim':
                    ok = identidad.conceder_claim(args.email, args.claim, args.valor)
                else:
                    ok = identidad.conceder_role(args.email, args.role)
            if not ok:
                logger.error(f"✗ Usuario no encontrado: {args.email}")
    finally:
        engine.dispose()

    if ok:
        print(f"\n✓ {args.accion} completado\n")
    else:
        print(f"\n✗ Error en {args.accion}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
