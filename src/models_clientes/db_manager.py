"""
Database Manager - Persistencia de clientes
===========================================

Maneja toda la interacción con la base de datos para la entidad Cliente:
- Crear
- Consultar (uno / todos)
- Actualizar (reemplazo completo)
- Eliminar

Las escrituras devuelven el número de filas persistidas. Un 0 sin
excepción es una escritura fallida para el llamador.

"""

import logging
import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db_models import Cliente

logger = logging.getLogger(__name__)


class BaseManager:
    """Sesión de BD con ciclo de vida de context manager"""

    def __init__(self, session_factory: sessionmaker):
        """Inicializa el manager con una sesión de BD"""
        self.session: Session = session_factory()

    def cerrar(self):
        """Cierra la sesión de BD"""
        if self.session:
            self.session.close()

    def __enter__(self):
        """Context manager"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager cleanup"""
        self.cerrar()

    def _commit(self):
        """Confirma la transacción, revirtiendo si falla"""
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise


class ClienteManager(BaseManager):
    """Manager para operaciones CRUD de clientes"""

    def crear_cliente(self, datos: Dict) -> Tuple[int, Cliente]:
        """
        Crea un cliente nuevo. El Id lo genera la base de datos.

        Args:
            datos: Dict con name/codigo/novo

        Returns:
            (filas persistidas por el flush, cliente creado)
        """
        cliente = Cliente(
            name=datos.get('name'),
            codigo=datos.get('codigo'),
            novo=datos.get('novo')
        )

        self.session.add(cliente)
        pendientes = list(self.session.new)
        try:
            self.session.flush()
        except SQLAlchemyError:
            self.session.rollback()
            raise

        # Solo cuentan los objetos que el flush dejó persistidos
        guardados = sum(1 for obj in pendientes if inspect(obj).persistent)
        self._commit()

        logger.info(f"✓ Cliente creado con ID: {cliente.id}")

        return guardados, cliente

    def obtener_cliente(self, cliente_id: uuid.UUID) -> Optional[Cliente]:
        """Obtiene un cliente por su Id"""
        return self.session.get(Cliente, cliente_id)

    def listar_clientes(self) -> List[Cliente]:
        """Lista todos los clientes"""
        return list(self.session.scalars(select(Cliente)).all())

    def existe_cliente(self, cliente_id: uuid.UUID) -> bool:
        """
        Comprueba si existe un cliente

        Solo lee la clave primaria: no carga la entidad en la sesión
        ni bloquea la fila.
        """
        encontrado = self.session.scalar(select(Cliente.id).where(Cliente.id == cliente_id))
        return encontrado is not None

    def actualizar_cliente(self, cliente_id: uuid.UUID, datos: Dict) -> int:
        """
        Reemplaza Name/Codigo/Novo de un cliente. El Id no cambia.

        Args:
            cliente_id: Id del cliente
            datos: Dict con name/codigo/novo (los ausentes quedan a NULL)

        Returns:
            int: Filas actualizadas
        """
        resultado = self.session.execute(
            update(Cliente)
            .where(Cliente.id == cliente_id)
            .values(
                name=datos.get('name'),
                codigo=datos.get('codigo'),
                novo=datos.get('novo')
            )
        )
        self._commit()

        logger.info(f"✓ Cliente {cliente_id} actualizado ({resultado.rowcount} filas)")

        return resultado.rowcount

    def eliminar_cliente(self, cliente_id: uuid.UUID) -> int:
        """
        Elimina definitivamente un cliente

        Returns:
            int: Filas eliminadas
        """
        resultado = self.session.execute(delete(Cliente).where(Cliente.id == cliente_id))
        self._commit()

        logger.info(f"✓ Cliente {cliente_id} eliminado ({resultado.rowcount} filas)")

        return resultado.rowcount
