"""
Modelos SQLAlchemy
==================

Tablas:
- clientes (entidad principal de la API)
- usuarios, usuario_claims, roles, usuario_roles (identidad)

"""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Table, Text, Uuid, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Cliente(Base):
    """Cliente (customer) gestionado por la API"""
    __tablename__ = 'clientes'

    id = Column('Id', Uuid, primary_key=True, default=uuid.uuid4)
    codigo = Column('Codigo', Text, nullable=True)
    name = Column('Name', Text, nullable=True)
    novo = Column('Novo', Boolean, nullable=True)

    def __repr__(self):
        return f"<Cliente(id={self.id}, name='{self.name}', codigo='{self.codigo}')>"


# ============================================
# Identidad
# ============================================

usuario_roles = Table(
    'usuario_roles',
    Base.metadata,
    Column('usuario_id', Uuid, ForeignKey('usuarios.id', ondelete='CASCADE'), primary_key=True),
    Column('role_id', Integer, ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
)


class Usuario(Base):
    """Credenciales de un usuario registrado"""
    __tablename__ = 'usuarios'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(256), nullable=False)
    email_normalizado = Column(String(256), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    email_confirmado = Column(Boolean, default=False, nullable=False)

    # Bloqueo por intentos fallidos
    access_failed_count = Column(Integer, default=0, nullable=False)
    lockout_end = Column(DateTime, nullable=True)

    fecha_creacion = Column(DateTime, default=datetime.utcnow)

    # Relaciones
    claims = relationship("UsuarioClaim", back_populates="usuario", cascade="all, delete-orphan")
    roles = relationship("Role", secondary=usuario_roles, back_populates="usuarios")

    def __repr__(self):
        return f"<Usuario(id={self.id}, email='{self.email}')>"


class UsuarioClaim(Base):
    """Claim asociado a un usuario (usado por las políticas)"""
    __tablename__ = 'usuario_claims'
    __table_args__ = (
        Index('idx_claim_usuario', 'usuario_id'),
    )

    id = Column(Integer, primary_key=True)
    usuario_id = Column(Uuid, ForeignKey('usuarios.id', ondelete='CASCADE'), nullable=False)
    tipo = Column(String(256), nullable=False)
    valor = Column(String(256), nullable=False, default="")

    usuario = relationship("Usuario", back_populates="claims")

    def __repr__(self):
        return f"<UsuarioClaim(tipo='{self.tipo}', valor='{self.valor}')>"


class Role(Base):
    """Rol de usuario"""
    __tablename__ = 'roles'

    id = Column(Integer, primary_key=True)
    nombre = Column(String(256), nullable=False, unique=True)

    usuarios = relationship("Usuario", secondary=usuario_roles, back_populates="roles")

    def __repr__(self):
        return f"<Role(nombre='{self.nombre}')>"
