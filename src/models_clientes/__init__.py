"""
Capa de persistencia de la API de Clientes
==========================================

- db_config: engine y sesiones
- db_models: tablas SQLAlchemy
- db_manager: CRUD de clientes
- identity_manager: usuarios, claims y roles

"""
