"""
API REST de Clientes
====================

Características:
- CRUD de clientes
- Registro / login con JWT
- Políticas por claim
- Rate limiting
- CORS configurado
- Validación Pydantic
- Logging

"""
