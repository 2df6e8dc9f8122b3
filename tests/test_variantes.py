"""
Route variants driven by settings, plus rate limiting and startup checks.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from api_clientes.main import create_app
from conftest import bearer, make_settings, registrar


def cliente_para(**overrides) -> TestClient:
    return TestClient(create_app(make_settings(**overrides)))


def test_variante_sin_autenticacion():
    with cliente_para(CLIENTE_WRITE_REQUIRES_AUTH=False) as client:
        creado = client.post("/cliente", json={"name": "Acme"})
        assert creado.status_code == 201

        cliente_id = creado.json()["id"]
        assert client.put(f"/cliente/{cliente_id}", json={"name": "B"}).status_code == 204
        assert client.delete(f"/cliente/{cliente_id}").status_code == 204


def test_variante_lectura_protegida():
    with cliente_para(CLIENTE_READ_REQUIRES_AUTH=True) as client:
        assert client.get("/cliente").status_code == 401

        token = registrar(client, "a@x.com").json()["access_token"]
        assert client.get("/cliente", headers=bearer(token)).status_code == 200


def test_variante_sin_politica_de_borrado():
    with cliente_para(CLIENTE_DELETE_POLICY="") as client:
        headers = bearer(registrar(client, "a@x.com").json()["access_token"])
        cliente_id = client.post("/cliente", json={"name": "Acme"}, headers=headers).json()["id"]

        assert client.delete(f"/cliente/{cliente_id}", headers=headers).status_code == 204


def test_variante_sin_identidad():
    with cliente_para(IDENTITY_ENABLED=False, CLIENTE_WRITE_REQUIRES_AUTH=False) as client:
        assert client.post("/registro", json={"email": "a@x.com", "password": "Abc123!"}).status_code == 404
        assert client.post("/login", json={"email": "a@x.com", "password": "Abc123!"}).status_code == 404
        assert client.get("/cliente").status_code == 200


def test_rate_limit():
    with cliente_para(RATE_LIMIT_ENABLED=True, RATE_LIMIT_PER_MINUTE=2) as client:
        assert client.get("/cliente").status_code == 200
        assert client.get("/cliente").status_code == 200
        assert client.get("/cliente").status_code == 429


def test_arranque_falla_sin_base_de_datos(tmp_path):
    url = f"sqlite:///{tmp_path / 'no-existe' / 'clientes.db'}"
    app = create_app(make_settings(DATABASE_URL=url, AUTO_CREATE_TABLES=False))

    async def arrancar():
        async with app.router.lifespan_context(app):
            pass

    with pytest.raises(RuntimeError):
        asyncio.run(arrancar())


def test_secret_key_por_defecto_en_produccion():
    with pytest.raises(ValueError):
        create_app(make_settings(DEBUG=False, SECRET_KEY="CHANGE_THIS_IN_PRODUCTION_USE_STRONG_SECRET"))
