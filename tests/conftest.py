"""
Shared pytest fixtures for the clientes API tests.

This module provides fixtures for:
- Settings over in-memory SQLite
- The FastAPI app and its TestClient (lifespan included)
- Registered users and their bearer headers
"""

from typing import Dict

import pytest
from fastapi.testclient import TestClient

from api_clientes.config import Settings
from api_clientes.main import create_app
from api_clientes.security import crear_pwd_context
from models_clientes.identity_manager import IdentityManager

PASSWORD = "Abc123!"
DELETE_CLAIM = "ExcluirPedido"


def make_settings(**overrides) -> Settings:
    """Settings for tests: in-memory DB, no rate limit, cheap bcrypt."""
    valores = dict(
        DEBUG=True,
        SECRET_KEY="test-secret-key",
        DATABASE_URL="sqlite://",
        AUTO_CREATE_TABLES=True,
        RATE_LIMIT_ENABLED=False,
        BCRYPT_ROUNDS=4,
        LOG_FILE=None,
    )
    valores.update(overrides)
    return Settings(**valores)


def registrar(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/registro", json={"email": email, "password": password})


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def conceder_claim(app, email: str, claim: str = DELETE_CLAIM):
    settings = app.state.settings
    with IdentityManager(app.state.session_factory, crear_pwd_context(settings)) as identidad:
        assert identidad.conceder_claim(email, claim)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """TestClient as context manager so startup/shutdown run."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client) -> Dict[str, str]:
    """Bearer headers of a user without extra claims."""
    response = registrar(client, "usuario@x.com")
    assert response.status_code == 200
    return bearer(response.json()["access_token"])


@pytest.fixture
def admin_headers(client, app) -> Dict[str, str]:
    """Bearer headers of a user holding the delete claim."""
    assert registrar(client, "admin@x.com").status_code == 200
    conceder_claim(app, "admin@x.com")

    response = client.post("/login", json={"email": "admin@x.com", "password": PASSWORD})
    assert response.status_code == 200
    return bearer(response.json()["access_token"])
