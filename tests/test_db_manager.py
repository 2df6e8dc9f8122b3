"""
Unit tests for ClienteManager and IdentityManager over in-memory SQLite.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from passlib.context import CryptContext

from models_clientes.db_config import crear_engine, crear_session_factory, probar_conexion
from models_clientes.db_manager import ClienteManager
from models_clientes.db_models import Usuario
from models_clientes.identity_manager import IdentityManager, ResultadoLogin, validar_password
from models_clientes.migrations import crear_tablas, verificar_estructura


@pytest.fixture
def session_factory():
    engine = crear_engine("sqlite://")
    assert crear_tablas(engine)
    yield crear_session_factory(engine)
    engine.dispose()


@pytest.fixture
def pwd_context():
    return CryptContext(schemes=["bcrypt"], bcrypt__rounds=4)


def test_estructura_creada():
    engine = crear_engine("sqlite://")

    assert probar_conexion(engine)
    assert not verificar_estructura(engine)
    assert crear_tablas(engine)
    assert verificar_estructura(engine)


def test_crear_cliente_genera_id(session_factory):
    with ClienteManager(session_factory) as manager:
        guardados, cliente = manager.crear_cliente({"name": "Acme", "codigo": "A1", "novo": True})

    assert guardados == 1
    assert isinstance(cliente.id, uuid.UUID)

    with ClienteManager(session_factory) as manager:
        leido = manager.obtener_cliente(cliente.id)
        assert (leido.name, leido.codigo, leido.novo) == ("Acme", "A1", True)


def test_crear_cliente_sin_flush_efectivo_no_cuenta_filas(session_factory, monkeypatch):
    with ClienteManager(session_factory) as manager:
        flush = manager.session.flush
        llamadas = []

        # El primer flush no escribe nada; el del commit sí
        def flush_diferido(*args, **kwargs):
            llamadas.append(1)
            if len(llamadas) > 1:
                flush(*args, **kwargs)

        monkeypatch.setattr(manager.session, "flush", flush_diferido)
        guardados, _ = manager.crear_cliente({"name": "Acme"})

    assert guardados == 0


def test_existe_cliente_no_carga_la_entidad(session_factory):
    with ClienteManager(session_factory) as manager:
        _, cliente = manager.crear_cliente({"name": "Acme"})

    with ClienteManager(session_factory) as manager:
        assert manager.existe_cliente(cliente.id)
        assert not manager.existe_cliente(uuid.uuid4())
        assert len(manager.session.identity_map) == 0


def test_actualizar_y_eliminar_devuelven_filas(session_factory):
    with ClienteManager(session_factory) as manager:
        _, cliente = manager.crear_cliente({"name": "Acme", "codigo": "A1"})

        assert manager.actualizar_cliente(cliente.id, {"codigo": "B2"}) == 1
        assert manager.actualizar_cliente(uuid.uuid4(), {"codigo": "B2"}) == 0

    with ClienteManager(session_factory) as manager:
        actualizado = manager.obtener_cliente(cliente.id)
        assert (actualizado.name, actualizado.codigo) == (None, "B2")

        assert manager.eliminar_cliente(cliente.id) == 1
        assert manager.eliminar_cliente(cliente.id) == 0
        assert manager.listar_clientes() == []


def test_validar_password():
    assert validar_password("Abc123!") == []
    assert [e.code for e in validar_password("Ab1!")] == ["PasswordTooShort"]


def test_registro_marca_email_confirmado(session_factory, pwd_context):
    with IdentityManager(session_factory, pwd_context) as identidad:
        usuario, errores = identidad.registrar("a@x.com", "Abc123!")

    assert errores == []
    assert usuario.email_confirmado is True
    assert usuario.password_hash != "Abc123!"


def test_bloqueo_expira(session_factory, pwd_context):
    with IdentityManager(session_factory, pwd_context, max_intentos=2, minutos_bloqueo=5) as identidad:
        identidad.registrar("a@x.com", "Abc123!")

        assert identidad.autenticar("a@x.com", "Mal123!")[0] is ResultadoLogin.INVALID_CREDENTIALS
        assert identidad.autenticar("a@x.com", "Mal123!")[0] is ResultadoLogin.LOCKED_OUT
        assert identidad.autenticar("a@x.com", "Abc123!")[0] is ResultadoLogin.LOCKED_OUT

        usuario = identidad.session.query(Usuario).one()
        usuario.lockout_end = datetime.utcnow() - timedelta(seconds=1)
        identidad.session.commit()

        resultado, autenticado = identidad.autenticar("a@x.com", "Abc123!")
        assert resultado is ResultadoLogin.SUCCESS
        assert autenticado.lockout_end is None
        assert autenticado.access_failed_count == 0


def test_conceder_a_usuario_inexistente(session_factory, pwd_context):
    with IdentityManager(session_factory, pwd_context) as identidad:
        assert not identidad.conceder_claim("nadie@x.com", "ExcluirPedido")
        assert not identidad.conceder_role("nadie@x.com", "Admin")


def test_conceder_claim_no_duplica(session_factory, pwd_context):
    with IdentityManager(session_factory, pwd_context) as identidad:
        identidad.registrar("a@x.com", "Abc123!")
        assert identidad.conceder_claim("a@x.com", "ExcluirPedido")
        assert identidad.conceder_claim("a@x.com", "ExcluirPedido")

        usuario = identidad.buscar_por_email("A@X.COM")
        assert [c.tipo for c in usuario.claims] == ["ExcluirPedido"]


def test_registro_concurrente_con_el_mismo_email(session_factory, pwd_context, monkeypatch):
    with IdentityManager(session_factory, pwd_context) as identidad:
        identidad.registrar("a@x.com", "Abc123!")

    # La comprobación previa no ve el usuario: solo lo detecta la restricción única
    with IdentityManager(session_factory, pwd_context) as identidad:
        monkeypatch.setattr(identidad, "buscar_por_email", lambda email: None)
        usuario, errores = identidad.registrar("A@X.com", "Abc123!")

    assert usuario is None
    assert [e.code for e in errores] == ["DuplicateEmail"]

    with IdentityManager(session_factory, pwd_context) as identidad:
        assert identidad.session.query(Usuario).count() == 1


def test_intentos_fallidos_concurrentes_se_acumulan(tmp_path, pwd_context):
    engine = crear_engine(f"sqlite:///{tmp_path / 'identidad.db'}")
    assert crear_tablas(engine)
    factory = crear_session_factory(engine)

    with IdentityManager(factory, pwd_context, max_intentos=3) as identidad:
        identidad.registrar("a@x.com", "Abc123!")

    with IdentityManager(factory, pwd_context, max_intentos=3) as primera, \
            IdentityManager(factory, pwd_context, max_intentos=3) as segunda:
        # primera conserva el usuario leído antes del fallo de segunda
        assert primera.buscar_por_email("a@x.com").access_failed_count == 0

        assert segunda.autenticar("a@x.com", "Mal123!")[0] is ResultadoLogin.INVALID_CREDENTIALS
        assert primera.autenticar("a@x.com", "Mal123!")[0] is ResultadoLogin.INVALID_CREDENTIALS
        assert segunda.autenticar("a@x.com", "Mal123!")[0] is ResultadoLogin.LOCKED_OUT

    with IdentityManager(factory, pwd_context) as identidad:
        usuario = identidad.buscar_por_email("a@x.com")
        assert usuario.lockout_end is not None
        assert usuario.access_failed_count == 0

    engine.dispose()
