"""
FastAPI Main Application - API de Clientes
==========================================

API REST con:
- CRUD de clientes
- Registro y login de usuarios con JWT
- Políticas por claim
- Rate limiting
- CORS
- Validación Pydantic
- Logging

Las rutas protegidas dependen de la configuración (ver Settings).

"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional

from fastapi import (
    APIRouter,
    Body,
    Depends,
    FastAPI,
    HTTPException,
    Request,
    Response,
    status
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from models_clientes.db_config import crear_engine, crear_session_factory, probar_conexion
from models_clientes.db_manager import ClienteManager
from models_clientes.identity_manager import IdentityManager, ResultadoLogin
from models_clientes.migrations import crear_tablas

from .config import Settings, validar_configuracion
from .security import crear_pwd_context, crear_token_usuario, get_current_user, require_claim
from .schemas import (
    ClienteRequest,
    ClienteResponse,
    IdentityErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenResponse,
    ValidationProblem
)
from .validation import validar, validation_problem

logger = logging.getLogger(__name__)

MSG_USUARIO_NAO_INFORMADO = "Usuário não informado."
MSG_USUARIO_BLOQUEADO = "Usuário bloqueado."
MSG_CREDENCIAIS_INVALIDAS = "Usuário ou senha incorretos."
MSG_CLIENTE_NAO_INFORMADO = "Cliente não informado."
MSG_ERRO_SALVAR = "Houve um erro ao salvar cliente"
MSG_ERRO_ATUALIZAR = "Houve um erro ao atualizar cliente."
MSG_ERRO_REMOVER = "Houve um erro, não foi possível remover cliente."
MSG_REQUISICAO_INVALIDA = "Requisição inválida."
MSG_ERRO_BASE_DADOS = "Erro ao acessar a base de dados."

VALIDATION_RESPONSE = {"model": ValidationProblem, "description": "Validation problem"}


def configurar_logging(settings: Settings):
    """Configura logging a consola y, opcionalmente, a fichero"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if settings.LOG_FILE:
        Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


# ============================================
# Dependencias (una sesión por petición)
# ============================================

def get_cliente_manager(request: Request):
    with ClienteManager(request.app.state.session_factory) as manager:
        yield manager


def get_identity_manager(request: Request):
    settings: Settings = request.app.state.settings
    with IdentityManager(
        request.app.state.session_factory,
        request.app.state.pwd_context,
        max_intentos=settings.MAX_FAILED_ACCESS_ATTEMPTS,
        minutos_bloqueo=settings.LOCKOUT_MINUTES
    ) as manager:
        yield manager


def _error_base_datos(operacion: str, exc: Exception) -> HTTPException:
    logger.error(f"Error de base de datos en {operacion}: {exc}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=MSG_ERRO_BASE_DADOS
    )


# ============================================
# Endpoints de usuario (registro / login)
# ============================================

def build_identity_router(settings: Settings, limiter: Limiter) -> APIRouter:
    """Rutas anónimas de registro y login"""
    router = APIRouter(tags=["Usuario"])
    limite = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"

    @router.post(
        "/registro",
        response_model=TokenResponse,
        name="PostUsuario",
        responses={400: {"model": List[IdentityErrorResponse], "description": "Bad request"}}
    )
    @limiter.limit(limite)
    def registrar_usuario(
        request: Request,
        payload: Any = Body(None),
        identidad: IdentityManager = Depends(get_identity_manager)
    ):
        """
        Registro de usuario

        El email queda confirmado. Devuelve el token del nuevo usuario.
        """
        if payload is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_USUARIO_NAO_INFORMADO)

        datos, errores = validar(RegisterRequest, payload)
        if errores:
            return validation_problem(errores)

        logger.info(f"Registro de usuario: {datos.email}")

        try:
            usuario, errores_identidad = identidad.registrar(datos.email, datos.password)
            if usuario is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=[asdict(e) for e in errores_identidad]
                )
            return crear_token_usuario(usuario, settings)

        except SQLAlchemyError as e:
            raise _error_base_datos("registro", e)

    @router.post(
        "/login",
        response_model=TokenResponse,
        name="PostLogin",
        responses={400: {"model": MessageResponse, "description": "Bad request"}}
    )
    @limiter.limit(limite)
    def login(
        request: Request,
        payload: Any = Body(None),
        identidad: IdentityManager = Depends(get_identity_manager)
    ):
        """
        Autenticación de usuario

        Returns:
            Token JWT con claims y roles del usuario
        """
        if payload is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_USUARIO_NAO_INFORMADO)

        credenciales, errores = validar(LoginRequest, payload)
        if errores:
            return validation_problem(errores)

        logger.info(f"Intento de login: {credenciales.email}")

        try:
            resultado, usuario = identidad.autenticar(credenciales.email, credenciales.password)

            if resultado is ResultadoLogin.LOCKED_OUT:
                logger.warning(f"Login bloqueado: {credenciales.email}")
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_USUARIO_BLOQUEADO)

            if resultado is not ResultadoLogin.SUCCESS:
                logger.warning(f"Login fallido: {credenciales.email}")
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_CREDENCIAIS_INVALIDAS)

            logger.info(f"Login exitoso: {credenciales.email}")
            return crear_token_usuario(usuario, settings)

        except SQLAlchemyError as e:
            raise _error_base_datos("login", e)

    return router


# ============================================
# Endpoints de clientes
# ============================================

def build_cliente_router(settings: Settings, limiter: Limiter) -> APIRouter:
    """
    Rutas CRUD de clientes

    Las dependencias de autenticación de cada ruta salen de:
    - CLIENTE_READ_REQUIRES_AUTH: GET
    - CLIENTE_WRITE_REQUIRES_AUTH: POST / PUT / DELETE
    - CLIENTE_DELETE_POLICY: claim exigido en DELETE
    """
    router = APIRouter(prefix="/cliente", tags=["Cliente"])
    limite = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"

    read_deps = [Depends(get_current_user)] if settings.CLIENTE_READ_REQUIRES_AUTH else []
    write_deps = [Depends(get_current_user)] if settings.CLIENTE_WRITE_REQUIRES_AUTH else []
    delete_deps = list(write_deps)
    if settings.CLIENTE_WRITE_REQUIRES_AUTH and settings.CLIENTE_DELETE_POLICY:
        delete_deps.append(Depends(require_claim(settings.CLIENTE_DELETE_POLICY)))

    @router.get(
        "",
        response_model=List[ClienteResponse],
        name="GetCliente",
        dependencies=read_deps
    )
    @limiter.limit(limite)
    def listar_clientes(request: Request, clientes: ClienteManager = Depends(get_cliente_manager)):
        """Lista todos los clientes"""
        try:
            return clientes.listar_clientes()
        except SQLAlchemyError as e:
            raise _error_base_datos("listar clientes", e)

    @router.get(
        "/{cliente_id}",
        response_model=ClienteResponse,
        name="GetClienteId",
        responses={404: {"description": "Not found"}},
        dependencies=read_deps
    )
    @limiter.limit(limite)
    def obtener_cliente(
        request: Request,
        cliente_id: uuid.UUID,
        clientes: ClienteManager = Depends(get_cliente_manager)
    ):
        """Obtiene un cliente por su Id"""
        try:
            cliente = clientes.obtener_cliente(cliente_id)
        except SQLAlchemyError as e:
            raise _error_base_datos("obtener cliente", e)

        if cliente is None:
            return Response(status_code=status.HTTP_404_NOT_FOUND)

        return cliente

    @router.post(
        "",
        response_model=ClienteResponse,
        status_code=status.HTTP_201_CREATED,
        name="PostCliente",
        responses={400: VALIDATION_RESPONSE},
        dependencies=write_deps
    )
    @limiter.limit(limite)
    def crear_cliente(
        request: Request,
        response: Response,
        payload: Any = Body(None),
        clientes: ClienteManager = Depends(get_cliente_manager)
    ):
        """
        Crea un cliente

        Devuelve el cliente creado con su Id y la cabecera Location.
        """
        if payload is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_CLIENTE_NAO_INFORMADO)

        datos, errores = validar(ClienteRequest, payload)
        if errores:
            return validation_problem(errores)

        try:
            guardados, cliente = clientes.crear_cliente(datos.model_dump())
        except SQLAlchemyError as e:
            raise _error_base_datos("crear cliente", e)

        if guardados == 0:
            logger.warning("Creación de cliente sin filas guardadas")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_ERRO_SALVAR)

        response.headers["Location"] = f"/cliente/{cliente.id}"
        return cliente

    @router.put(
        "/{cliente_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        name="PutCliente",
        responses={400: VALIDATION_RESPONSE, 404: {"description": "Not found"}},
        dependencies=write_deps
    )
    @limiter.limit(limite)
    def actualizar_cliente(
        request: Request,
        cliente_id: uuid.UUID,
        payload: Any = Body(None),
        clientes: ClienteManager = Depends(get_cliente_manager)
    ):
        """Reemplaza los datos de un cliente existente"""
        try:
            if not clientes.existe_cliente(cliente_id):
                return Response(status_code=status.HTTP_404_NOT_FOUND)

            if payload is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_CLIENTE_NAO_INFORMADO)

            datos, errores = validar(ClienteRequest, payload)
            if errores:
                return validation_problem(errores)

            actualizados = clientes.actualizar_cliente(cliente_id, datos.model_dump())

        except SQLAlchemyError as e:
            raise _error_base_datos("actualizar cliente", e)

        if actualizados == 0:
            logger.warning(f"Actualización sin filas afectadas: {cliente_id}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_ERRO_ATUALIZAR)

        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.delete(
        "/{cliente_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        name="DeleteCliente",
        responses={400: {"model": MessageResponse}, 404: {"description": "Not found"}},
        dependencies=delete_deps
    )
    @limiter.limit(limite)
    def eliminar_cliente(
        request: Request,
        cliente_id: uuid.UUID,
        clientes: ClienteManager = Depends(get_cliente_manager)
    ):
        """Elimina definitivamente un cliente"""
        try:
            if not clientes.existe_cliente(cliente_id):
                return Response(status_code=status.HTTP_404_NOT_FOUND)

            eliminados = clientes.eliminar_cliente(cliente_id)

        except SQLAlchemyError as e:
            raise _error_base_datos("eliminar cliente", e)

        if eliminados == 0:
            logger.warning(f"Eliminación sin filas afectadas: {cliente_id}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MSG_ERRO_REMOVER)

        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


# ============================================
# Aplicación
# ============================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Crea la aplicación FastAPI

    El engine, la fábrica de sesiones y el contexto de hashing se crean
    una sola vez aquí y se comparten vía app.state.

    Args:
        settings: Configuración (por defecto, la de entorno)

    Returns:
        FastAPI: Aplicación lista para servir
    """
    settings = settings or Settings()
    validar_configuracion(settings)
    configurar_logging(settings)

    engine = crear_engine(
        settings.SQLALCHEMY_DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DB_ECHO
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.AUTO_CREATE_TABLES and not crear_tablas(engine):
            raise RuntimeError("No se pudieron crear las tablas de la base de datos")

        if not probar_conexion(engine):
            raise RuntimeError(
                f"Base de datos no disponible: {engine.url.render_as_string(hide_password=True)}"
            )

        logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} iniciada")
        yield

        engine.dispose()
        logger.info(f"{settings.APP_NAME} detenida")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API REST de clientes con autenticación JWT",
        docs_url="/api/docs" if settings.DEBUG else None,  # Desactivar docs en producción
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = crear_session_factory(engine)
    app.state.pwd_context = crear_pwd_context(settings)

    # Rate limiter
    limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Location"]
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Parámetros o body mal formados"""
        logger.warning(f"Petición inválida {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"detail": MSG_REQUISICAO_INVALIDA})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Maneja excepciones no controladas"""
        logger.error(f"Error no manejado: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root():
        return "Hello World!"

    if settings.IDENTITY_ENABLED:
        app.include_router(build_identity_router(settings, limiter))
    app.include_router(build_cliente_router(settings, limiter))

    return app
