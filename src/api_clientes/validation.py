"""
Validación declarativa de payloads
==================================

Valida un body contra su esquema Pydantic y devuelve los errores
agrupados por campo, en el orden en que Pydantic los reporta.

"""

from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .schemas import ValidationProblem

M = TypeVar("M", bound=BaseModel)


def _mensaje(error: dict) -> str:
    # Los ValueError propios se devuelven sin el prefijo "Value error, "
    if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error["msg"]


def validar(modelo: Type[M], datos: Any) -> Tuple[Optional[M], Dict[str, List[str]]]:
    """
    Valida datos contra un esquema

    Args:
        modelo: Esquema Pydantic
        datos: Body ya decodificado de JSON

    Returns:
        (instancia validada o None, errores por campo)
    """
    try:
        return modelo.model_validate(datos), {}
    except ValidationError as e:
        errores: Dict[str, List[str]] = {}
        for error in e.errors():
            campo = ".".join(str(p) for p in error["loc"]) or "body"
            errores.setdefault(campo, []).append(_mensaje(error))
        return None, errores


def validation_problem(errores: Dict[str, List[str]]) -> JSONResponse:
    """Respuesta 400 con los errores de validación"""
    return JSONResponse(
        status_code=400,
        content=ValidationProblem(errors=errores).model_dump(),
        media_type="application/problem+json"
    )
