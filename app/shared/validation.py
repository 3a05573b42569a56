# app/shared/validation.py
"""
Validaciones de frontera.

Cada validador devuelve un resultado tipado (Valid o Invalid) en vez de lanzar,
para que el router decida cómo responder antes de llamar al servicio.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel

from app.config.settings import settings
from app.core.exceptions import InvalidInputError
from app.shared.timezone import format_local_range, local_month_bounds, to_local, utc_now

T = TypeVar("T")

CONSULTA_KEY_FIELDS = ("claveCatastral", "dni", "ics")
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-\.]{0,49}$")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    errors: List[Dict[str, Any]] = field(default_factory=list)


ValidationResult = Union[Valid[T], Invalid]


def unwrap(result: "ValidationResult[T]") -> T:
    """Devolver el valor o lanzar InvalidInputError con los errores"""
    if isinstance(result, Invalid):
        raise InvalidInputError(
            "Parámetros inválidos",
            details={"errors": result.errors}
        )
    return result.value


class Periodo(BaseModel):
    """Período de reporte ya validado, con límites [inicio, fin) en UTC"""
    year: int
    mes_inicio: int
    mes_fin: int
    inicio: datetime
    fin: datetime

    @property
    def descripcion(self) -> str:
        return format_local_range(self.inicio, self.fin)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not re.fullmatch(r"-?\d+", text):
        return None
    return int(text)


def validate_periodo(
    year: Any,
    mes_inicio: Any = None,
    mes_fin: Any = None,
    now: Optional[datetime] = None
) -> "ValidationResult[Periodo]":
    """Validar año (obligatorio) y rango de meses opcional"""
    errors: List[Dict[str, Any]] = []
    max_year = to_local(now or utc_now()).year + 1

    if year is None or (isinstance(year, str) and not year.strip()):
        errors.append({"field": "year", "message": "El año es obligatorio"})
        parsed_year = None
    else:
        parsed_year = _as_int(year)
        if parsed_year is None or not 1000 <= parsed_year <= 9999:
            errors.append({"field": "year", "message": "El año debe ser un número de cuatro dígitos"})
            parsed_year = None
        elif not settings.anio_minimo <= parsed_year <= max_year:
            errors.append({
                "field": "year",
                "message": f"El año debe estar entre {settings.anio_minimo} y {max_year}"
            })
            parsed_year = None

    months = {}
    for name, raw, default in (("mes_inicio", mes_inicio, 1), ("mes_fin", mes_fin, 12)):
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            months[name] = default
            continue
        parsed = _as_int(raw)
        if parsed is None or not 1 <= parsed <= 12:
            errors.append({"field": name, "message": "El mes debe estar entre 1 y 12"})
        months[name] = parsed

    if not errors and months["mes_inicio"] > months["mes_fin"]:
        errors.append({"field": "mes_inicio", "message": "mes_inicio no puede ser mayor que mes_fin"})

    if errors:
        return Invalid(errors)

    inicio, fin = local_month_bounds(parsed_year, months["mes_inicio"], months["mes_fin"])
    return Valid(Periodo(
        year=parsed_year,
        mes_inicio=months["mes_inicio"],
        mes_fin=months["mes_fin"],
        inicio=inicio,
        fin=fin
    ))


def validate_consulta_key(value: Any) -> "ValidationResult[Optional[str]]":
    """Una clave ausente es válida (None); una clave presente debe estar bien formada"""
    if value is None:
        return Valid(None)
    text = str(value).strip()
    if not text:
        return Valid(None)
    if not _KEY_PATTERN.match(text):
        return Invalid([{"field": "consulta_key", "message": f"Clave de consulta mal formada: '{text}'"}])
    return Valid(text)


def extract_consulta_key(parametros: Mapping[str, Any]) -> Optional[str]:
    """Primera clave no vacía en orden claveCatastral > dni > ics"""
    for name in CONSULTA_KEY_FIELDS:
        value = parametros.get(name)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None
