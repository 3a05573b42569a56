from datetime import datetime, timezone

import pytest

from app.core.exceptions import InvalidInputError
from app.shared.timezone import ensure_utc, local_month_bounds, to_local
from app.shared.validation import (
    Invalid, Valid, extract_consulta_key, unwrap, validate_consulta_key, validate_periodo
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_periodo_valido_por_defecto_cubre_todo_el_año():
    result = validate_periodo("2025", now=NOW)

    assert isinstance(result, Valid)
    periodo = result.value
    assert (periodo.mes_inicio, periodo.mes_fin) == (1, 12)
    assert periodo.inicio == datetime(2025, 1, 1, 6, 0, tzinfo=timezone.utc)
    assert periodo.fin == datetime(2026, 1, 1, 6, 0, tzinfo=timezone.utc)


def test_periodo_con_rango_de_meses():
    periodo = unwrap(validate_periodo(2025, "3", "4", now=NOW))

    assert periodo.inicio == datetime(2025, 3, 1, 6, 0, tzinfo=timezone.utc)
    assert periodo.fin == datetime(2025, 5, 1, 6, 0, tzinfo=timezone.utc)
    assert periodo.descripcion == "01/03/2025 - 30/04/2025"


def test_año_siguiente_permitido_y_posterior_rechazado():
    assert isinstance(validate_periodo(2026, now=NOW), Valid)
    assert isinstance(validate_periodo(2027, now=NOW), Invalid)


@pytest.mark.parametrize("year", [None, "", "  ", "20x5", "123", "12345", True])
def test_año_invalido(year):
    result = validate_periodo(year, now=NOW)

    assert isinstance(result, Invalid)
    assert result.errors[0]["field"] == "year"


def test_año_anterior_al_minimo():
    result = validate_periodo(2019, now=NOW)

    assert isinstance(result, Invalid)
    assert "2020" in result.errors[0]["message"]


def test_mes_inicio_mayor_que_mes_fin():
    result = validate_periodo(2025, 8, 2, now=NOW)

    assert isinstance(result, Invalid)
    assert result.errors[0]["field"] == "mes_inicio"


def test_unwrap_lanza_error_de_entrada():
    with pytest.raises(InvalidInputError) as exc_info:
        unwrap(validate_periodo("nope", now=NOW))

    assert exc_info.value.status_code == 422
    assert exc_info.value.details["errors"]


# ===== CLAVE DE CONSULTA =====

def test_clave_en_orden_de_prioridad():
    assert extract_consulta_key({"ics": "ICS-1", "dni": "0801", "claveCatastral": "CC-9"}) == "CC-9"
    assert extract_consulta_key({"ics": "ICS-1", "dni": "0801"}) == "0801"
    assert extract_consulta_key({"ics": "ICS-1"}) == "ICS-1"


def test_clave_vacia_cuenta_como_ausente():
    assert extract_consulta_key({"claveCatastral": "  ", "dni": "", "ics": "ICS-7"}) == "ICS-7"
    assert extract_consulta_key({"claveCatastral": None}) is None
    assert extract_consulta_key({}) is None


def test_validar_clave():
    assert validate_consulta_key(None) == Valid(None)
    assert validate_consulta_key("0801-1990-00123") == Valid("0801-1990-00123")
    assert isinstance(validate_consulta_key("'; DROP TABLE"), Invalid)
    assert isinstance(validate_consulta_key("x" * 51), Invalid)


# ===== ZONA HORARIA =====

def test_limites_de_mes_en_utc():
    inicio, fin = local_month_bounds(2025, 12, 12)

    assert inicio == datetime(2025, 12, 1, 6, 0, tzinfo=timezone.utc)
    assert fin == datetime(2026, 1, 1, 6, 0, tzinfo=timezone.utc)


def test_fecha_sin_zona_se_interpreta_como_utc():
    naive = datetime(2025, 1, 1, 3, 0)

    assert ensure_utc(naive) == datetime(2025, 1, 1, 3, 0, tzinfo=timezone.utc)
    assert to_local(naive).day == 31
