from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ReconciliationInvariantError
from app.modules.user_stats.reconciliation import (
    ConsultaRegistro, PagoRegistro, TipoPago, conciliar, verificar_particion
)
from app.modules.user_stats.repository import UserStatsRepository
from app.shared.database.models import Role

T = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)


def consulta(id, key, created_at=T, total=None):
    return ConsultaRegistro(id=id, consulta_key=key, created_at=created_at, total_encontrado=total)


def pago(id, key, fecha_pago, total="100.00"):
    return PagoRegistro(id=id, articulo=key, total_pagado=Decimal(total), fecha_pago=fecha_pago)


# ===== FUNCIÓN PURA =====

def test_sin_consultas_reporte_en_cero():
    resultado = conciliar([], [pago(1, "A1", T)])

    assert resultado.total_consultas_analizadas == 0
    assert resultado.total_matches == 0
    assert resultado.suma_total_pagado == Decimal("0")
    assert resultado.suma_total_encontrado == Decimal("0")
    assert resultado.articulos_amplificados == {}


def test_pago_posterior_es_mediante_app():
    resultado = conciliar([consulta(1, "A1")], [pago(1, "A1", T + timedelta(hours=1), "250.00")])

    assert resultado.total_matches == 1
    assert resultado.matches[0].tipo_pago == TipoPago.MEDIANTE_APP
    assert resultado.total_pagos_mediante_app == 1
    assert resultado.suma_total_pagado_mediante_app == Decimal("250.00")
    assert resultado.total_pagos_previos == 0


def test_pago_anterior_es_previo():
    resultado = conciliar([consulta(1, "A1")], [pago(1, "A1", T - timedelta(hours=1), "80.00")])

    assert resultado.matches[0].tipo_pago == TipoPago.PREVIO
    assert resultado.total_pagos_previos == 1
    assert resultado.suma_total_pagos_previos == Decimal("80.00")


def test_pago_en_el_mismo_instante_cuenta_como_mediante_app():
    resultado = conciliar([consulta(1, "A1")], [pago(1, "A1", T)])

    assert resultado.matches[0].es_pago_mediante_app


def test_consulta_sin_pago_solo_cuenta_como_analizada():
    resultado = conciliar([consulta(1, "A1"), consulta(2, "B2")], [pago(1, "A1", T)])

    assert resultado.total_consultas_analizadas == 2
    assert resultado.total_matches == 1
    assert resultado.total_articulos_unicos == 2


def test_producto_cruzado_queda_reportado_como_amplificado():
    consultas = [
        consulta(1, "A1", T, Decimal("500")),
        consulta(2, "A1", T + timedelta(days=1), Decimal("500")),
    ]
    pagos = [
        pago(1, "A1", T - timedelta(days=2)),
        pago(2, "A1", T + timedelta(hours=2)),
        pago(3, "A1", T + timedelta(days=3)),
    ]

    resultado = conciliar(consultas, pagos)

    assert resultado.total_matches == 6
    assert resultado.total_articulos_unicos == 1
    assert resultado.total_articulos_duplicados == 1
    assert resultado.total_articulos_con_multiples_pagos == 1
    assert resultado.total_matches_amplificados == 6
    assert resultado.articulos_amplificados == {"A1": {"consultas": 2, "pagos": 3, "matches": 6}}
    # cada consulta se suma una sola vez aunque tenga varios matches
    assert resultado.suma_total_encontrado == Decimal("1000")
    assert resultado.suma_total_pagado == Decimal("600.00")


def test_particion_mediante_app_mas_previos_igual_total():
    consultas = [consulta(i, f"K{i % 3}", T + timedelta(hours=i)) for i in range(6)]
    pagos = [pago(i, f"K{i % 3}", T + timedelta(hours=2 * i), f"{10 * (i + 1)}.00") for i in range(5)]

    resultado = conciliar(consultas, pagos)

    assert resultado.total_pagos_mediante_app + resultado.total_pagos_previos == resultado.total_matches
    assert (
        resultado.suma_total_pagado_mediante_app + resultado.suma_total_pagos_previos
        == resultado.suma_total_pagado
    )


def test_particion_rota_lanza_error():
    resultado = conciliar([consulta(1, "A1")], [pago(1, "A1", T)])
    resultado.total_pagos_previos += 1

    with pytest.raises(ReconciliationInvariantError):
        verificar_particion(resultado)


def test_consultas_sin_clave_se_ignoran():
    resultado = conciliar([consulta(1, "")], [pago(1, "", T)])

    assert resultado.total_consultas_analizadas == 0
    assert resultado.total_matches == 0


# ===== ENDPOINT =====

def test_match_endpoint_cruza_logs_y_recaudo(client, make_consulta_log, make_recaudo):
    make_consulta_log("0801-0001", T, total=Decimal("300.00"))
    make_consulta_log("0801-0002", T, total=Decimal("120.00"))
    make_recaudo("0801-0001", T + timedelta(hours=1), Decimal("300.00"))
    make_recaudo("0801-0002", T - timedelta(days=5), Decimal("120.00"))
    make_recaudo("9999-0000", T, Decimal("999.00"))

    response = client.get("/api/v1/user-stats/match", params={"year": 2025})

    assert response.status_code == 200
    data = response.json()
    assert data["total_consultas_analizadas"] == 2
    assert data["total_matches"] == 2
    assert data["total_pagos_mediante_app"] == 1
    assert data["total_pagos_previos"] == 1
    assert Decimal(data["suma_total_pagado"]) == Decimal("420.00")
    assert Decimal(data["suma_total_encontrado"]) == Decimal("420.00")
    assert data["consistencia"] == "eventual_por_reporte"
    assert data["periodo_consultado"] == "01/01/2025 - 31/12/2025"
    tipos = {m["consulta_key"]: m["tipo_pago"] for m in data["matches"]}
    assert tipos == {"0801-0001": "MEDIANTE_APP", "0801-0002": "PREVIO"}


def test_match_endpoint_respeta_limites_en_hora_local(client, make_consulta_log, make_recaudo):
    # Tegucigalpa es UTC-6: 1 de enero 00:30 local = 06:30 UTC
    make_consulta_log("DENTRO", datetime(2025, 1, 1, 6, 30, tzinfo=timezone.utc))
    # 31 de diciembre 23:30 local del año anterior = 1 de enero 05:30 UTC
    make_consulta_log("FUERA", datetime(2025, 1, 1, 5, 30, tzinfo=timezone.utc))
    make_recaudo("DENTRO", datetime(2025, 2, 1, tzinfo=timezone.utc))
    make_recaudo("FUERA", datetime(2025, 2, 1, tzinfo=timezone.utc))

    response = client.get("/api/v1/user-stats/match", params={"year": 2025, "mes_inicio": 1, "mes_fin": 1})

    data = response.json()
    assert data["total_consultas_analizadas"] == 1
    assert [m["consulta_key"] for m in data["matches"]] == ["DENTRO"]


def test_match_endpoint_con_duplicados(client, make_consulta_log, make_recaudo):
    make_consulta_log("A1", T)
    make_consulta_log("A1", T + timedelta(hours=3))
    for offset in (-1, 1, 5):
        make_recaudo("A1", T + timedelta(hours=offset))

    data = client.get("/api/v1/user-stats/match", params={"year": "2025"}).json()

    assert data["total_matches"] == 6
    stats = data["estadisticas_duplicados"]
    assert stats["total_matches_amplificados"] == 6
    assert stats["articulos_amplificados"]["A1"] == {"consultas": 2, "pagos": 3, "matches": 6}


def test_match_endpoint_sin_datos(client):
    response = client.get("/api/v1/user-stats/match", params={"year": 2025})

    assert response.status_code == 200
    assert response.json()["total_matches"] == 0


@pytest.mark.parametrize("params", [
    {},
    {"year": "abcd"},
    {"year": "25"},
    {"year": 1999},
    {"year": 2025, "mes_inicio": 0},
    {"year": 2025, "mes_fin": 13},
    {"year": 2025, "mes_inicio": 6, "mes_fin": 3},
])
def test_match_endpoint_rechaza_parametros_invalidos(client, params):
    response = client.get("/api/v1/user-stats/match", params=params)

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "INVALID_INPUT"
    assert body["details"]["errors"]


def test_match_endpoint_requiere_rol_admin(client, current_user, make_user):
    current_user["user"] = make_user(Role.MARKET)

    response = client.get("/api/v1/user-stats/match", params={"year": 2025})

    assert response.status_code == 403


def _caida(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("conexión rechazada"))


@pytest.mark.parametrize("metodo", ["get_logs_with_key", "get_recaudos_by_keys"])
def test_match_endpoint_503_si_la_base_no_responde(client, make_consulta_log, monkeypatch, metodo):
    make_consulta_log("0801-0001", T)
    monkeypatch.setattr(UserStatsRepository, metodo, _caida)

    response = client.get("/api/v1/user-stats/match", params={"year": 2025})

    assert response.status_code == 503
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "UPSTREAM_UNAVAILABLE"
