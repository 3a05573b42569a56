from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.modules.facturas.service import calcular_fecha_vencimiento
from app.shared.database.models import AuditLog, EstadoFactura, EstadoLocal, Factura, Role


def crear(client, local_id, mes="2025-01", monto=150):
    return client.post("/api/v1/facturas/", json={
        "local_id": local_id,
        "concepto": f"Cuota mensual {mes}",
        "mes": mes,
        "anio": int(mes[:4]),
        "monto": monto,
    })


def test_vencimiento_es_fin_del_mes_siguiente_en_hora_local():
    # 28/02/2025 23:59:59 en Tegucigalpa (UTC-6)
    assert calcular_fecha_vencimiento("2025-01") == datetime(2025, 3, 1, 5, 59, 59, tzinfo=timezone.utc)
    assert calcular_fecha_vencimiento("2024-12") == datetime(2025, 2, 1, 5, 59, 59, tzinfo=timezone.utc)


def test_crear_factura(client, db, make_local):
    local = make_local("B-010")

    response = crear(client, local.id)

    assert response.status_code == 201
    data = response.json()
    assert data["estado"] == "PENDIENTE"
    assert data["correlativo"].endswith("-000001")
    assert data["mercado_nombre"] == "Mercado Zonal Belén"
    assert data["propietario_dni"] == "0801199912345"
    assert db.query(AuditLog).filter(AuditLog.tabla == "facturas").count() == 1


def test_correlativos_consecutivos(client, make_local):
    local = make_local("B-011")

    primero = crear(client, local.id, "2025-01").json()["correlativo"]
    segundo = crear(client, local.id, "2025-02").json()["correlativo"]

    assert int(segundo.split("-")[1]) == int(primero.split("-")[1]) + 1


def test_factura_duplicada_por_local_y_mes(client, make_local):
    local = make_local("B-012")
    crear(client, local.id)

    response = crear(client, local.id)

    assert response.status_code == 409
    assert response.json()["error_code"] == "CONFLICT"


def test_factura_de_local_inexistente(client):
    assert crear(client, 999).status_code == 404


def test_mes_y_anio_deben_coincidir(client, make_local):
    local = make_local("B-013")

    response = client.post("/api/v1/facturas/", json={
        "local_id": local.id, "concepto": "Cuota", "mes": "2025-01", "anio": 2024, "monto": 10
    })

    assert response.status_code == 422


def test_pagar_y_no_pagar_dos_veces(client, make_local):
    factura_id = crear(client, make_local("C-001").id).json()["id"]

    pagada = client.patch(f"/api/v1/facturas/{factura_id}/pagar")
    assert pagada.status_code == 200
    assert pagada.json()["estado"] == "PAGADA"
    assert pagada.json()["fecha_pago"] is not None

    again = client.patch(f"/api/v1/facturas/{factura_id}/pagar")
    assert again.status_code == 400
    assert again.json()["error_code"] == "BUSINESS_RULE"


def test_anular_factura(client, db, admin_user, make_local):
    factura_id = crear(client, make_local("C-002").id).json()["id"]

    response = client.patch(
        f"/api/v1/facturas/{factura_id}/anular",
        json={"razon_anulacion": "Emitida con monto equivocado"}
    )

    assert response.status_code == 200
    factura = db.get(Factura, factura_id)
    db.refresh(factura)
    assert factura.estado == EstadoFactura.ANULADA.value
    assert factura.anulado_por_user_id == admin_user.id
    assert factura.fecha_anulacion is not None

    assert client.patch(f"/api/v1/facturas/{factura_id}/anular",
                        json={"razon_anulacion": "Segundo intento de anulación"}).status_code == 400
    assert client.patch(f"/api/v1/facturas/{factura_id}/pagar").status_code == 400


def test_no_se_anula_factura_pagada(client, make_local):
    factura_id = crear(client, make_local("C-003").id).json()["id"]
    client.patch(f"/api/v1/facturas/{factura_id}/pagar")

    response = client.patch(
        f"/api/v1/facturas/{factura_id}/anular",
        json={"razon_anulacion": "Ya no corresponde el cobro"}
    )

    assert response.status_code == 400


@pytest.mark.parametrize("razon", ["corta", "   muy corta   ", "x" * 501])
def test_razon_de_anulacion_invalida(client, make_local, razon):
    factura_id = crear(client, make_local("C-004").id).json()["id"]

    response = client.patch(f"/api/v1/facturas/{factura_id}/anular", json={"razon_anulacion": razon})

    assert response.status_code == 422


def test_generacion_masiva(client, db, mercado, make_local):
    make_local("D-001", monto=Decimal("120.00"))
    make_local("D-002", monto=Decimal("180.00"))
    make_local("D-003", estado=EstadoLocal.INACTIVO)

    response = client.post("/api/v1/facturas/masivas", json={
        "mercado_id": mercado.id, "mes": "2025-04", "anio": 2025
    })

    assert response.status_code == 201
    assert response.json()["count"] == 2
    montos = sorted(f.monto for f in db.query(Factura).filter(Factura.mes == "2025-04").all())
    assert montos == [Decimal("120.00"), Decimal("180.00")]

    repetida = client.post("/api/v1/facturas/masivas", json={
        "mercado_id": mercado.id, "mes": "2025-04", "anio": 2025
    })
    assert repetida.status_code == 409


def test_generacion_masiva_sin_locales_activos(client, mercado, make_local):
    make_local("E-001", estado=EstadoLocal.PENDIENTE)

    response = client.post("/api/v1/facturas/masivas", json={
        "mercado_id": mercado.id, "mes": "2025-04", "anio": 2025
    })

    assert response.status_code == 400


def test_generacion_masiva_mercado_inexistente(client):
    response = client.post("/api/v1/facturas/masivas", json={"mercado_id": 77, "mes": "2025-04", "anio": 2025})

    assert response.status_code == 404


def test_actualizar_vencidas(client, db, make_local, make_factura):
    local = make_local("F-001")
    vieja = make_factura(local, mes="2024-01", fecha_vencimiento=datetime(2024, 3, 1, tzinfo=timezone.utc))
    make_factura(local, mes="2099-01", fecha_vencimiento=datetime(2099, 3, 1, tzinfo=timezone.utc))

    response = client.post("/api/v1/facturas/actualizar-vencidas")

    assert response.json()["actualizadas"] == 1
    db.refresh(vieja)
    assert vieja.estado == EstadoFactura.VENCIDA.value


def test_listar_y_estadisticas(client, make_local, make_factura):
    local = make_local("G-001")
    make_factura(local, EstadoFactura.PAGADA, Decimal("100.00"), "2025-01")
    make_factura(local, EstadoFactura.PENDIENTE, Decimal("300.00"), "2025-02")

    listado = client.get("/api/v1/facturas/", params={"estado": "PAGADA"}).json()
    assert listado["total"] == 1

    stats = client.get("/api/v1/facturas/stats").json()
    assert stats["total_facturas"] == 2
    assert stats["por_estado"] == {"PAGADA": 1, "PENDIENTE": 1}
    assert stats["porcentaje_recaudacion"] == 25.0


def test_usuario_de_consultas_no_factura(client, current_user, make_user, make_local):
    current_user["user"] = make_user(Role.USER)

    assert crear(client, make_local("H-001").id).status_code == 403
