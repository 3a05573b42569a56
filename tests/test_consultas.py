import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.config.settings import settings
from app.modules.consultas import service as consultas_service
from app.modules.consultas.repository import ConsultasRepository
from app.shared.database.models import ConsultaLog, Role, UserLocation
from app.shared.database.readonly_models import PRODUCTO_INDUSTRIA_COMERCIO

# 10 de mayo de 2025, 12:00 en Tegucigalpa
AHORA = datetime(2025, 5, 10, 18, 0, tzinfo=timezone.utc)
CLAVE = "0801-2019-00123"
BASE_2023 = {"Impuesto": "800.00", "Tren de Aseo": "150.00", "Tasa Bomberos": "50.00"}


@pytest.fixture(autouse=True)
def reloj_fijo(monkeypatch):
    monkeypatch.setattr(consultas_service, "utc_now", lambda: AHORA)


@pytest.fixture
def inmueble(make_deuda):
    make_deuda(CLAVE, 2023, {**BASE_2023, "Multa": "999.00"})
    make_deuda(CLAVE, 2025, {"Impuesto": "500.00"})


def test_consulta_ec_calcula_recargo_y_queda_registrada(client, db, admin_user, inmueble):
    db.add(UserLocation(user_id=admin_user.id, location_name="Mall Premier", is_active=True))
    db.commit()

    response = client.get("/api/v1/consultas/ec", params={"claveCatastral": CLAVE})

    assert response.status_code == 200
    body = response.json()
    assert body["resultado"] == "SUCCESS"
    assert body["consulta_key"] == CLAVE
    assert body["desde_cache"] is False
    data = body["data"]
    assert data["tipo_consulta"] == "clave_catastral"
    assert data["nombre"] == "Juan Carlos Pérez López"
    assert data["nombre_colonia"] == "Colonia Kennedy"
    # la multa no es parte del estado de cuenta de inmuebles
    assert [Decimal(d["impuesto"]) for d in data["detalles_mora"]] == [Decimal("800.00"), Decimal("500.00")]
    assert Decimal(data["detalles_mora"][0]["recargo"]) == Decimal("377.67")
    assert Decimal(data["total_a_pagar"]) == Decimal("1877.67")
    assert Decimal(body["total_encontrado"]) == Decimal("1877.67")

    log = db.query(ConsultaLog).one()
    assert (log.consulta_type, log.consulta_subtype, log.resultado) == ("EC", "normal", "SUCCESS")
    assert log.consulta_key == CLAVE
    assert log.total_encontrado == Decimal("1877.67")
    assert log.user_location == "Mall Premier"
    assert json.loads(log.parametros) == {"claveCatastral": CLAVE}


def test_segunda_consulta_sale_de_cache_y_tambien_se_registra(client, db, inmueble, monkeypatch):
    client.get("/api/v1/consultas/ec", params={"claveCatastral": CLAVE})

    def no_deberia_consultar(*args, **kwargs):
        raise AssertionError("la consulta debía salir de cache")

    monkeypatch.setattr(ConsultasRepository, "get_deudas_ec", no_deberia_consultar)
    response = client.get("/api/v1/consultas/ec", params={"claveCatastral": CLAVE})

    assert response.status_code == 200
    assert response.json()["desde_cache"] is True
    assert db.query(ConsultaLog).count() == 2


def test_cache_separa_normal_y_amnistia(client, inmueble, monkeypatch):
    monkeypatch.setattr(settings, "amnistia_activa", True)

    normal = client.get("/api/v1/consultas/ec", params={"claveCatastral": CLAVE}).json()
    amnistia = client.get("/api/v1/consultas/ec/amnistia", params={"claveCatastral": CLAVE}).json()

    assert amnistia["desde_cache"] is False
    assert Decimal(normal["data"]["total_a_pagar"]) == Decimal("1877.67")
    assert Decimal(amnistia["data"]["total_a_pagar"]) == Decimal("1500.00")
    assert amnistia["data"]["amnistia_vigente"] is True
    assert amnistia["data"]["fecha_fin_amnistia"] == "2025-09-30"
    assert amnistia["data"]["detalles_mora"][0]["amnistia_aplicada"] is True


def test_consulta_ec_por_dni_agrupa_propiedades(client, make_deuda):
    make_deuda("0801-B", 2025, {"Impuesto": "100.00"}, dni="0801198012345")
    make_deuda("0801-A", 2025, {"Impuesto": "200.00"}, dni="0801198012345")
    make_deuda("0801-C", 2025, {"Impuesto": "999.00"}, dni="0801197700000")

    response = client.get("/api/v1/consultas/ec", params={"dni": "0801198012345"})

    data = response.json()["data"]
    assert data["tipo_consulta"] == "dni"
    assert [p["clave"] for p in data["propiedades"]] == ["0801-A", "0801-B"]
    assert Decimal(data["total_a_pagar"]) == Decimal("300.00")


def test_consulta_ics_con_otros_cargos(client, db, make_deuda):
    make_deuda(
        "ICS-4455", 2025, {"Impuesto": "300.00", "Tasa de Medio Ambiente": "20.00", "Rótulos": "30.00"},
        producto=PRODUCTO_INDUSTRIA_COMERCIO, mes="2025-04", vencimiento=datetime(2025, 5, 10)
    )

    response = client.get("/api/v1/consultas/ics", params={"ics": "ICS-4455"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tipo_consulta"] == "ics"
    assert data["mes"] == "2025-04"
    detalle = data["detalles_mora"][0]
    assert Decimal(detalle["otros"]) == Decimal("50.00")
    assert Decimal(data["total_a_pagar"]) == Decimal("350.00")
    log = db.query(ConsultaLog).one()
    assert (log.consulta_type, log.consulta_key) == ("ICS", "ICS-4455")


def test_ics_sin_licencia_activa_no_aparece(client, db, make_deuda):
    make_deuda(
        "ICS-9999", 2025, {"Impuesto": "300.00"},
        producto=PRODUCTO_INDUSTRIA_COMERCIO, mes="2025-04", licencia=False
    )

    response = client.get("/api/v1/consultas/ics/amnistia", params={"ics": "ICS-9999"})

    assert response.status_code == 404
    log = db.query(ConsultaLog).one()
    assert (log.consulta_subtype, log.resultado) == ("amnistia", "NOT_FOUND")


def test_clave_no_encontrada_es_404_y_se_registra(client, db):
    response = client.get("/api/v1/consultas/ec", params={"dni": "0801199900000"})

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"
    log = db.query(ConsultaLog).one()
    assert log.resultado == "NOT_FOUND"
    assert log.consulta_key == "0801199900000"


def test_sistema_tributario_caido_es_503(client, db, monkeypatch):
    def caido(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("conexión rechazada"))

    monkeypatch.setattr(ConsultasRepository, "get_deudas_ics", caido)

    response = client.get("/api/v1/consultas/ics", params={"ics": "ICS-1"})

    assert response.status_code == 503
    assert response.json()["error_code"] == "UPSTREAM_UNAVAILABLE"
    log = db.query(ConsultaLog).one()
    assert log.resultado == "ERROR"
    assert log.error_message


def test_sin_parametros_de_busqueda(client, db):
    response = client.get("/api/v1/consultas/ec")

    assert response.status_code == 422
    assert db.query(ConsultaLog).count() == 0


def test_clave_mal_formada(client):
    response = client.get("/api/v1/consultas/ec", params={"claveCatastral": "0801 OR 1=1"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "INVALID_INPUT"


def test_market_no_hace_consultas(client, current_user, make_user):
    current_user["user"] = make_user(Role.MARKET)

    assert client.get("/api/v1/consultas/ec", params={"dni": "0801"}).status_code == 403
