from datetime import timedelta
from decimal import Decimal

from app.shared.database.models import AuditLog, Role, UserLocation
from app.shared.timezone import utc_now


def test_asignar_ubicacion_desactiva_la_anterior(client, db, make_user):
    cajero = make_user(Role.USER)

    primera = client.post("/api/v1/user-stats/user-location", json={
        "user_id": cajero.id, "location_name": "Mall Premier"
    })
    segunda = client.post("/api/v1/user-stats/user-location", json={
        "user_id": cajero.id, "location_name": "Mercado Zonal Belén", "location_code": "MZB"
    })

    assert primera.status_code == 201
    assert segunda.status_code == 201
    activas = db.query(UserLocation).filter(UserLocation.user_id == cajero.id, UserLocation.is_active == True).all()
    assert [loc.location_name for loc in activas] == ["Mercado Zonal Belén"]
    assert db.query(AuditLog).filter(AuditLog.tabla == "user_locations").count() == 2

    historial = client.get(f"/api/v1/user-stats/user/{cajero.id}/location-history").json()
    assert historial["total"] == 2
    assert historial["ubicacion_actual"]["location_name"] == "Mercado Zonal Belén"


def test_asignar_ubicacion_a_usuario_inexistente(client):
    response = client.post("/api/v1/user-stats/user-location", json={"user_id": 999, "location_name": "Mall"})

    assert response.status_code == 404


def test_registrar_log_extrae_la_clave(client, current_user, make_user):
    current_user["user"] = make_user(Role.USER)

    response = client.post("/api/v1/user-stats/log", json={
        "consulta_type": "ICS",
        "parametros": {"ics": "ICS-9", "dni": "0801"},
        "resultado": "SUCCESS",
        "total_encontrado": 75.25,
        "duracion_ms": 120
    })

    assert response.status_code == 201
    data = response.json()
    assert data["consulta_key"] == "0801"
    assert data["consulta_subtype"] == "normal"


def test_estadisticas_por_usuario_y_generales(client, db, admin_user, make_user, make_consulta_log):
    cajero = make_user(Role.USER)
    db.add(UserLocation(user_id=cajero.id, location_name="Mall Premier", is_active=True))
    db.commit()
    ahora = utc_now()
    make_consulta_log("A1", ahora - timedelta(hours=1), total=Decimal("100"), user=cajero)
    make_consulta_log("A2", ahora - timedelta(hours=2), total=Decimal("50"), user=cajero, consulta_type="ICS")
    make_consulta_log("A3", ahora - timedelta(days=40), user=cajero)

    stats = client.get(f"/api/v1/user-stats/user/{cajero.id}").json()
    assert stats["total_consultas"] == 2
    assert stats["consultas_ec"] == 1
    assert stats["consultas_ics"] == 1
    assert Decimal(stats["total_recaudado_consultado"]) == Decimal("150")
    assert stats["user_location"] == "Mall Premier"

    anual = client.get(f"/api/v1/user-stats/user/{cajero.id}", params={"time_range": "year"}).json()
    assert anual["total_consultas"] == 3

    general = client.get("/api/v1/user-stats/general").json()
    assert general["total_consultas"] == 2
    assert general["usuarios_activos"] == 1
    assert general["consultas_por_tipo"] == {"EC": 1, "ICS": 1}
    assert general["top_usuarios"][0]["user_id"] == cajero.id


def test_listar_logs_con_filtros(client, admin_user, make_consulta_log):
    ahora = utc_now()
    make_consulta_log("A1", ahora - timedelta(minutes=5))
    make_consulta_log("B1", ahora - timedelta(minutes=10), consulta_type="ICS")

    todos = client.get("/api/v1/user-stats/logs").json()
    assert todos["total"] == 2

    ics = client.get("/api/v1/user-stats/logs", params={"consulta_type": "ICS"}).json()
    assert [item["consulta_key"] for item in ics["items"]] == ["B1"]


def test_rango_personalizado_requiere_fechas(client):
    response = client.get("/api/v1/user-stats/general", params={"time_range": "custom"})

    assert response.status_code == 422


def test_mis_estadisticas(client, current_user, make_user):
    current_user["user"] = make_user(Role.USER)

    response = client.get("/api/v1/user-stats/my-stats")

    assert response.status_code == 200
    assert response.json()["total_consultas"] == 0
