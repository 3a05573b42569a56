import pytest

from app.core.auth.service import AuthService
from app.core.exceptions import InvalidInputError
from app.shared.database.models import AuditLog, Role


def test_login_devuelve_token_y_registra_auditoria(auth_client, db, make_user):
    user = make_user(Role.USER, username="cajero1", password="cajero123")

    response = auth_client.post("/api/v1/auth/login-json", json={"username": "cajero1", "password": "cajero123"})

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["username"] == "cajero1"
    assert data["user"]["last_login"] is not None
    assert db.query(AuditLog).filter(AuditLog.accion == "LOGIN", AuditLog.user_id == user.id).count() == 1


def test_login_con_formulario(auth_client, make_user):
    make_user(Role.ADMIN, username="jefa", password="admin123")

    response = auth_client.post("/api/v1/auth/login", data={"username": "jefa", "password": "admin123"})

    assert response.status_code == 200


def test_contraseña_incorrecta(auth_client, make_user):
    make_user(Role.USER, username="cajero2", password="correcta1")

    response = auth_client.post("/api/v1/auth/login-json", json={"username": "cajero2", "password": "incorrecta"})

    assert response.status_code == 401


def test_usuario_inactivo(auth_client, make_user):
    make_user(Role.USER, username="baja01", password="secreto123", is_active=False)

    response = auth_client.post("/api/v1/auth/login-json", json={"username": "baja01", "password": "secreto123"})

    assert response.status_code == 403


def test_me_con_token(auth_client, make_user):
    make_user(Role.MARKET, username="mercado1", password="mercado123")
    token = auth_client.post(
        "/api/v1/auth/login-json", json={"username": "mercado1", "password": "mercado123"}
    ).json()["access_token"]

    response = auth_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["role"] == "MARKET"


def test_token_invalido(auth_client):
    response = auth_client.get("/api/v1/auth/me", headers={"Authorization": "Bearer no-es-un-token"})

    assert response.status_code == 401


def test_sin_token(auth_client):
    response = auth_client.get("/api/v1/dashboard/statistics")

    assert response.status_code in (401, 403)


def _login(client, username, password):
    return client.post("/api/v1/auth/login-json", json={"username": username, "password": password}).json()


def test_refresh_entrega_nuevo_par_de_tokens(auth_client, make_user):
    make_user(Role.USER, username="cajero3", password="cajero123")
    tokens = _login(auth_client, "cajero3", "cajero123")

    response = auth_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 200
    nuevo = response.json()
    me = auth_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {nuevo['access_token']}"})
    assert me.json()["username"] == "cajero3"


def test_refresh_no_acepta_token_de_acceso(auth_client, make_user):
    make_user(Role.USER, username="cajero4", password="cajero123")
    tokens = _login(auth_client, "cajero4", "cajero123")

    response = auth_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})

    assert response.status_code == 401


def test_token_de_refresco_no_sirve_como_acceso(auth_client, make_user):
    make_user(Role.USER, username="cajero5", password="cajero123")
    tokens = _login(auth_client, "cajero5", "cajero123")

    response = auth_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})

    assert response.status_code == 401


def test_refresh_de_usuario_desactivado(auth_client, db, make_user):
    user = make_user(Role.USER, username="cajero6", password="cajero123")
    tokens = _login(auth_client, "cajero6", "cajero123")
    user.is_active = False
    db.commit()

    response = auth_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 401


def test_cambiar_contraseña(auth_client, db, make_user):
    user = make_user(Role.MARKET, username="mercado2", password="vieja123")
    token = _login(auth_client, "mercado2", "vieja123")["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    response = auth_client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "vieja123", "new_password": "nueva456"},
        headers=headers
    )

    assert response.status_code == 200
    assert db.query(AuditLog).filter(AuditLog.accion == "CAMBIAR_PASSWORD", AuditLog.user_id == user.id).count() == 1
    assert auth_client.post(
        "/api/v1/auth/login-json", json={"username": "mercado2", "password": "vieja123"}
    ).status_code == 401
    assert auth_client.post(
        "/api/v1/auth/login-json", json={"username": "mercado2", "password": "nueva456"}
    ).status_code == 200


def test_cambiar_contraseña_con_actual_incorrecta(auth_client, make_user):
    make_user(Role.MARKET, username="mercado3", password="vieja123")
    token = _login(auth_client, "mercado3", "vieja123")["access_token"]

    response = auth_client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "otra9999", "new_password": "nueva456"},
        headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "BUSINESS_RULE"


def test_nueva_contraseña_igual_a_la_actual(auth_client, make_user):
    make_user(Role.MARKET, username="mercado4", password="vieja123")
    token = _login(auth_client, "mercado4", "vieja123")["access_token"]

    response = auth_client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "vieja123", "new_password": "vieja123"},
        headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 422


def test_politica_de_contraseña():
    with pytest.raises(InvalidInputError):
        AuthService.hash_password("corta")
    with pytest.raises(InvalidInputError):
        AuthService.hash_password("ñ" * 40)
    assert AuthService.verify_password("segura123", AuthService.hash_password("segura123"))
    assert not AuthService.verify_password("segura123", None)
