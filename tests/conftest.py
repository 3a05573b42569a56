"""
Fixtures compartidos.

Cada test usa una base SQLite en memoria (StaticPool) y un TestClient con
las dependencias de sesión y de usuario actual reemplazadas.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.database import get_db, get_readonly_db, get_recaudo_db
from app.core.auth.dependencies import get_current_user
from app.core.auth.service import AuthService
from app.main import app
from app.modules.consultas.cache import consulta_cache
from app.shared.database.models import (
    Base, ConsultaLog, EstadoFactura, EstadoLocal, Factura, Local, Mercado, Recaudo, Role, User
)
from app.shared.database.readonly_models import (
    PRODUCTO_BIENES_INMUEBLES, Actor, Articulo, BienInmueble, CodigoPostal,
    DesarrolloVivienda, Direccion, Facturable, HistoricoArticulo, Movimiento, Obligacion, ReadonlyBase,
    SucursalLicencia, TipoMovimiento
)


@pytest.fixture(autouse=True)
def limpiar_cache_consultas():
    consulta_cache.clear()
    yield
    consulta_cache.clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    ReadonlyBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.ADMIN, username=None, password="secreto123", is_active=True):
        counter["n"] += 1
        username = username or f"{role.value.lower()}{counter['n']}"
        user = User(
            username=username,
            correo=f"{username}@mercados.hn",
            nombre="Prueba",
            apellido=role.value.title(),
            password_hash=AuthService.hash_password(password),
            role=role.value,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(Role.ADMIN, username="admin")


@pytest.fixture
def current_user(admin_user):
    """Usuario que verán los endpoints. Los tests pueden cambiar state['user']"""
    return {"user": admin_user}


@pytest.fixture
def client(db, current_user):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_recaudo_db] = _get_db
    app.dependency_overrides[get_readonly_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(db):
    """Cliente sin usuario simulado: la autenticación pasa por el JWT real"""
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mercado(db):
    mercado = Mercado(
        nombre_mercado="Mercado Zonal Belén",
        direccion="Barrio Belén, Comayagüela",
        latitud=Decimal("14.0818"),
        longitud=Decimal("-87.2068"),
    )
    db.add(mercado)
    db.commit()
    db.refresh(mercado)
    return mercado


@pytest.fixture
def make_local(db, mercado):
    def _make(numero, estado=EstadoLocal.ACTIVO, monto=Decimal("150.00"), mercado_id=None):
        local = Local(
            mercado_id=mercado_id or mercado.id,
            nombre_local=f"Local {numero}",
            numero_local=numero,
            propietario="María López",
            dni_propietario="0801199912345",
            monto_mensual=monto,
            estado_local=estado.value,
        )
        db.add(local)
        db.commit()
        db.refresh(local)
        return local

    return _make


@pytest.fixture
def make_factura(db):
    counter = {"n": 0}

    def _make(local, estado=EstadoFactura.PENDIENTE, monto=Decimal("100.00"), mes="2025-01",
              fecha_vencimiento=None, fecha_pago=None):
        counter["n"] += 1
        factura = Factura(
            correlativo=f"2025-{counter['n']:06d}",
            concepto=f"Cuota {mes}",
            mes=mes,
            anio=int(mes[:4]),
            monto=monto,
            estado=estado.value,
            fecha_vencimiento=fecha_vencimiento or datetime(2025, 3, 1, 5, 59, 59, tzinfo=timezone.utc),
            fecha_pago=fecha_pago,
            local_id=local.id,
        )
        db.add(factura)
        db.commit()
        db.refresh(factura)
        return factura

    return _make


@pytest.fixture
def make_consulta_log(db, admin_user):
    def _make(key, created_at, total=None, user=None, consulta_type="EC"):
        log = ConsultaLog(
            consulta_type=consulta_type,
            consulta_subtype="normal",
            parametros="{}",
            consulta_key=key,
            resultado="SUCCESS",
            total_encontrado=total,
            user_id=(user or admin_user).id,
            created_at=created_at,
        )
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    return _make


@pytest.fixture
def make_recaudo(db):
    def _make(articulo, fecha_pago, total=Decimal("100.00")):
        pago = Recaudo(articulo=articulo, total_pagado=total, fecha_pago=fecha_pago)
        db.add(pago)
        db.commit()
        db.refresh(pago)
        return pago

    return _make


@pytest.fixture
def make_deuda(db):
    """
    Arma en el esquema tributario una obligación con sus movimientos.

    montos: {"Impuesto": "800.00", "Tren de Aseo": "150.00", ...}
    El contribuyente y el artículo se reutilizan por dni y documento.
    """
    state = {"tipos": {}, "actores": {}, "articulos": {}}

    def _tipo(nombre):
        if nombre not in state["tipos"]:
            tipo = TipoMovimiento(nombre=nombre)
            db.add(tipo)
            db.flush()
            state["tipos"][nombre] = tipo
        return state["tipos"][nombre]

    def _actor(dni, nombre):
        if dni not in state["actores"]:
            primer_nombre, segundo_nombre, primer_apellido, segundo_apellido = nombre
            actor = Actor(
                identificacion=dni,
                primer_nombre=primer_nombre,
                segundo_nombre=segundo_nombre,
                primer_apellido=primer_apellido,
                segundo_apellido=segundo_apellido,
            )
            db.add(actor)
            db.flush()
            state["actores"][dni] = actor
        return state["actores"][dni]

    def _articulo(documento, actor, producto, activo, licencia, sector, colonia):
        if documento not in state["articulos"]:
            articulo = Articulo(num_documento=documento, activo=activo)
            db.add(articulo)
            db.flush()
            db.add(HistoricoArticulo(actor_id=actor.id, articulo_id=articulo.id, activo=True))
            facturable = Facturable(articulo_id=articulo.id, producto_id=producto)
            db.add(facturable)
            if producto == PRODUCTO_BIENES_INMUEBLES:
                desarrollo = DesarrolloVivienda(sector_id=sector, nombre=colonia)
                db.add(desarrollo)
                db.flush()
                codigo = CodigoPostal(desarrollo_vivienda_id=desarrollo.id)
                db.add(codigo)
                db.flush()
                direccion = Direccion(codigo_postal_id=codigo.id)
                db.add(direccion)
                db.flush()
                db.add(BienInmueble(articulo_id=articulo.id, direccion_id=direccion.id))
            else:
                db.add(SucursalLicencia(articulo_id=articulo.id, activo=licencia))
            db.flush()
            state["articulos"][documento] = facturable
        return state["articulos"][documento]

    def _make(documento, anio, montos, producto=PRODUCTO_BIENES_INMUEBLES, dni="0801199000111",
              nombre=("Juan", "Carlos", "Pérez", "López"), vencimiento=None, mes=None,
              activo=True, licencia=True, sector="K-01", colonia="Colonia Kennedy"):
        actor = _actor(dni, nombre)
        facturable = _articulo(documento, actor, producto, activo, licencia, sector, colonia)
        obligacion = Obligacion(
            facturable_id=facturable.id,
            anio=anio,
            nombre=mes or str(anio),
            fecha_vencimiento=vencimiento or datetime(anio, 8, 31),
        )
        db.add(obligacion)
        db.flush()
        for tipo, monto in montos.items():
            db.add(Movimiento(
                obligacion_id=obligacion.id,
                tipo_movimiento_id=_tipo(tipo).id,
                balance=Decimal(monto),
            ))
        db.commit()
        return obligacion

    return _make

