# app/modules/consultas/repository.py
from sqlalchemy.orm import Session
from sqlalchemy import func, case, select
from typing import List, Optional, Sequence
from datetime import date, datetime
from decimal import Decimal

from app.shared.database.readonly_models import (
    Actor, Articulo, BienInmueble, CodigoPostal, DesarrolloVivienda, Direccion, Facturable,
    HistoricoArticulo, Movimiento, Obligacion, SucursalLicencia, TipoMovimiento,
    PRODUCTO_BIENES_INMUEBLES, PRODUCTO_INDUSTRIA_COMERCIO
)
from .calculo import RegistroDeuda

ANIO_MINIMO_DEUDA = 2015

IMPUESTO = "Impuesto"
TREN_DE_ASEO = "Tren de Aseo"
TASA_BOMBEROS = "Tasa Bomberos"
TIPOS_BASE = (IMPUESTO, TREN_DE_ASEO, TASA_BOMBEROS)

# Cargos de industria y comercio que se suman en "otros"
TIPOS_OTROS_ICS = (
    "Tasa de Medio Ambiente",
    "Dictámenes",
    "Tasa de Permiso de Operación",
    "Multa",
    "Ajuste por Ingresos",
    "Tasa de Bares y Expendios",
    "Impuesto Billar",
    "Maquinas Tragamonedas",
    "OTROS",
    "Contrato",
    "Interes de Financiamiento",
    "Rótulos",
)


def _suma_tipo(*tipos: str):
    """SUM(balance) solo de los movimientos de esos tipos (pivot por agregación condicional)"""
    return func.sum(case((TipoMovimiento.nombre.in_(tipos), Movimiento.balance), else_=None))


def _decimal(value) -> Decimal:
    return Decimal(value or 0)


def _fecha(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def _nombre(*partes: Optional[str]) -> Optional[str]:
    nombre = " ".join(p.strip() for p in partes if p and p.strip())
    return nombre or None


class ConsultasRepository:
    """Lecturas sobre el sistema tributario. Nunca escribe"""

    def __init__(self, db: Session):
        self.db = db

    def _deudas_base(self, producto_id: int, tipos: Sequence[str], *columnas):
        return self.db.query(
            Articulo.num_documento.label("clave"),
            Actor.identificacion.label("identidad"),
            Actor.primer_nombre,
            Actor.segundo_nombre,
            Actor.primer_apellido,
            Actor.segundo_apellido,
            Obligacion.anio.label("anio"),
            *columnas,
            _suma_tipo(IMPUESTO).label("impuesto"),
            _suma_tipo(TREN_DE_ASEO).label("tren_de_aseo"),
            _suma_tipo(TASA_BOMBEROS).label("tasa_bomberos"),
        ).select_from(Actor).join(
            HistoricoArticulo, HistoricoArticulo.actor_id == Actor.id
        ).join(
            Articulo, Articulo.id == HistoricoArticulo.articulo_id
        ).join(
            Facturable, Facturable.articulo_id == Articulo.id
        ).join(
            Obligacion, Obligacion.facturable_id == Facturable.id
        ).join(
            Movimiento, Movimiento.obligacion_id == Obligacion.id
        ).join(
            TipoMovimiento, TipoMovimiento.id == Movimiento.tipo_movimiento_id
        ).filter(
            Facturable.producto_id == producto_id,
            Obligacion.anio >= ANIO_MINIMO_DEUDA,
            HistoricoArticulo.activo == True,
            TipoMovimiento.nombre.in_(tipos)
        )

    @staticmethod
    def _filtrar(query, documento: Optional[str], dni: Optional[str]):
        if documento:
            query = query.filter(Articulo.num_documento == documento)
        if dni:
            query = query.filter(Actor.identificacion == dni)
        return query

    def get_deudas_ec(self, clave_catastral: Optional[str] = None, dni: Optional[str] = None) -> List[RegistroDeuda]:
        """Saldos de bienes inmuebles por inmueble y año, ordenados por clave y año"""
        query = self._deudas_base(
            PRODUCTO_BIENES_INMUEBLES,
            TIPOS_BASE,
            Obligacion.fecha_vencimiento.label("vencimiento"),
            DesarrolloVivienda.sector_id.label("sector"),
            DesarrolloVivienda.nombre.label("colonia"),
        ).join(
            BienInmueble, BienInmueble.articulo_id == Articulo.id
        ).join(
            Direccion, Direccion.id == BienInmueble.direccion_id
        ).outerjoin(
            CodigoPostal, CodigoPostal.id == Direccion.codigo_postal_id
        ).join(
            DesarrolloVivienda, DesarrolloVivienda.id == CodigoPostal.desarrollo_vivienda_id
        )
        query = self._filtrar(query, clave_catastral, dni).group_by(
            Articulo.num_documento, Actor.identificacion,
            Actor.primer_nombre, Actor.segundo_nombre, Actor.primer_apellido, Actor.segundo_apellido,
            Obligacion.anio, Obligacion.fecha_vencimiento,
            DesarrolloVivienda.sector_id, DesarrolloVivienda.nombre
        ).order_by(Articulo.num_documento, Obligacion.anio)

        return [
            RegistroDeuda(
                clave=row.clave,
                identidad=row.identidad,
                nombre=_nombre(row.primer_nombre, row.segundo_nombre, row.primer_apellido, row.segundo_apellido),
                anio=int(row.anio),
                vencimiento=_fecha(row.vencimiento),
                impuesto=_decimal(row.impuesto),
                tren_de_aseo=_decimal(row.tren_de_aseo),
                tasa_bomberos=_decimal(row.tasa_bomberos),
                sector=row.sector,
                colonia=row.colonia
            )
            for row in query.all()
        ]

    def get_deudas_ics(self, ics: Optional[str] = None, dni: Optional[str] = None) -> List[RegistroDeuda]:
        """
        Saldos de industria y comercio por empresa y mes de obligación.

        Solo empresas activas con licencia de operación activa. Orden: la
        obligación más vencida primero.
        """
        licencias_activas = select(SucursalLicencia.articulo_id).where(
            SucursalLicencia.activo == True
        )
        vencimiento = func.min(Obligacion.fecha_vencimiento).label("vencimiento")
        query = self._deudas_base(
            PRODUCTO_INDUSTRIA_COMERCIO,
            TIPOS_BASE + TIPOS_OTROS_ICS,
            Obligacion.nombre.label("mes"),
            vencimiento,
            _suma_tipo(*TIPOS_OTROS_ICS).label("otros"),
        ).filter(
            Articulo.activo == True,
            Articulo.id.in_(licencias_activas)
        )
        query = self._filtrar(query, ics, dni).group_by(
            Articulo.num_documento, Actor.identificacion,
            Actor.primer_nombre, Actor.segundo_nombre, Actor.primer_apellido, Actor.segundo_apellido,
            Obligacion.anio, Obligacion.nombre
        ).order_by(vencimiento, Articulo.num_documento)

        return [
            RegistroDeuda(
                clave=row.clave,
                identidad=row.identidad,
                nombre=_nombre(row.primer_nombre, row.segundo_nombre, row.primer_apellido, row.segundo_apellido),
                anio=int(row.anio),
                vencimiento=_fecha(row.vencimiento),
                impuesto=_decimal(row.impuesto),
                tren_de_aseo=_decimal(row.tren_de_aseo),
                tasa_bomberos=_decimal(row.tasa_bomberos),
                otros=_decimal(row.otros),
                mes=row.mes
            )
            for row in query.all()
        ]
