# app/modules/reportes/service.py
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Optional, Tuple

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import UpstreamUnavailableError
from app.modules.audit.service import AuditService
from app.modules.dashboard.service import porcentaje
from app.shared.database.models import AuditAction, EstadoFactura, User
from app.shared.timezone import format_local_range, local_date_bounds, local_month_bounds, to_local, utc_now
from .repository import ReportesRepository
from .schemas import (
    ConfiguracionReportes, ConfiguracionResponse, EstadisticasGenerales, EstadisticasResponse,
    EstadoMonto, FiltrosAplicados, FormatoReporte, GenerarReporteRequest, LocalReporte,
    MercadoDisponible, MercadoReporte, OpcionConfiguracion, PeriodoReporte, ReporteFinanciero,
    ReporteLocales, ReporteMercados, ReporteMetadata, ReporteOperacional, ReporteResponse,
    ResumenFinanciero, TipoReporte
)

logger = logging.getLogger(__name__)

TIPOS_REPORTE = {
    TipoReporte.FINANCIERO: "Reporte Financiero",
    TipoReporte.OPERACIONAL: "Reporte Operacional",
    TipoReporte.MERCADO: "Por Mercado",
    TipoReporte.LOCAL: "Por Local",
}
PERIODOS = {
    PeriodoReporte.MENSUAL: "Mensual",
    PeriodoReporte.TRIMESTRAL: "Trimestral",
    PeriodoReporte.ANUAL: "Anual",
}
FORMATOS = {FormatoReporte.JSON: "Vista Previa"}

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def rango_periodo(periodo: PeriodoReporte, now: datetime) -> Tuple[datetime, datetime]:
    """[inicio, fin) en UTC del mes, trimestre o año local que contiene now"""
    local_now = to_local(now)
    if periodo == PeriodoReporte.ANUAL:
        return local_month_bounds(local_now.year, 1, 12)
    if periodo == PeriodoReporte.TRIMESTRAL:
        primero = (local_now.month - 1) // 3 * 3 + 1
        return local_month_bounds(local_now.year, primero, primero + 2)
    return local_month_bounds(local_now.year, local_now.month, local_now.month)


class ReportesService:
    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.repository = ReportesRepository(db)
        self.audit = AuditService(db)
        self.now = now

    def generar(
        self,
        body: GenerarReporteRequest,
        current_user: User,
        request: Optional[Request] = None
    ) -> ReporteResponse:
        started = time.perf_counter()
        now = self.now or utc_now()

        personalizado = body.fecha_inicio is not None
        if personalizado:
            start, end = local_date_bounds(body.fecha_inicio, body.fecha_fin)
        else:
            start, end = rango_periodo(body.periodo, now)
        filtros = (start, end, body.mercados, body.locales)

        builders = {
            TipoReporte.FINANCIERO: self._financiero,
            TipoReporte.OPERACIONAL: lambda *args: self._operacional(now, *args),
            TipoReporte.MERCADO: self._mercados,
            TipoReporte.LOCAL: self._locales,
        }
        try:
            data = builders[body.tipo](*filtros)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error generando reporte {body.tipo.value}: {e}", exc_info=True)
            raise UpstreamUnavailableError("La base de datos no está disponible")

        elapsed = int((time.perf_counter() - started) * 1000)
        logger.info(f"Reporte {body.tipo.value} generado por {current_user.username} en {elapsed} ms")

        self.audit.log_action(
            AuditAction.GENERAR_REPORTE, "reportes", current_user.id,
            datos_nuevos={
                "tipo": body.tipo.value,
                "periodo": body.periodo.value,
                "fecha_inicio": start.isoformat(),
                "fecha_fin": end.isoformat(),
                "mercados": body.mercados,
                "locales": body.locales
            },
            request=request
        )

        return ReporteResponse(
            success=True,
            message="Reporte generado exitosamente",
            data=data,
            metadata=ReporteMetadata(
                tipo=body.tipo,
                periodo=body.periodo,
                formato=body.formato,
                fecha_inicio=start,
                fecha_fin=end,
                rango_local=format_local_range(start, end),
                personalizado=personalizado,
                tiempo_procesamiento_ms=elapsed,
                generado_en=now,
                usuario=current_user.username
            ),
            filtros_aplicados=FiltrosAplicados(mercados=body.mercados, locales=body.locales)
        )

    def configuracion(self) -> ConfiguracionResponse:
        """Opciones para construir el formulario de reportes"""
        return ConfiguracionResponse(
            success=True,
            configuracion=ConfiguracionReportes(
                tipos_reporte=[OpcionConfiguracion(value=k.value, label=v) for k, v in TIPOS_REPORTE.items()],
                periodos=[OpcionConfiguracion(value=k.value, label=v) for k, v in PERIODOS.items()],
                formatos=[OpcionConfiguracion(value=k.value, label=v) for k, v in FORMATOS.items()],
                mercados_disponibles=[
                    MercadoDisponible(id=m.id, nombre_mercado=m.nombre_mercado, direccion=m.direccion)
                    for m in self.repository.active_markets()
                ],
                tipos_local=self.repository.tipos_local()
            )
        )

    def estadisticas(self) -> EstadisticasResponse:
        totales = self.repository.general_totals()
        return EstadisticasResponse(
            success=True,
            estadisticas=EstadisticasGenerales(
                total_mercados=totales["mercados"],
                total_locales=totales["locales"],
                total_facturas=totales["facturas"],
                total_recaudado=_money(totales["recaudado"]),
                promedio_factura=_money(totales["promedio"])
            )
        )

    # ==================== TIPOS ====================

    def _por_mercado(self, *filtros):
        return [
            MercadoReporte(
                mercado_id=m["mercado_id"],
                nombre_mercado=m["nombre_mercado"],
                total_facturas=m["facturas"],
                facturas_pagadas=m["pagadas"],
                total_facturado=_money(m["facturado"]),
                total_recaudado=_money(m["recaudado"]),
                total_locales=m["total_locales"],
                porcentaje_pagadas=porcentaje(m["pagadas"], m["facturas"])
            )
            for m in self.repository.totals_by_market(*filtros)
        ]

    def _financiero(self, *filtros) -> ReporteFinanciero:
        por_estado = self.repository.totals_by_estado(*filtros)
        vigentes = {
            estado: valores for estado, valores in por_estado.items()
            if estado != EstadoFactura.ANULADA.value
        }

        facturado = sum((v["monto"] for v in vigentes.values()), _money(0))
        cantidad_vigentes = sum(v["cantidad"] for v in vigentes.values())
        recaudado = por_estado.get(EstadoFactura.PAGADA.value, {}).get("monto", _money(0))

        return ReporteFinanciero(
            resumen=ResumenFinanciero(
                total_facturas=sum(v["cantidad"] for v in por_estado.values()),
                total_facturado=_money(facturado),
                total_recaudado=_money(recaudado),
                promedio_factura=_money(facturado / cantidad_vigentes) if cantidad_vigentes else _money(0),
                porcentaje_recaudado=porcentaje(recaudado, facturado)
            ),
            por_estado={
                estado: EstadoMonto(cantidad=valores["cantidad"], monto=_money(valores["monto"]))
                for estado, valores in por_estado.items()
            },
            por_mercado=self._por_mercado(*filtros)
        )

    def _operacional(self, now: datetime, start, end, mercados, locales) -> ReporteOperacional:
        actividad = self.repository.activity(start, end, mercados, locales)

        hoy = to_local(now).date()
        hoy_start, hoy_end = local_date_bounds(hoy, hoy)
        hoy_start, hoy_end = max(start, hoy_start), min(end, hoy_end)
        facturas_hoy = self.repository.count_created(hoy_start, hoy_end, mercados, locales) if hoy_start < hoy_end else 0

        return ReporteOperacional(
            total_facturas=actividad["facturas"],
            mercados_con_facturas=actividad["mercados"],
            locales_con_facturas=actividad["locales"],
            facturas_hoy=facturas_hoy,
            eficiencia="ALTA" if facturas_hoy > 0 else "BAJA"
        )

    def _mercados(self, *filtros) -> ReporteMercados:
        return ReporteMercados(mercados=self._por_mercado(*filtros))

    def _locales(self, *filtros) -> ReporteLocales:
        return ReporteLocales(locales=[
            LocalReporte(
                local_id=l["local_id"],
                numero_local=l["numero_local"],
                nombre_local=l["nombre_local"],
                mercado=l["mercado"],
                total_facturas=l["facturas"],
                facturas_pagadas=l["pagadas"],
                total_facturado=_money(l["facturado"]),
                total_recaudado=_money(l["recaudado"])
            )
            for l in self.repository.totals_by_local(*filtros)
        ])
