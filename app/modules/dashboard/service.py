# app/modules/dashboard/service.py
import logging
import time
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import UpstreamUnavailableError
from app.shared.database.models import EstadoFactura
from app.shared.timezone import local_month_bounds, to_local, utc_now
from .repository import DashboardRepository
from .schemas import (
    DashboardStatistics, EntityMetrics, FinancialMetrics, InvoiceMetrics, LocalRevenue,
    MarketOccupancy, MarketRevenue, MetricaNoDisponible, Proyeccion
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def porcentaje(parte, total) -> float:
    """parte / total × 100 redondeado a dos decimales, 0 si total es 0"""
    if not total:
        return 0.0
    return round(min(max(float(parte) / float(total) * 100, 0.0), 100.0), 2)


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def _periodos(now: datetime):
    """Límites [inicio, fin) del mes y del año locales que contienen now"""
    local_now = to_local(now)
    return (
        local_month_bounds(local_now.year, local_now.month, local_now.month),
        local_month_bounds(local_now.year, 1, 12)
    )


class DashboardService:
    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.repository = DashboardRepository(db)
        self.now = now

    def get_statistics(self) -> DashboardStatistics:
        """
        Estadísticas del dashboard.

        Cada grupo se calcula por separado: si sus consultas fallan se
        devuelve un marcador no_disponible y los demás grupos siguen.
        Si la base no responde al ping se lanza UpstreamUnavailableError.
        """
        started = time.perf_counter()
        now = self.now or utc_now()

        try:
            self.repository.ping()
        except SQLAlchemyError as e:
            logger.error(f"Base de datos no disponible para dashboard: {e}")
            raise UpstreamUnavailableError("La base de datos no está disponible")

        statistics = DashboardStatistics(
            financial=self._group("financiero", lambda: self._financial(now)),
            invoices=self._group("facturas", lambda: self._invoices(now)),
            entities=self._group("entidades", lambda: self._entities(now)),
            generado_en=now
        )
        logger.info(f"Dashboard generado en {int((time.perf_counter() - started) * 1000)} ms")
        return statistics

    def _group(self, nombre: str, builder: Callable):
        try:
            return builder()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Grupo de métricas '{nombre}' no disponible: {e}", exc_info=True)
            return MetricaNoDisponible(motivo=f"Error consultando métricas de {nombre}")

    # ==================== FINANZAS ====================

    def _financial(self, now: datetime) -> FinancialMetrics:
        month, year = _periodos(now)

        total_revenue = self.repository.paid_revenue()
        mercados = self.repository.revenue_by_market(month, year)

        revenue_by_market = [
            MarketRevenue(
                mercado_id=m["mercado_id"],
                mercado_nombre=m["mercado_nombre"],
                total=_money(m["total"]),
                monthly=_money(m["monthly"]),
                annual=_money(m["annual"]),
                total_locales=m["total_locales"],
                facturas_pagadas=m["pagadas"],
                promedio_por_local=_money(m["total"] / m["total_locales"]) if m["total_locales"] else _money(0),
                porcentaje_del_total=porcentaje(m["total"], total_revenue)
            )
            for m in mercados
        ]
        revenue_by_market.sort(key=lambda m: m.total, reverse=True)

        ocupados = self.repository.count_locales()["activos"]
        promedio = self.repository.average_paid_invoice()
        mensual = _money(promedio * ocupados)

        return FinancialMetrics(
            monthly_revenue=_money(self.repository.paid_revenue(*month)),
            annual_revenue=_money(self.repository.paid_revenue(*year)),
            total_revenue=_money(total_revenue),
            proyeccion=Proyeccion(
                locales_ocupados=ocupados,
                promedio_factura_pagada=_money(promedio),
                expected_monthly_revenue=mensual,
                expected_annual_revenue=_money(mensual * 12)
            ),
            revenue_by_market=revenue_by_market,
            top_locales=[LocalRevenue(**local) for local in self.repository.top_locales()]
        )

    # ==================== FACTURAS ====================

    def _invoices(self, now: datetime) -> InvoiceMetrics:
        """
        Conteos mutuamente excluyentes: una PENDIENTE con vencimiento pasado
        cuenta como vencida y no como pendiente.
        """
        counts = {"paid": 0, "pending": 0, "overdue": 0, "cancelled": 0}
        pending_amount = Decimal("0")
        overdue_amount = Decimal("0")

        for bucket in self.repository.invoice_buckets(now):
            estado = bucket["estado"]
            if estado == EstadoFactura.PAGADA.value:
                counts["paid"] += bucket["cantidad"]
            elif estado == EstadoFactura.ANULADA.value:
                counts["cancelled"] += bucket["cantidad"]
            elif estado == EstadoFactura.VENCIDA.value or bucket["vencida"]:
                counts["overdue"] += bucket["cantidad"]
                overdue_amount += bucket["monto"]
            else:
                counts["pending"] += bucket["cantidad"]
                pending_amount += bucket["monto"]

        generated = sum(counts.values())
        return InvoiceMetrics(
            generated=generated,
            pending_amount=_money(pending_amount),
            overdue_amount=_money(overdue_amount),
            payment_rate=porcentaje(counts["paid"], generated),
            overdue_rate=porcentaje(counts["overdue"], generated),
            collection_efficiency=porcentaje(counts["paid"], generated),
            **counts
        )

    # ==================== ENTIDADES ====================

    def _entities(self, now: datetime) -> EntityMetrics:
        markets = self.repository.count_markets()
        locales = self.repository.count_locales()
        users = self.repository.count_users()

        return EntityMetrics(
            total_markets=markets["total"],
            active_markets=markets["activos"],
            total_locals=locales["total"],
            active_locals=locales["activos"],
            total_users=users["total"],
            active_users=users["activos"],
            occupancy_rate=porcentaje(locales["activos"], locales["total"]),
            average_locals_per_market=round(locales["total"] / markets["total"], 2) if markets["total"] else 0.0,
            locals_with_payments_this_month=self.repository.locales_with_payments_between(
                *_periodos(now)[0]
            ),
            occupancy_by_market=[
                MarketOccupancy(
                    mercado_id=m["mercado_id"],
                    mercado_nombre=m["mercado_nombre"],
                    total_locales=m["total"],
                    locales_ocupados=m["ocupados"],
                    occupancy_rate=porcentaje(m["ocupados"], m["total"])
                )
                for m in self.repository.occupancy_by_market()
            ]
        )
