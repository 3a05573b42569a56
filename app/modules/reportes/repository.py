# app/modules/reportes/repository.py
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from app.shared.database.models import EstadoFactura, Factura, Local, Mercado

def _decimal(value) -> Decimal:
    return Decimal(value or 0)

class ReportesRepository:
    """
    Agregados de facturas para reportes.

    Las facturas entran por created_at en [start, end). Las ANULADA se
    cuentan en por_estado pero no suman al total facturado.
    """

    def __init__(self, db: Session):
        self.db = db

    def _facturas(self, query, start: datetime, end: datetime, mercados: List[int], locales: List[int]):
        query = query.filter(Factura.created_at >= start, Factura.created_at < end)
        if mercados:
            query = query.filter(Local.mercado_id.in_(mercados))
        if locales:
            query = query.filter(Factura.local_id.in_(locales))
        return query

    @staticmethod
    def _totales():
        pagada = Factura.estado == EstadoFactura.PAGADA.value
        vigente = Factura.estado != EstadoFactura.ANULADA.value
        return (
            func.count(Factura.id).label("facturas"),
            func.sum(case((pagada, 1), else_=0)).label("pagadas"),
            func.sum(case((vigente, Factura.monto), else_=0)).label("facturado"),
            func.sum(case((pagada, Factura.monto), else_=0)).label("recaudado"),
        )

    def totals_by_estado(self, start, end, mercados, locales) -> Dict[str, Dict[str, Any]]:
        query = self.db.query(
            Factura.estado,
            func.count(Factura.id).label("cantidad"),
            func.sum(Factura.monto).label("monto")
        ).select_from(Factura).join(Local, Factura.local_id == Local.id)
        rows = self._facturas(query, start, end, mercados, locales).group_by(Factura.estado).all()
        return {row.estado: {"cantidad": row.cantidad, "monto": _decimal(row.monto)} for row in rows}

    def totals_by_market(self, start, end, mercados, locales) -> List[Dict[str, Any]]:
        """Mercados activos (o los pedidos) con sus totales, también los que no tienen facturas"""
        query = self.db.query(Local.mercado_id.label("mercado_id"), *self._totales()).select_from(Factura).join(
            Local, Factura.local_id == Local.id
        )
        totals = {
            row.mercado_id: row
            for row in self._facturas(query, start, end, mercados, locales).group_by(Local.mercado_id).all()
        }

        locales_query = self.db.query(Local.mercado_id, func.count(Local.id))
        if locales:
            locales_query = locales_query.filter(Local.id.in_(locales))
        total_locales = dict(locales_query.group_by(Local.mercado_id).all())

        mercados_query = self.db.query(Mercado)
        if mercados:
            mercados_query = mercados_query.filter(Mercado.id.in_(mercados))
        else:
            mercados_query = mercados_query.filter(Mercado.is_active == True)

        results = []
        for mercado in mercados_query.order_by(Mercado.nombre_mercado).all():
            row = totals.get(mercado.id)
            results.append({
                "mercado_id": mercado.id,
                "nombre_mercado": mercado.nombre_mercado,
                "facturas": row.facturas if row else 0,
                "pagadas": int(row.pagadas or 0) if row else 0,
                "facturado": _decimal(row.facturado if row else 0),
                "recaudado": _decimal(row.recaudado if row else 0),
                "total_locales": total_locales.get(mercado.id, 0)
            })
        return results

    def totals_by_local(self, start, end, mercados, locales) -> List[Dict[str, Any]]:
        query = self.db.query(
            Local.id, Local.numero_local, Local.nombre_local, Mercado.nombre_mercado, *self._totales()
        ).select_from(Factura).join(Local, Factura.local_id == Local.id).join(Mercado, Local.mercado_id == Mercado.id)
        rows = self._facturas(query, start, end, mercados, locales).group_by(
            Local.id, Local.numero_local, Local.nombre_local, Mercado.nombre_mercado
        ).order_by(Mercado.nombre_mercado, Local.numero_local).all()
        return [
            {
                "local_id": row.id,
                "numero_local": row.numero_local,
                "nombre_local": row.nombre_local,
                "mercado": row.nombre_mercado,
                "facturas": row.facturas,
                "pagadas": int(row.pagadas or 0),
                "facturado": _decimal(row.facturado),
                "recaudado": _decimal(row.recaudado)
            }
            for row in rows
        ]

    def activity(self, start, end, mercados, locales) -> Dict[str, int]:
        """Facturas, mercados y locales distintos con al menos una factura"""
        query = self.db.query(
            func.count(Factura.id),
            func.count(func.distinct(Local.mercado_id)),
            func.count(func.distinct(Factura.local_id))
        ).select_from(Factura).join(Local, Factura.local_id == Local.id)
        facturas, mercados_count, locales_count = self._facturas(query, start, end, mercados, locales).one()
        return {
            "facturas": facturas or 0,
            "mercados": mercados_count or 0,
            "locales": locales_count or 0
        }

    def count_created(self, start, end, mercados, locales) -> int:
        query = self.db.query(func.count(Factura.id)).select_from(Factura).join(Local, Factura.local_id == Local.id)
        return self._facturas(query, start, end, mercados, locales).scalar() or 0

    # ==================== CONFIGURACIÓN ====================

    def active_markets(self) -> List[Mercado]:
        return self.db.query(Mercado).filter(Mercado.is_active == True).order_by(Mercado.nombre_mercado).all()

    def tipos_local(self) -> List[str]:
        rows = self.db.query(Local.tipo_local).filter(Local.tipo_local.isnot(None)).distinct().all()
        return sorted(tipo for (tipo,) in rows)

    def general_totals(self) -> Dict[str, Any]:
        """Mercados activos, locales, facturas, recaudado y promedio de las no anuladas"""
        mercados = self.db.query(func.count(Mercado.id)).filter(Mercado.is_active == True).scalar() or 0
        locales = self.db.query(func.count(Local.id)).scalar() or 0
        facturas, recaudado, promedio = self.db.query(
            func.count(Factura.id),
            func.sum(case((Factura.estado == EstadoFactura.PAGADA.value, Factura.monto), else_=0)),
            func.avg(case((Factura.estado != EstadoFactura.ANULADA.value, Factura.monto), else_=None))
        ).one()
        return {
            "mercados": mercados,
            "locales": locales,
            "facturas": facturas or 0,
            "recaudado": _decimal(recaudado),
            "promedio": _decimal(promedio)
        }
