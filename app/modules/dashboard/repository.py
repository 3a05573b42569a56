# app/modules/dashboard/repository.py
from sqlalchemy.orm import Session
from sqlalchemy import func, case, desc, text
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from decimal import Decimal

from app.shared.database.models import (
    Factura, Local, Mercado, User, EstadoFactura, EstadoLocal
)

def _decimal(value) -> Decimal:
    return Decimal(value or 0)

class DashboardRepository:
    def __init__(self, db: Session):
        self.db = db

    def ping(self) -> None:
        self.db.execute(text("SELECT 1"))

    # ==================== FINANZAS ====================

    def paid_revenue(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Decimal:
        """Suma de facturas pagadas con fecha_pago en [start, end) (o todas)"""
        query = self.db.query(func.sum(Factura.monto)).filter(
            Factura.estado == EstadoFactura.PAGADA.value
        )
        if start is not None:
            query = query.filter(Factura.fecha_pago >= start)
        if end is not None:
            query = query.filter(Factura.fecha_pago < end)
        return _decimal(query.scalar())

    def average_paid_invoice(self) -> Decimal:
        return _decimal(self.db.query(func.avg(Factura.monto)).filter(
            Factura.estado == EstadoFactura.PAGADA.value
        ).scalar())

    def revenue_by_market(self, month: Tuple[datetime, datetime], year: Tuple[datetime, datetime]) -> List[Dict[str, Any]]:
        pagada = Factura.estado == EstadoFactura.PAGADA.value
        en_mes = pagada & (Factura.fecha_pago >= month[0]) & (Factura.fecha_pago < month[1])
        en_anio = pagada & (Factura.fecha_pago >= year[0]) & (Factura.fecha_pago < year[1])
        revenue = {
            row.mercado_id: row
            for row in self.db.query(
                Local.mercado_id.label("mercado_id"),
                func.sum(case((pagada, Factura.monto), else_=0)).label("total"),
                func.sum(case((en_mes, Factura.monto), else_=0)).label("monthly"),
                func.sum(case((en_anio, Factura.monto), else_=0)).label("annual"),
                func.sum(case((pagada, 1), else_=0)).label("pagadas")
            ).select_from(Factura).join(Local, Factura.local_id == Local.id).group_by(Local.mercado_id).all()
        }

        locales = dict(self.db.query(Local.mercado_id, func.count(Local.id)).group_by(Local.mercado_id).all())

        results = []
        for mercado in self.db.query(Mercado).filter(Mercado.is_active == True).order_by(Mercado.nombre_mercado).all():
            row = revenue.get(mercado.id)
            results.append({
                "mercado_id": mercado.id,
                "mercado_nombre": mercado.nombre_mercado,
                "total": _decimal(row.total if row else 0),
                "monthly": _decimal(row.monthly if row else 0),
                "annual": _decimal(row.annual if row else 0),
                "pagadas": int(row.pagadas or 0) if row else 0,
                "total_locales": locales.get(mercado.id, 0)
            })
        return results

    def top_locales(self, limit: int = 10) -> List[Dict[str, Any]]:
        rows = self.db.query(
            Local.id,
            Local.nombre_local,
            Local.numero_local,
            Mercado.nombre_mercado,
            func.sum(Factura.monto).label("total")
        ).select_from(Factura).join(Local, Factura.local_id == Local.id).join(
            Mercado, Local.mercado_id == Mercado.id
        ).filter(
            Factura.estado == EstadoFactura.PAGADA.value
        ).group_by(
            Local.id, Local.nombre_local, Local.numero_local, Mercado.nombre_mercado
        ).order_by(desc("total")).limit(limit).all()

        return [
            {
                "local_id": row.id,
                "local_nombre": row.nombre_local or row.numero_local or f"Local {row.id}",
                "mercado_nombre": row.nombre_mercado,
                "total": _decimal(row.total)
            }
            for row in rows
        ]

    # ==================== FACTURAS ====================

    def invoice_buckets(self, now: datetime) -> List[Dict[str, Any]]:
        """Conteo y monto por (estado, vencida a la fecha) en una sola consulta"""
        vencida = case((Factura.fecha_vencimiento < now, 1), else_=0).label("vencida")
        rows = self.db.query(
            Factura.estado,
            vencida,
            func.count(Factura.id).label("cantidad"),
            func.sum(Factura.monto).label("monto")
        ).group_by(Factura.estado, vencida).all()
        return [
            {
                "estado": row.estado,
                "vencida": bool(row.vencida),
                "cantidad": row.cantidad,
                "monto": _decimal(row.monto)
            }
            for row in rows
        ]

    # ==================== ENTIDADES ====================

    def count_markets(self) -> Dict[str, int]:
        total, activos = self.db.query(
            func.count(Mercado.id),
            func.sum(case((Mercado.is_active == True, 1), else_=0))
        ).one()
        return {"total": total or 0, "activos": int(activos or 0)}

    def count_locales(self) -> Dict[str, int]:
        total, activos = self.db.query(
            func.count(Local.id),
            func.sum(case((Local.estado_local == EstadoLocal.ACTIVO.value, 1), else_=0))
        ).one()
        return {"total": total or 0, "activos": int(activos or 0)}

    def count_users(self) -> Dict[str, int]:
        total, activos = self.db.query(
            func.count(User.id),
            func.sum(case((User.is_active == True, 1), else_=0))
        ).one()
        return {"total": total or 0, "activos": int(activos or 0)}

    def locales_with_payments_between(self, start: datetime, end: datetime) -> int:
        return self.db.query(func.count(func.distinct(Factura.local_id))).filter(
            Factura.estado == EstadoFactura.PAGADA.value,
            Factura.fecha_pago >= start,
            Factura.fecha_pago < end
        ).scalar() or 0

    def occupancy_by_market(self) -> List[Dict[str, Any]]:
        rows = self.db.query(
            Mercado.id,
            Mercado.nombre_mercado,
            func.count(Local.id).label("total"),
            func.sum(case((Local.estado_local == EstadoLocal.ACTIVO.value, 1), else_=0)).label("ocupados")
        ).outerjoin(Local, Local.mercado_id == Mercado.id).group_by(
            Mercado.id, Mercado.nombre_mercado
        ).order_by(Mercado.nombre_mercado).all()
        return [
            {
                "mercado_id": row.id,
                "mercado_nombre": row.nombre_mercado,
                "total": row.total or 0,
                "ocupados": int(row.ocupados or 0)
            }
            for row in rows
        ]
