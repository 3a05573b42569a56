# app/modules/facturas/repository.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, desc
from typing import Dict, List, Optional, Tuple, Any
from datetime import datetime
from decimal import Decimal

from app.shared.database.models import Factura, Local, EstadoFactura, EstadoLocal
from .schemas import FacturaSearchParams

class FacturasRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, factura_data: Dict[str, Any]) -> Factura:
        factura = Factura(**factura_data)
        self.db.add(factura)
        self.db.commit()
        self.db.refresh(factura)
        return factura

    def create_many(self, facturas_data: List[Dict[str, Any]]) -> int:
        """Insertar en una sola transacción"""
        try:
            self.db.add_all([Factura(**data) for data in facturas_data])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return len(facturas_data)

    def get_by_id(self, factura_id: int) -> Optional[Factura]:
        return self.db.query(Factura).filter(Factura.id == factura_id).first()

    def find_existing(self, local_ids: List[int], mes: str, anio: int) -> List[Factura]:
        if not local_ids:
            return []
        return self.db.query(Factura).filter(
            Factura.local_id.in_(local_ids),
            Factura.mes == mes,
            Factura.anio == anio
        ).all()

    def search(self, params: FacturaSearchParams) -> Tuple[List[Factura], int]:
        query = self.db.query(Factura)
        if params.estado:
            query = query.filter(Factura.estado == params.estado.value)
        if params.local_id is not None:
            query = query.filter(Factura.local_id == params.local_id)
        if params.mercado_id is not None:
            query = query.join(Local, Factura.local_id == Local.id).filter(
                Local.mercado_id == params.mercado_id
            )
        if params.anio is not None:
            query = query.filter(Factura.anio == params.anio)
        if params.mes:
            query = query.filter(Factura.mes == params.mes)

        total = query.count()
        items = query.order_by(desc(Factura.created_at), desc(Factura.id)).offset(
            (params.page - 1) * params.limit
        ).limit(params.limit).all()
        return items, total

    def update(self, factura: Factura, update_data: Dict[str, Any]) -> Factura:
        for key, value in update_data.items():
            setattr(factura, key, value)
        self.db.commit()
        self.db.refresh(factura)
        return factura

    def last_correlativo(self, prefix: str) -> Optional[str]:
        return self.db.query(func.max(Factura.correlativo)).filter(
            Factura.correlativo.like(f"{prefix}%")
        ).scalar()

    def get_active_locales(self, mercado_id: int) -> List[Local]:
        return self.db.query(Local).options(joinedload(Local.mercado)).filter(
            Local.mercado_id == mercado_id,
            Local.estado_local == EstadoLocal.ACTIVO.value
        ).order_by(Local.numero_local).all()

    def mark_overdue(self, now: datetime) -> int:
        """PENDIENTE con vencimiento pasado -> VENCIDA"""
        updated = self.db.query(Factura).filter(
            Factura.estado == EstadoFactura.PENDIENTE.value,
            Factura.fecha_vencimiento < now
        ).update({Factura.estado: EstadoFactura.VENCIDA.value}, synchronize_session=False)
        self.db.commit()
        return updated

    def get_stats(self) -> Dict[str, Any]:
        rows = self.db.query(
            Factura.estado, func.count(Factura.id), func.sum(Factura.monto)
        ).group_by(Factura.estado).all()

        por_estado = {estado: count for estado, count, _ in rows}
        montos = {estado: Decimal(total or 0) for estado, _, total in rows}
        return {
            "total_facturas": sum(por_estado.values()),
            "por_estado": por_estado,
            "monto_total": sum(
                (monto for estado, monto in montos.items() if estado != EstadoFactura.ANULADA.value),
                Decimal("0")
            ),
            "monto_recaudado": montos.get(EstadoFactura.PAGADA.value, Decimal("0"))
        }
