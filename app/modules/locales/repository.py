# app/modules/locales/repository.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, desc
from typing import Dict, List, Optional, Tuple, Any
from decimal import Decimal

from app.shared.database.models import Local, Factura, EstadoLocal, EstadoFactura

class LocalesRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, local_data: Dict[str, Any]) -> Local:
        local = Local(**local_data)
        self.db.add(local)
        self.db.commit()
        self.db.refresh(local)
        return local

    def get_by_id(self, local_id: int) -> Optional[Local]:
        return self.db.query(Local).options(
            joinedload(Local.mercado)
        ).filter(Local.id == local_id).first()

    def get_by_numero(self, mercado_id: int, numero_local: str) -> Optional[Local]:
        return self.db.query(Local).filter(
            Local.mercado_id == mercado_id,
            Local.numero_local == numero_local
        ).first()

    def list(
        self,
        page: int,
        limit: int,
        mercado_id: Optional[int] = None,
        estado_local: Optional[str] = None,
        tipo_local: Optional[str] = None,
        search: Optional[str] = None
    ) -> Tuple[List[Local], int]:
        query = self.db.query(Local)
        if mercado_id is not None:
            query = query.filter(Local.mercado_id == mercado_id)
        if estado_local:
            query = query.filter(Local.estado_local == estado_local)
        if tipo_local:
            query = query.filter(Local.tipo_local == tipo_local)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                Local.nombre_local.ilike(pattern)
                | Local.numero_local.ilike(pattern)
                | Local.propietario.ilike(pattern)
            )

        total = query.count()
        items = query.options(joinedload(Local.mercado)).order_by(
            Local.mercado_id, Local.numero_local
        ).offset((page - 1) * limit).limit(limit).all()
        return items, total

    def update(self, local: Local, update_data: Dict[str, Any]) -> Local:
        for key, value in update_data.items():
            setattr(local, key, value)
        self.db.commit()
        self.db.refresh(local)
        return local

    def delete(self, local: Local) -> None:
        self.db.delete(local)
        self.db.commit()

    def count_facturas(self, local_id: int) -> int:
        return self.db.query(func.count(Factura.id)).filter(Factura.local_id == local_id).scalar() or 0

    def get_facturas(self, local_id: int, page: int, limit: int) -> Tuple[List[Factura], int]:
        query = self.db.query(Factura).filter(Factura.local_id == local_id)
        total = query.count()
        items = query.order_by(desc(Factura.anio), desc(Factura.mes)).offset(
            (page - 1) * limit
        ).limit(limit).all()
        return items, total

    def get_stats(self) -> Dict[str, Any]:
        por_estado = dict(
            self.db.query(Local.estado_local, func.count(Local.id)).group_by(Local.estado_local).all()
        )
        por_tipo = {
            (tipo or "SIN_TIPO"): count
            for tipo, count in self.db.query(Local.tipo_local, func.count(Local.id)).group_by(Local.tipo_local).all()
        }
        monto_activos = self.db.query(func.sum(Local.monto_mensual)).filter(
            Local.estado_local == EstadoLocal.ACTIVO.value
        ).scalar()
        return {
            "total_locales": sum(por_estado.values()),
            "por_estado": por_estado,
            "por_tipo": por_tipo,
            "monto_mensual_activos": Decimal(monto_activos or 0)
        }

    def get_local_factura_stats(self, local_id: int) -> Dict[str, Any]:
        rows = self.db.query(
            Factura.estado, func.count(Factura.id), func.sum(Factura.monto)
        ).filter(Factura.local_id == local_id).group_by(Factura.estado).all()

        por_estado = {estado: count for estado, count, _ in rows}
        montos = {estado: Decimal(total or 0) for estado, _, total in rows}

        ultima_fecha_pago = self.db.query(func.max(Factura.fecha_pago)).filter(
            Factura.local_id == local_id,
            Factura.estado == EstadoFactura.PAGADA.value
        ).scalar()

        return {
            "total_facturas": sum(por_estado.values()),
            "facturas_por_estado": por_estado,
            "total_pagado": montos.get(EstadoFactura.PAGADA.value, Decimal("0")),
            "total_pendiente": montos.get(EstadoFactura.PENDIENTE.value, Decimal("0"))
            + montos.get(EstadoFactura.VENCIDA.value, Decimal("0")),
            "ultima_fecha_pago": ultima_fecha_pago
        }
