# app/modules/mercados/repository.py
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from typing import Dict, List, Optional, Tuple, Any

from app.shared.database.models import Mercado, Local, EstadoLocal

class MercadosRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, mercado_data: Dict[str, Any]) -> Mercado:
        mercado = Mercado(**mercado_data)
        self.db.add(mercado)
        self.db.commit()
        self.db.refresh(mercado)
        return mercado

    def get_by_id(self, mercado_id: int) -> Optional[Mercado]:
        return self.db.query(Mercado).filter(Mercado.id == mercado_id).first()

    def get_by_name(self, nombre: str) -> Optional[Mercado]:
        return self.db.query(Mercado).filter(Mercado.nombre_mercado == nombre).first()

    def list(self, page: int, limit: int, is_active: Optional[bool] = None) -> Tuple[List[Mercado], int]:
        query = self.db.query(Mercado)
        if is_active is not None:
            query = query.filter(Mercado.is_active == is_active)

        total = query.count()
        items = query.order_by(Mercado.nombre_mercado).offset((page - 1) * limit).limit(limit).all()
        return items, total

    def update(self, mercado: Mercado, update_data: Dict[str, Any]) -> Mercado:
        for key, value in update_data.items():
            setattr(mercado, key, value)
        self.db.commit()
        self.db.refresh(mercado)
        return mercado

    def count_locales(self, mercado_ids: List[int]) -> Dict[int, Dict[str, int]]:
        """Total de locales y locales activos por mercado"""
        if not mercado_ids:
            return {}
        rows = self.db.query(
            Local.mercado_id,
            func.count(Local.id),
            func.sum(case((Local.estado_local == EstadoLocal.ACTIVO.value, 1), else_=0))
        ).filter(Local.mercado_id.in_(mercado_ids)).group_by(Local.mercado_id).all()

        return {
            mercado_id: {"total": total or 0, "activos": int(activos or 0)}
            for mercado_id, total, activos in rows
        }

    def count_active_locales(self, mercado_id: int) -> int:
        return self.db.query(func.count(Local.id)).filter(
            Local.mercado_id == mercado_id,
            Local.estado_local == EstadoLocal.ACTIVO.value
        ).scalar() or 0

    def get_stats(self) -> Dict[str, int]:
        """Totales sobre mercados activos"""
        total_mercados = self.db.query(func.count(Mercado.id)).filter(
            Mercado.is_active == True
        ).scalar() or 0

        total_locales, ocupados = self.db.query(
            func.count(Local.id),
            func.sum(case((Local.estado_local == EstadoLocal.ACTIVO.value, 1), else_=0))
        ).join(Mercado, Local.mercado_id == Mercado.id).filter(
            Mercado.is_active == True
        ).one()

        return {
            "total_mercados": total_mercados,
            "total_locales": total_locales or 0,
            "locales_ocupados": int(ocupados or 0)
        }
