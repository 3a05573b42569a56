# app/modules/user_stats/repository.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, case, desc
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime

from app.shared.database.models import (
    ConsultaLog, Recaudo, User, UserLocation, ConsultaType, ConsultaResultado
)
from .schemas import ConsultaLogFilters

class UserStatsRepository:
    def __init__(self, db: Session, recaudo_db: Optional[Session] = None):
        self.db = db
        self.recaudo_db = recaudo_db or db

    # ===== LOGS =====

    def create_log(self, log_data: Dict[str, Any]) -> ConsultaLog:
        log = ConsultaLog(**log_data)
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def get_logs_with_key(self, inicio: datetime, fin: datetime) -> List[ConsultaLog]:
        """Logs con clave en [inicio, fin)"""
        return self.db.query(ConsultaLog).options(joinedload(ConsultaLog.user)).filter(
            ConsultaLog.created_at >= inicio,
            ConsultaLog.created_at < fin,
            ConsultaLog.consulta_key.isnot(None),
            ConsultaLog.consulta_key != ""
        ).order_by(ConsultaLog.created_at, ConsultaLog.id).all()

    def get_recaudos_by_keys(self, keys: List[str], chunk_size: int) -> List[Recaudo]:
        """Pagos cuyo artículo está en keys, consultados por bloques"""
        pagos: List[Recaudo] = []
        for i in range(0, len(keys), chunk_size):
            chunk = keys[i:i + chunk_size]
            pagos.extend(
                self.recaudo_db.query(Recaudo).filter(Recaudo.articulo.in_(chunk)).all()
            )
        pagos.sort(key=lambda p: (p.articulo, p.fecha_pago, p.id))
        return pagos

    def search_logs(
        self,
        filters: ConsultaLogFilters,
        start: datetime,
        end: datetime
    ) -> Tuple[List[ConsultaLog], int]:
        query = self.db.query(ConsultaLog).options(joinedload(ConsultaLog.user)).filter(
            ConsultaLog.created_at >= start,
            ConsultaLog.created_at <= end
        )
        if filters.user_id is not None:
            query = query.filter(ConsultaLog.user_id == filters.user_id)
        if filters.username:
            query = query.join(User, ConsultaLog.user_id == User.id).filter(
                User.username.ilike(f"%{filters.username}%")
            )
        if filters.user_location:
            query = query.filter(ConsultaLog.user_location.ilike(f"%{filters.user_location}%"))
        if filters.consulta_type:
            query = query.filter(ConsultaLog.consulta_type == filters.consulta_type.value)
        if filters.consulta_subtype:
            query = query.filter(ConsultaLog.consulta_subtype == filters.consulta_subtype.value)
        if filters.resultado:
            query = query.filter(ConsultaLog.resultado == filters.resultado.value)
        if filters.consulta_key:
            query = query.filter(ConsultaLog.consulta_key == filters.consulta_key)

        total = query.count()
        items = query.order_by(desc(ConsultaLog.created_at), desc(ConsultaLog.id)).offset(
            (filters.page - 1) * filters.limit
        ).limit(filters.limit).all()
        return items, total

    # ===== AGREGADOS =====

    def aggregate_by_user(
        self,
        start: datetime,
        end: datetime,
        user_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Conteos por usuario en el rango, ordenados por total de consultas"""
        query = self.db.query(
            ConsultaLog.user_id,
            func.count(ConsultaLog.id).label("total"),
            func.sum(case((ConsultaLog.consulta_type == ConsultaType.EC.value, 1), else_=0)).label("ec"),
            func.sum(case((ConsultaLog.consulta_type == ConsultaType.ICS.value, 1), else_=0)).label("ics"),
            func.sum(case((ConsultaLog.resultado == ConsultaResultado.SUCCESS.value, 1), else_=0)).label("success"),
            func.sum(case((ConsultaLog.resultado == ConsultaResultado.ERROR.value, 1), else_=0)).label("error"),
            func.sum(case((ConsultaLog.resultado == ConsultaResultado.NOT_FOUND.value, 1), else_=0)).label("not_found"),
            func.avg(ConsultaLog.duracion_ms).label("avg_ms"),
            func.sum(ConsultaLog.total_encontrado).label("total_encontrado"),
            func.max(ConsultaLog.created_at).label("ultima")
        ).filter(
            ConsultaLog.created_at >= start,
            ConsultaLog.created_at <= end
        )
        if user_id is not None:
            query = query.filter(ConsultaLog.user_id == user_id)

        rows = query.group_by(ConsultaLog.user_id).order_by(desc("total")).all()
        return [row._asdict() for row in rows]

    def aggregate_by_location(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        rows = self.db.query(
            ConsultaLog.user_location.label("location"),
            func.count(func.distinct(ConsultaLog.user_id)).label("usuarios"),
            func.count(ConsultaLog.id).label("total"),
            func.sum(case((ConsultaLog.consulta_type == ConsultaType.EC.value, 1), else_=0)).label("ec"),
            func.sum(case((ConsultaLog.consulta_type == ConsultaType.ICS.value, 1), else_=0)).label("ics")
        ).filter(
            ConsultaLog.created_at >= start,
            ConsultaLog.created_at <= end,
            ConsultaLog.user_location.isnot(None)
        ).group_by(ConsultaLog.user_location).order_by(desc("total")).all()
        return [row._asdict() for row in rows]

    def count_by_column(self, column, start: datetime, end: datetime) -> Dict[str, int]:
        rows = self.db.query(column, func.count(ConsultaLog.id)).filter(
            ConsultaLog.created_at >= start,
            ConsultaLog.created_at <= end
        ).group_by(column).all()
        return {value: count for value, count in rows}

    # ===== USUARIOS Y UBICACIONES =====

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_users(self, user_ids: List[int]) -> Dict[int, User]:
        if not user_ids:
            return {}
        users = self.db.query(User).options(joinedload(User.user_locations)).filter(
            User.id.in_(user_ids)
        ).all()
        return {user.id: user for user in users}

    def count_users(self) -> int:
        return self.db.query(func.count(User.id)).scalar() or 0

    def get_active_location(self, user_id: int) -> Optional[UserLocation]:
        return self.db.query(UserLocation).filter(
            UserLocation.user_id == user_id,
            UserLocation.is_active == True
        ).first()

    def assign_location(self, user_id: int, location_data: Dict[str, Any]) -> UserLocation:
        """Desactivar la ubicación vigente y crear la nueva en una transacción"""
        try:
            self.db.query(UserLocation).filter(
                UserLocation.user_id == user_id,
                UserLocation.is_active == True
            ).update({UserLocation.is_active: False}, synchronize_session=False)

            location = UserLocation(user_id=user_id, is_active=True, **location_data)
            self.db.add(location)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(location)
        return location

    def location_history(self, user_id: int, active_only: bool = False, ascending: bool = False) -> List[UserLocation]:
        query = self.db.query(UserLocation).filter(UserLocation.user_id == user_id)
        if active_only:
            query = query.filter(UserLocation.is_active == True)
        order = UserLocation.assigned_at if ascending else desc(UserLocation.assigned_at)
        return query.order_by(order, desc(UserLocation.id)).all()
