# app/modules/audit/repository.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, desc
from typing import List, Tuple, Dict, Any

from app.shared.database.models import AuditLog, User
from .schemas import AuditSearchParams

class AuditRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, audit_data: Dict[str, Any]) -> AuditLog:
        """Insertar registro de auditoría"""
        entry = AuditLog(**audit_data)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_by_id(self, audit_id: int) -> AuditLog:
        return self.db.query(AuditLog).options(
            joinedload(AuditLog.user)
        ).filter(AuditLog.id == audit_id).first()

    def search(self, params: AuditSearchParams) -> Tuple[List[AuditLog], int]:
        """Buscar registros con filtros y paginación"""
        query = self.db.query(AuditLog)

        if params.user_id is not None:
            query = query.filter(AuditLog.user_id == params.user_id)
        if params.tabla:
            query = query.filter(AuditLog.tabla == params.tabla)
        if params.accion:
            query = query.filter(AuditLog.accion == params.accion.value)

        total = query.count()
        items = query.options(joinedload(AuditLog.user)).order_by(
            desc(AuditLog.created_at), desc(AuditLog.id)
        ).offset((params.page - 1) * params.limit).limit(params.limit).all()

        return items, total

    def count_by_column(self, column) -> Dict[str, int]:
        rows = self.db.query(column, func.count(AuditLog.id)).group_by(column).all()
        return {value: count for value, count in rows}

    def count_total(self) -> int:
        return self.db.query(func.count(AuditLog.id)).scalar() or 0

    def top_users(self, limit: int = 5) -> List[Dict[str, Any]]:
        rows = self.db.query(
            User.id, User.username, func.count(AuditLog.id).label("total")
        ).join(AuditLog, AuditLog.user_id == User.id).group_by(
            User.id, User.username
        ).order_by(desc("total")).limit(limit).all()

        return [
            {"user_id": row.id, "username": row.username, "total": row.total}
            for row in rows
        ]
