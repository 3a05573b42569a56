# app/modules/audit/service.py
import json
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.shared.database.models import AuditLog, AuditAction
from app.shared.schemas.common import PaginatedResponse
from app.shared.timezone import ensure_utc
from .repository import AuditRepository
from .schemas import AuditLogResponse, AuditSearchParams, AuditStatsResponse

logger = logging.getLogger(__name__)


def _to_json(data: Optional[Dict[str, Any]]) -> Optional[str]:
    if data is None:
        return None
    return json.dumps(data, default=str, ensure_ascii=False)


class AuditService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = AuditRepository(db)

    def log_action(
        self,
        accion: AuditAction,
        tabla: str,
        user_id: int,
        registro_id: Optional[Any] = None,
        datos_anteriores: Optional[Dict[str, Any]] = None,
        datos_nuevos: Optional[Dict[str, Any]] = None,
        descripcion: Optional[str] = None,
        request: Optional[Request] = None
    ) -> AuditLog:
        """Registrar una acción en la bitácora"""
        ip = None
        user_agent = None
        if request is not None:
            ip = request.client.host if request.client else None
            user_agent = request.headers.get("user-agent")

        entry = self.repository.create({
            "accion": accion.value,
            "tabla": tabla,
            "user_id": user_id,
            "registro_id": str(registro_id) if registro_id is not None else None,
            "datos_anteriores": _to_json(datos_anteriores),
            "datos_nuevos": _to_json(datos_nuevos),
            "descripcion": descripcion,
            "ip": ip,
            "user_agent": user_agent
        })
        logger.info(f"Auditoría: {accion.value} {tabla}#{registro_id} por usuario {user_id}")
        return entry

    def search(self, params: AuditSearchParams) -> PaginatedResponse:
        items, total = self.repository.search(params)
        return PaginatedResponse.build(
            items=[self._to_response(item) for item in items],
            total=total,
            page=params.page,
            size=params.limit
        )

    def get(self, audit_id: int) -> AuditLogResponse:
        entry = self.repository.get_by_id(audit_id)
        if not entry:
            raise NotFoundError("Registro de auditoría no encontrado")
        return self._to_response(entry)

    def get_stats(self) -> AuditStatsResponse:
        return AuditStatsResponse(
            success=True,
            message="Estadísticas de auditoría",
            total_registros=self.repository.count_total(),
            por_accion=self.repository.count_by_column(AuditLog.accion),
            por_tabla=self.repository.count_by_column(AuditLog.tabla),
            usuarios_mas_activos=self.repository.top_users()
        )

    @staticmethod
    def _to_response(entry: AuditLog) -> AuditLogResponse:
        return AuditLogResponse(
            id=entry.id,
            accion=entry.accion,
            tabla=entry.tabla,
            registro_id=entry.registro_id,
            datos_anteriores=entry.datos_anteriores,
            datos_nuevos=entry.datos_nuevos,
            descripcion=entry.descripcion,
            ip=entry.ip,
            user_agent=entry.user_agent,
            user_id=entry.user_id,
            username=entry.user.username if entry.user else None,
            created_at=ensure_utc(entry.created_at)
        )
