# app/modules/mercados/service.py
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.modules.audit.service import AuditService
from app.shared.database.models import AuditAction, Mercado
from app.shared.schemas.common import MessageResponse, PaginatedResponse
from app.shared.timezone import ensure_utc
from .repository import MercadosRepository
from .schemas import (
    MercadoCreateRequest, MercadoUpdateRequest, MercadoResponse, MercadoStatsResponse
)

logger = logging.getLogger(__name__)


class MercadosService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = MercadosRepository(db)
        self.audit = AuditService(db)

    def create_mercado(
        self,
        mercado_data: MercadoCreateRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> MercadoResponse:
        """Crear mercado con nombre único"""
        if self.repository.get_by_name(mercado_data.nombre_mercado):
            raise ConflictError("Ya existe un mercado con ese nombre")

        mercado = self.repository.create(mercado_data.model_dump())
        logger.info(f"Mercado creado: {mercado.id} - {mercado.nombre_mercado}")

        self.audit.log_action(
            AuditAction.CREATE, "mercados", user_id,
            registro_id=mercado.id,
            datos_nuevos=mercado_data.model_dump(),
            request=request
        )
        return self._to_response(mercado)

    def list_mercados(self, page: int, limit: int, is_active: Optional[bool] = None) -> PaginatedResponse:
        mercados, total = self.repository.list(page, limit, is_active)
        counts = self.repository.count_locales([m.id for m in mercados])
        return PaginatedResponse.build(
            items=[self._to_response(m, counts.get(m.id)) for m in mercados],
            total=total,
            page=page,
            size=limit
        )

    def get_mercado(self, mercado_id: int) -> MercadoResponse:
        mercado = self._get_or_404(mercado_id)
        counts = self.repository.count_locales([mercado.id])
        return self._to_response(mercado, counts.get(mercado.id))

    def update_mercado(
        self,
        mercado_id: int,
        update_data: MercadoUpdateRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> MercadoResponse:
        mercado = self._get_or_404(mercado_id)
        changes = update_data.model_dump(exclude_unset=True, exclude_none=True)

        nuevo_nombre = changes.get("nombre_mercado")
        if nuevo_nombre and nuevo_nombre != mercado.nombre_mercado:
            existing = self.repository.get_by_name(nuevo_nombre)
            if existing and existing.id != mercado.id:
                raise ConflictError("Ya existe un mercado con ese nombre")

        anteriores = {key: getattr(mercado, key) for key in changes}
        mercado = self.repository.update(mercado, changes)

        self.audit.log_action(
            AuditAction.UPDATE, "mercados", user_id,
            registro_id=mercado.id,
            datos_anteriores=anteriores,
            datos_nuevos=changes,
            request=request
        )
        return self.get_mercado(mercado.id)

    def deactivate_mercado(self, mercado_id: int, user_id: int, request: Optional[Request] = None) -> MessageResponse:
        """Desactivar (soft delete). No se permite con locales activos"""
        mercado = self._get_or_404(mercado_id)

        activos = self.repository.count_active_locales(mercado_id)
        if activos > 0:
            raise ConflictError(
                "No se puede desactivar un mercado con locales activos",
                details={"locales_activos": activos}
            )

        self.repository.update(mercado, {"is_active": False})
        self.audit.log_action(
            AuditAction.DELETE, "mercados", user_id,
            registro_id=mercado_id,
            descripcion="Mercado desactivado",
            request=request
        )
        return MessageResponse(message="Mercado desactivado exitosamente")

    def activate_mercado(self, mercado_id: int, user_id: int, request: Optional[Request] = None) -> MessageResponse:
        mercado = self._get_or_404(mercado_id)
        self.repository.update(mercado, {"is_active": True})
        self.audit.log_action(
            AuditAction.UPDATE, "mercados", user_id,
            registro_id=mercado_id,
            descripcion="Mercado activado",
            request=request
        )
        return MessageResponse(message="Mercado activado exitosamente")

    def get_stats(self) -> MercadoStatsResponse:
        stats = self.repository.get_stats()
        total = stats["total_locales"]
        ocupados = stats["locales_ocupados"]
        return MercadoStatsResponse(
            success=True,
            message="Estadísticas de mercados",
            total_mercados=stats["total_mercados"],
            total_locales=total,
            locales_ocupados=ocupados,
            locales_libres=total - ocupados,
            ocupacion_percentage=round(ocupados / total * 100, 2) if total > 0 else 0.0
        )

    def _get_or_404(self, mercado_id: int) -> Mercado:
        mercado = self.repository.get_by_id(mercado_id)
        if not mercado:
            raise NotFoundError("Mercado no encontrado")
        return mercado

    @staticmethod
    def _to_response(mercado: Mercado, counts: Optional[dict] = None) -> MercadoResponse:
        counts = counts or {"total": 0, "activos": 0}
        return MercadoResponse(
            id=mercado.id,
            nombre_mercado=mercado.nombre_mercado,
            direccion=mercado.direccion,
            latitud=mercado.latitud,
            longitud=mercado.longitud,
            descripcion=mercado.descripcion,
            is_active=mercado.is_active,
            total_locales=counts["total"],
            locales_activos=counts["activos"],
            created_at=ensure_utc(mercado.created_at),
            updated_at=ensure_utc(mercado.updated_at)
        )
