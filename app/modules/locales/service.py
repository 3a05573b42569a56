# app/modules/locales/service.py
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.modules.audit.service import AuditService
from app.modules.mercados.repository import MercadosRepository
from app.shared.database.models import AuditAction, EstadoLocal, Local
from app.shared.schemas.common import MessageResponse, PaginatedResponse
from app.shared.timezone import ensure_utc
from .repository import LocalesRepository
from .schemas import (
    LocalCreateRequest, LocalUpdateRequest, LocalResponse,
    LocalStatsResponse, LocalDetailStatsResponse
)

logger = logging.getLogger(__name__)


class LocalesService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = LocalesRepository(db)
        self.mercados = MercadosRepository(db)
        self.audit = AuditService(db)

    def create_local(
        self,
        local_data: LocalCreateRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> LocalResponse:
        if not self.mercados.get_by_id(local_data.mercado_id):
            raise NotFoundError("Mercado no encontrado")

        if local_data.numero_local and self.repository.get_by_numero(
            local_data.mercado_id, local_data.numero_local
        ):
            raise ConflictError(
                f"Ya existe un local con el número {local_data.numero_local} en este mercado"
            )

        data = local_data.model_dump(mode="python")
        data["estado_local"] = local_data.estado_local.value
        data["tipo_local"] = local_data.tipo_local.value if local_data.tipo_local else None

        local = self.repository.create(data)
        logger.info(f"Local creado: {local.id} en mercado {local.mercado_id}")

        self.audit.log_action(
            AuditAction.CREATE, "locales", user_id,
            registro_id=local.id,
            datos_nuevos=data,
            request=request
        )
        return self.get_local(local.id)

    def list_locales(
        self,
        page: int,
        limit: int,
        mercado_id: Optional[int] = None,
        estado_local: Optional[EstadoLocal] = None,
        tipo_local: Optional[str] = None,
        search: Optional[str] = None
    ) -> PaginatedResponse:
        locales, total = self.repository.list(
            page, limit,
            mercado_id=mercado_id,
            estado_local=estado_local.value if estado_local else None,
            tipo_local=tipo_local,
            search=search
        )
        return PaginatedResponse.build(
            items=[self._to_response(local) for local in locales],
            total=total,
            page=page,
            size=limit
        )

    def get_local(self, local_id: int) -> LocalResponse:
        return self._to_response(self._get_or_404(local_id))

    def update_local(
        self,
        local_id: int,
        update_data: LocalUpdateRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> LocalResponse:
        local = self._get_or_404(local_id)
        changes = update_data.model_dump(exclude_unset=True, exclude_none=True)
        if "tipo_local" in changes:
            changes["tipo_local"] = update_data.tipo_local.value

        numero = changes.get("numero_local")
        if numero and numero != local.numero_local:
            existing = self.repository.get_by_numero(local.mercado_id, numero)
            if existing and existing.id != local.id:
                raise ConflictError(f"Ya existe un local con el número {numero} en este mercado")

        anteriores = {key: getattr(local, key) for key in changes}
        local = self.repository.update(local, changes)
        self.audit.log_action(
            AuditAction.UPDATE, "locales", user_id,
            registro_id=local.id,
            datos_anteriores=anteriores,
            datos_nuevos=changes,
            request=request
        )
        return self._to_response(local)

    def change_estado(
        self,
        local_id: int,
        estado: EstadoLocal,
        user_id: int,
        request: Optional[Request] = None
    ) -> LocalResponse:
        """Activar, desactivar o suspender un local"""
        local = self._get_or_404(local_id)
        anterior = local.estado_local
        if anterior == estado.value:
            return self._to_response(local)

        local = self.repository.update(local, {"estado_local": estado.value})
        self.audit.log_action(
            AuditAction.UPDATE, "locales", user_id,
            registro_id=local.id,
            datos_anteriores={"estado_local": anterior},
            datos_nuevos={"estado_local": estado.value},
            request=request
        )
        logger.info(f"Local {local.id}: {anterior} -> {estado.value}")
        return self._to_response(local)

    def delete_local(self, local_id: int, user_id: int, request: Optional[Request] = None) -> MessageResponse:
        """Eliminar un local sin facturas"""
        local = self._get_or_404(local_id)
        facturas = self.repository.count_facturas(local_id)
        if facturas > 0:
            raise ConflictError(
                "No se puede eliminar un local con facturas asociadas",
                details={"facturas": facturas}
            )

        self.repository.delete(local)
        self.audit.log_action(
            AuditAction.DELETE, "locales", user_id,
            registro_id=local_id,
            request=request
        )
        return MessageResponse(message="Local eliminado exitosamente")

    def get_facturas(self, local_id: int, page: int, limit: int) -> PaginatedResponse:
        self._get_or_404(local_id)
        facturas, total = self.repository.get_facturas(local_id, page, limit)
        return PaginatedResponse.build(
            items=[
                {
                    "id": f.id,
                    "correlativo": f.correlativo,
                    "concepto": f.concepto,
                    "mes": f.mes,
                    "anio": f.anio,
                    "monto": f.monto,
                    "estado": f.estado,
                    "fecha_vencimiento": ensure_utc(f.fecha_vencimiento),
                    "fecha_pago": ensure_utc(f.fecha_pago)
                }
                for f in facturas
            ],
            total=total,
            page=page,
            size=limit
        )

    def get_stats(self) -> LocalStatsResponse:
        stats = self.repository.get_stats()
        return LocalStatsResponse(success=True, message="Estadísticas de locales", **stats)

    def get_local_stats(self, local_id: int) -> LocalDetailStatsResponse:
        self._get_or_404(local_id)
        stats = self.repository.get_local_factura_stats(local_id)
        recientes = self.get_facturas(local_id, page=1, limit=5).items
        return LocalDetailStatsResponse(
            success=True,
            message=f"Estadísticas del local {local_id}",
            local_id=local_id,
            total_facturas=stats["total_facturas"],
            facturas_por_estado=stats["facturas_por_estado"],
            total_pagado=stats["total_pagado"],
            total_pendiente=stats["total_pendiente"],
            ultima_fecha_pago=ensure_utc(stats["ultima_fecha_pago"]),
            facturas_recientes=recientes
        )

    def _get_or_404(self, local_id: int) -> Local:
        local = self.repository.get_by_id(local_id)
        if not local:
            raise NotFoundError("Local no encontrado")
        return local

    @staticmethod
    def _to_response(local: Local) -> LocalResponse:
        return LocalResponse(
            id=local.id,
            mercado_id=local.mercado_id,
            mercado_nombre=local.mercado.nombre_mercado if local.mercado else None,
            nombre_local=local.nombre_local,
            numero_local=local.numero_local,
            permiso_operacion=local.permiso_operacion,
            tipo_local=local.tipo_local,
            direccion_local=local.direccion_local,
            propietario=local.propietario,
            dni_propietario=local.dni_propietario,
            telefono=local.telefono,
            email=local.email,
            monto_mensual=local.monto_mensual,
            estado_local=local.estado_local,
            created_at=ensure_utc(local.created_at),
            updated_at=ensure_utc(local.updated_at)
        )
