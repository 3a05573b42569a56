# app/modules/facturas/service.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from app.modules.audit.service import AuditService
from app.modules.locales.repository import LocalesRepository
from app.modules.mercados.repository import MercadosRepository
from app.shared.database.models import AuditAction, EstadoFactura, Factura
from app.shared.schemas.common import PaginatedResponse
from app.shared.timezone import ensure_utc, local_month_bounds, to_local, utc_now
from .repository import FacturasRepository
from .schemas import (
    AnularFacturaRequest, FacturaCreateRequest, FacturaMasivaRequest, FacturaMasivaResponse,
    FacturaResponse, FacturaSearchParams, FacturaStatsResponse, VencidasResponse
)

logger = logging.getLogger(__name__)


def calcular_fecha_vencimiento(mes: str) -> datetime:
    """Último instante (hora local) del mes siguiente al facturado, en UTC"""
    siguiente = datetime.strptime(mes, "%Y-%m") + relativedelta(months=1)
    _, fin = local_month_bounds(siguiente.year, siguiente.month, siguiente.month)
    return fin - timedelta(seconds=1)


class FacturasService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = FacturasRepository(db)
        self.locales = LocalesRepository(db)
        self.mercados = MercadosRepository(db)
        self.audit = AuditService(db)

    def create_factura(
        self,
        factura_data: FacturaCreateRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> FacturaResponse:
        local = self.locales.get_by_id(factura_data.local_id)
        if not local:
            raise NotFoundError("Local no encontrado")

        if self.repository.find_existing([local.id], factura_data.mes, factura_data.anio):
            raise ConflictError("Ya existe una factura para este local en el mes y año especificado")

        data = {
            "concepto": factura_data.concepto,
            "mes": factura_data.mes,
            "anio": factura_data.anio,
            "monto": factura_data.monto,
            "estado": EstadoFactura.PENDIENTE.value,
            "fecha_vencimiento": ensure_utc(factura_data.fecha_vencimiento)
            or calcular_fecha_vencimiento(factura_data.mes),
            "observaciones": factura_data.observaciones,
            "correlativo": self._next_correlativo(),
            "local_id": local.id,
            "created_by_user_id": user_id,
            **self._snapshot(local)
        }

        try:
            factura = self.repository.create(data)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Ya existe una factura para este local en el mes y año especificado")

        logger.info(f"Factura {factura.correlativo} creada para local {local.id}")
        self.audit.log_action(
            AuditAction.CREATE, "facturas", user_id,
            registro_id=factura.id,
            datos_nuevos={"correlativo": factura.correlativo, "monto": factura.monto, "mes": factura.mes},
            request=request
        )
        return self._to_response(factura)

    def generate_massive(
        self,
        masiva: FacturaMasivaRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> FacturaMasivaResponse:
        """Emitir una factura por cada local activo del mercado"""
        mercado = self.mercados.get_by_id(masiva.mercado_id)
        if not mercado:
            raise NotFoundError("Mercado no encontrado")

        locales = self.repository.get_active_locales(masiva.mercado_id)
        if not locales:
            raise BusinessRuleError("No hay locales activos en este mercado")

        existentes = self.repository.find_existing([l.id for l in locales], masiva.mes, masiva.anio)
        if existentes:
            raise ConflictError(
                f"Ya existen {len(existentes)} facturas para el mes {masiva.mes} en este mercado",
                details={"existentes": len(existentes)}
            )

        vencimiento = calcular_fecha_vencimiento(masiva.mes)
        prefix, siguiente = self._correlativo_base()
        facturas_data = []
        for offset, local in enumerate(locales):
            facturas_data.append({
                "concepto": f"Cuota mensual {masiva.mes} - {local.nombre_local or local.numero_local or local.id}",
                "mes": masiva.mes,
                "anio": masiva.anio,
                "monto": local.monto_mensual,
                "estado": EstadoFactura.PENDIENTE.value,
                "fecha_vencimiento": vencimiento,
                "correlativo": f"{prefix}{siguiente + offset:06d}",
                "local_id": local.id,
                "created_by_user_id": user_id,
                **self._snapshot(local)
            })

        try:
            count = self.repository.create_many(facturas_data)
        except IntegrityError:
            raise ConflictError("Conflicto al generar facturas, intente nuevamente")

        logger.info(f"Generación masiva: {count} facturas para mercado {mercado.id} ({masiva.mes})")
        self.audit.log_action(
            AuditAction.CREATE, "facturas", user_id,
            registro_id=f"mercado:{mercado.id}",
            descripcion=f"Generación masiva de {count} facturas para {masiva.mes}",
            request=request
        )
        return FacturaMasivaResponse(
            success=True,
            message=f"Se generaron {count} facturas exitosamente",
            count=count,
            mercado_id=mercado.id,
            mes=masiva.mes,
            anio=masiva.anio
        )

    def search(self, params: FacturaSearchParams) -> PaginatedResponse:
        facturas, total = self.repository.search(params)
        return PaginatedResponse.build(
            items=[self._to_response(f) for f in facturas],
            total=total,
            page=params.page,
            size=params.limit
        )

    def get_factura(self, factura_id: int) -> FacturaResponse:
        return self._to_response(self._get_or_404(factura_id))

    def mark_as_paid(
        self,
        factura_id: int,
        user_id: int,
        fecha_pago: Optional[datetime] = None,
        request: Optional[Request] = None
    ) -> FacturaResponse:
        factura = self._get_or_404(factura_id)
        if factura.estado == EstadoFactura.PAGADA.value:
            raise BusinessRuleError("La factura ya está marcada como pagada")
        if factura.estado == EstadoFactura.ANULADA.value:
            raise BusinessRuleError("No se puede pagar una factura anulada")

        anterior = factura.estado
        factura = self.repository.update(factura, {
            "estado": EstadoFactura.PAGADA.value,
            "fecha_pago": ensure_utc(fecha_pago) or utc_now()
        })
        self.audit.log_action(
            AuditAction.PAGAR, "facturas", user_id,
            registro_id=factura.id,
            datos_anteriores={"estado": anterior},
            datos_nuevos={"estado": factura.estado, "fecha_pago": factura.fecha_pago},
            request=request
        )
        return self._to_response(factura)

    def anular(
        self,
        factura_id: int,
        anulacion: AnularFacturaRequest,
        user_id: int,
        request: Optional[Request] = None
    ) -> FacturaResponse:
        factura = self._get_or_404(factura_id)
        if factura.estado == EstadoFactura.ANULADA.value:
            raise BusinessRuleError("La factura ya está anulada")
        if factura.estado == EstadoFactura.PAGADA.value:
            raise BusinessRuleError("No se puede anular una factura pagada")

        anterior = factura.estado
        factura = self.repository.update(factura, {
            "estado": EstadoFactura.ANULADA.value,
            "fecha_anulacion": utc_now(),
            "razon_anulacion": anulacion.razon_anulacion,
            "anulado_por_user_id": user_id
        })
        logger.info(f"Factura {factura.correlativo} anulada por usuario {user_id}")
        self.audit.log_action(
            AuditAction.ANULAR, "facturas", user_id,
            registro_id=factura.id,
            datos_anteriores={"estado": anterior},
            datos_nuevos={"estado": factura.estado, "razon_anulacion": anulacion.razon_anulacion},
            request=request
        )
        return self._to_response(factura)

    def update_overdue(self, now: Optional[datetime] = None) -> VencidasResponse:
        actualizadas = self.repository.mark_overdue(now or utc_now())
        if actualizadas:
            logger.info(f"{actualizadas} facturas marcadas como vencidas")
        return VencidasResponse(
            success=True,
            message=f"{actualizadas} facturas marcadas como vencidas",
            actualizadas=actualizadas
        )

    def get_stats(self) -> FacturaStatsResponse:
        stats = self.repository.get_stats()
        total = stats["monto_total"]
        recaudado = stats["monto_recaudado"]
        return FacturaStatsResponse(
            success=True,
            message="Estadísticas de facturación",
            total_facturas=stats["total_facturas"],
            por_estado=stats["por_estado"],
            monto_total=total,
            monto_recaudado=recaudado,
            porcentaje_recaudacion=round(float(recaudado / total * 100), 2) if total > 0 else 0.0
        )

    def _correlativo_base(self):
        """Prefijo del año local actual y siguiente número disponible"""
        prefix = f"{to_local(utc_now()).year}-"
        last = self.repository.last_correlativo(prefix)
        siguiente = int(last.split("-")[1]) + 1 if last else 1
        return prefix, siguiente

    def _next_correlativo(self) -> str:
        prefix, siguiente = self._correlativo_base()
        return f"{prefix}{siguiente:06d}"

    @staticmethod
    def _snapshot(local) -> dict:
        return {
            "mercado_nombre": local.mercado.nombre_mercado if local.mercado else None,
            "local_nombre": local.nombre_local,
            "local_numero": local.numero_local,
            "propietario_nombre": local.propietario,
            "propietario_dni": local.dni_propietario
        }

    def _get_or_404(self, factura_id: int) -> Factura:
        factura = self.repository.get_by_id(factura_id)
        if not factura:
            raise NotFoundError("Factura no encontrada")
        return factura

    @staticmethod
    def _to_response(factura: Factura) -> FacturaResponse:
        return FacturaResponse(
            id=factura.id,
            correlativo=factura.correlativo,
            concepto=factura.concepto,
            mes=factura.mes,
            anio=factura.anio,
            monto=factura.monto,
            estado=factura.estado,
            fecha_vencimiento=ensure_utc(factura.fecha_vencimiento),
            fecha_pago=ensure_utc(factura.fecha_pago),
            fecha_anulacion=ensure_utc(factura.fecha_anulacion),
            razon_anulacion=factura.razon_anulacion,
            observaciones=factura.observaciones,
            mercado_nombre=factura.mercado_nombre,
            local_nombre=factura.local_nombre,
            local_numero=factura.local_numero,
            propietario_nombre=factura.propietario_nombre,
            propietario_dni=factura.propietario_dni,
            local_id=factura.local_id,
            created_by_user_id=factura.created_by_user_id,
            created_at=ensure_utc(factura.created_at)
        )
