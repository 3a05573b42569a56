# app/modules/user_stats/service.py
import json
import logging
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.core.exceptions import InvalidInputError, NotFoundError, UpstreamUnavailableError
from app.modules.audit.service import AuditService
from app.shared.database.models import AuditAction, ConsultaLog, ConsultaResultado, User
from app.shared.schemas.common import PaginatedResponse
from app.shared.timezone import ensure_utc, format_local_range, utc_now
from app.shared.validation import Periodo, extract_consulta_key, unwrap, validate_consulta_key
from .reconciliation import ConsultaRegistro, PagoRegistro, conciliar
from .repository import UserStatsRepository
from .schemas import (
    AssignLocationRequest, ArticuloAmplificado, ConsultaLogCreate, ConsultaLogFilters,
    ConsultaLogResponse, EstadisticasDuplicados, GeneralStatsResponse, LocationHistoryResponse,
    LocationStatsResponse, MatchDetail, MatchReportResponse, StatsTimeRange,
    UserLocationResponse, UserStatsResponse
)

logger = logging.getLogger(__name__)

_RANGE_DAYS = {
    StatsTimeRange.DAY: 1,
    StatsTimeRange.WEEK: 7,
    StatsTimeRange.MONTH: 30,
    StatsTimeRange.YEAR: 365,
}


def client_ip(request: Optional[Request]) -> Optional[str]:
    """IP del cliente sin el prefijo IPv4 mapeado a IPv6"""
    if request is None or request.client is None:
        return None
    ip = request.client.host
    return ip[7:] if ip and ip.startswith("::ffff:") else ip


def resolve_range(
    time_range: StatsTimeRange,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """Rango [inicio, fin] en UTC para filtros de estadísticas"""
    now = now or utc_now()
    if time_range == StatsTimeRange.CUSTOM:
        if not start_date or not end_date:
            raise InvalidInputError("El rango personalizado requiere start_date y end_date")
        start, end = ensure_utc(start_date), ensure_utc(end_date)
        if start > end:
            raise InvalidInputError("start_date no puede ser posterior a end_date")
        return start, end
    return now - timedelta(days=_RANGE_DAYS[time_range]), now


class UserStatsService:
    def __init__(self, db: Session, recaudo_db: Optional[Session] = None):
        self.db = db
        self.repository = UserStatsRepository(db, recaudo_db)
        self.audit = AuditService(db)

    # ===== REGISTRO DE CONSULTAS =====

    def log_consulta(
        self,
        log_data: ConsultaLogCreate,
        user: User,
        request: Optional[Request] = None
    ) -> ConsultaLogResponse:
        """Registrar una consulta. La clave se extrae de los parámetros"""
        consulta_key = unwrap(validate_consulta_key(extract_consulta_key(log_data.parametros)))
        location = user.active_location

        log = self.repository.create_log({
            "consulta_type": log_data.consulta_type.value,
            "consulta_subtype": log_data.consulta_subtype.value,
            "parametros": json.dumps(log_data.parametros, ensure_ascii=False, default=str),
            "consulta_key": consulta_key,
            "resultado": log_data.resultado.value,
            "total_encontrado": log_data.total_encontrado,
            "error_message": log_data.error_message,
            "ip": client_ip(request),
            "user_agent": request.headers.get("user-agent") if request else None,
            "duracion_ms": log_data.duracion_ms,
            "user_id": user.id,
            "user_location": location.location_name if location else None
        })
        logger.debug(f"Consulta {log.consulta_type}/{log.consulta_subtype} registrada: {log.resultado}")
        return self._log_to_response(log, user.username)

    def search_logs(self, filters: ConsultaLogFilters) -> PaginatedResponse:
        start, end = resolve_range(filters.time_range, filters.start_date, filters.end_date)
        logs, total = self.repository.search_logs(filters, start, end)
        return PaginatedResponse.build(
            items=[self._log_to_response(log) for log in logs],
            total=total,
            page=filters.page,
            size=filters.limit
        )

    # ===== ESTADÍSTICAS =====

    def get_user_stats(
        self,
        user_id: int,
        time_range: StatsTimeRange = StatsTimeRange.MONTH,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> UserStatsResponse:
        user = self.repository.get_user(user_id)
        if not user:
            raise NotFoundError("Usuario no encontrado")

        start, end = resolve_range(time_range, start_date, end_date)
        rows = self.repository.aggregate_by_user(start, end, user_id=user_id)
        row = rows[0] if rows else {}
        return self._user_stats(user, row, format_local_range(start, end))

    def get_general_stats(
        self,
        time_range: StatsTimeRange = StatsTimeRange.MONTH,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> GeneralStatsResponse:
        start, end = resolve_range(time_range, start_date, end_date)
        periodo = format_local_range(start, end)

        por_usuario = self.repository.aggregate_by_user(start, end)
        usuarios = self.repository.get_users([row["user_id"] for row in por_usuario[:10]])
        top = [
            self._user_stats(usuarios[row["user_id"]], row, periodo)
            for row in por_usuario[:10]
            if row["user_id"] in usuarios
        ]

        ubicaciones = [
            LocationStatsResponse(
                location=row["location"],
                total_usuarios=row["usuarios"],
                total_consultas=row["total"],
                consultas_ec=int(row["ec"] or 0),
                consultas_ics=int(row["ics"] or 0),
                promedio_consultas_por_usuario=round(row["total"] / row["usuarios"], 2) if row["usuarios"] else 0.0
            )
            for row in self.repository.aggregate_by_location(start, end)
        ]

        por_tipo = self.repository.count_by_column(ConsultaLog.consulta_type, start, end)
        por_resultado = self.repository.count_by_column(ConsultaLog.resultado, start, end)

        return GeneralStatsResponse(
            success=True,
            message="Estadísticas generales de consultas",
            total_usuarios=self.repository.count_users(),
            usuarios_activos=len(por_usuario),
            total_consultas=sum(por_tipo.values()),
            consultas_por_tipo={"EC": por_tipo.get("EC", 0), "ICS": por_tipo.get("ICS", 0)},
            consultas_por_resultado={r.value: por_resultado.get(r.value, 0) for r in ConsultaResultado},
            stats_por_ubicacion=ubicaciones,
            top_usuarios=top,
            periodo_consultado=periodo
        )

    # ===== UBICACIONES =====

    def assign_location(
        self,
        location_data: AssignLocationRequest,
        assigned_by: int,
        request: Optional[Request] = None
    ) -> UserLocationResponse:
        """Asignar ubicación. La anterior queda inactiva en el historial"""
        user = self.repository.get_user(location_data.user_id)
        if not user:
            raise NotFoundError("Usuario no encontrado")

        anterior = self.repository.get_active_location(user.id)
        location = self.repository.assign_location(user.id, {
            "location_name": location_data.location_name,
            "location_code": location_data.location_code,
            "description": location_data.description,
            "assigned_at": utc_now(),
            "assigned_by": assigned_by
        })

        logger.info(f"Usuario {user.username} asignado a '{location.location_name}'")
        self.audit.log_action(
            AuditAction.UPDATE, "user_locations", assigned_by,
            registro_id=location.id,
            datos_anteriores={"location_name": anterior.location_name} if anterior else None,
            datos_nuevos={"user_id": user.id, "location_name": location.location_name},
            request=request
        )
        return self._location_to_response(location)

    def get_location_history(
        self,
        user_id: int,
        active_only: bool = False,
        ascending: bool = False
    ) -> LocationHistoryResponse:
        user = self.repository.get_user(user_id)
        if not user:
            raise NotFoundError("Usuario no encontrado")

        historial = self.repository.location_history(user_id, active_only, ascending)
        actual = next((loc for loc in historial if loc.is_active), None)
        return LocationHistoryResponse(
            success=True,
            message=f"Historial de ubicaciones de {user.username}",
            user_id=user.id,
            username=user.username,
            ubicacion_actual=self._location_to_response(actual) if actual else None,
            historial=[self._location_to_response(loc) for loc in historial],
            total=len(historial)
        )

    # ===== CONCILIACIÓN =====

    def get_match_report(self, periodo: Periodo) -> MatchReportResponse:
        """
        Cruzar los logs de consulta del período con los pagos del recaudo.

        Los logs se toman en [inicio, fin) y los pagos de todas las fechas
        cuyo artículo coincida con alguna clave consultada.
        """
        started = time.perf_counter()
        try:
            logs = self.repository.get_logs_with_key(periodo.inicio, periodo.fin)
            keys = sorted({log.consulta_key for log in logs})
            pagos = self.repository.get_recaudos_by_keys(keys, settings.recaudo_chunk_size) if keys else []
        except OperationalError as e:
            logger.error(f"Base de datos no disponible para conciliación: {e}", exc_info=True)
            raise UpstreamUnavailableError("No se pudo consultar los logs o el recaudo")

        consultas = [
            ConsultaRegistro(
                id=log.id,
                consulta_key=log.consulta_key,
                created_at=ensure_utc(log.created_at),
                total_encontrado=log.total_encontrado,
                consulta_type=log.consulta_type,
                user_id=log.user_id,
                username=log.user.username if log.user else None,
                user_location=log.user_location
            )
            for log in logs
        ]
        registros_pago = [
            PagoRegistro(
                id=pago.id,
                articulo=pago.articulo,
                total_pagado=Decimal(pago.total_pagado),
                fecha_pago=ensure_utc(pago.fecha_pago)
            )
            for pago in pagos
        ]

        resultado = conciliar(consultas, registros_pago)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Conciliación {periodo.descripcion}: {resultado.total_consultas_analizadas} consultas, "
            f"{resultado.total_matches} matches ({elapsed_ms} ms)"
        )
        if resultado.articulos_amplificados:
            logger.info(
                f"{len(resultado.articulos_amplificados)} artículos con matches amplificados "
                f"({resultado.total_matches_amplificados} matches)"
            )

        return MatchReportResponse(
            total_consultas_analizadas=resultado.total_consultas_analizadas,
            total_matches=resultado.total_matches,
            suma_total_encontrado=resultado.suma_total_encontrado,
            suma_total_pagado=resultado.suma_total_pagado,
            total_pagos_mediante_app=resultado.total_pagos_mediante_app,
            suma_total_pagado_mediante_app=resultado.suma_total_pagado_mediante_app,
            total_pagos_previos=resultado.total_pagos_previos,
            suma_total_pagos_previos=resultado.suma_total_pagos_previos,
            matches=[
                MatchDetail(
                    consulta_log_id=m.consulta.id,
                    consulta_key=m.consulta.consulta_key,
                    consulta_type=m.consulta.consulta_type,
                    user_id=m.consulta.user_id,
                    username=m.consulta.username,
                    user_location=m.consulta.user_location,
                    fecha_consulta=m.consulta.created_at,
                    total_encontrado=m.consulta.total_encontrado,
                    recaudo_id=m.pago.id,
                    fecha_pago=m.pago.fecha_pago,
                    total_pagado=m.pago.total_pagado,
                    tipo_pago=m.tipo_pago.value,
                    es_pago_mediante_app=m.es_pago_mediante_app
                )
                for m in resultado.matches
            ],
            estadisticas_duplicados=EstadisticasDuplicados(
                total_articulos_unicos=resultado.total_articulos_unicos,
                total_articulos_duplicados=resultado.total_articulos_duplicados,
                total_articulos_con_multiples_pagos=resultado.total_articulos_con_multiples_pagos,
                total_matches_amplificados=resultado.total_matches_amplificados,
                articulos_amplificados={
                    clave: ArticuloAmplificado(**conteo)
                    for clave, conteo in resultado.articulos_amplificados.items()
                }
            ),
            periodo_consultado=periodo.descripcion,
            generado_en=utc_now()
        )

    # ===== HELPERS =====

    @staticmethod
    def _user_stats(user: User, row: Dict[str, Any], periodo: str) -> UserStatsResponse:
        location = user.active_location
        return UserStatsResponse(
            user_id=user.id,
            username=user.username,
            user_location=location.location_name if location else None,
            total_consultas=row.get("total", 0),
            consultas_ec=int(row.get("ec") or 0),
            consultas_ics=int(row.get("ics") or 0),
            consultas_exitosas=int(row.get("success") or 0),
            consultas_con_error=int(row.get("error") or 0),
            consultas_no_encontradas=int(row.get("not_found") or 0),
            promedio_tiempo_respuesta=round(float(row.get("avg_ms") or 0), 2),
            total_recaudado_consultado=Decimal(row.get("total_encontrado") or 0),
            ultima_consulta=ensure_utc(row.get("ultima")),
            periodo_consultado=periodo
        )

    @staticmethod
    def _log_to_response(log: ConsultaLog, username: Optional[str] = None) -> ConsultaLogResponse:
        try:
            parametros = json.loads(log.parametros) if log.parametros else {}
        except ValueError:
            parametros = {"raw": log.parametros}
        return ConsultaLogResponse(
            id=log.id,
            consulta_type=log.consulta_type,
            consulta_subtype=log.consulta_subtype,
            parametros=parametros,
            consulta_key=log.consulta_key,
            resultado=log.resultado,
            total_encontrado=log.total_encontrado,
            error_message=log.error_message,
            ip=log.ip,
            user_agent=log.user_agent,
            duracion_ms=log.duracion_ms,
            user_id=log.user_id,
            username=username or (log.user.username if log.user else None),
            user_location=log.user_location,
            created_at=ensure_utc(log.created_at)
        )

    @staticmethod
    def _location_to_response(location) -> UserLocationResponse:
        return UserLocationResponse(
            id=location.id,
            user_id=location.user_id,
            location_name=location.location_name,
            location_code=location.location_code,
            description=location.description,
            is_active=location.is_active,
            assigned_at=ensure_utc(location.assigned_at),
            assigned_by=location.assigned_by
        )
