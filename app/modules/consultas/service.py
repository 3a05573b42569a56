# app/modules/consultas/service.py
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputError, NotFoundError, UpstreamUnavailableError
from app.modules.user_stats.schemas import ConsultaLogCreate
from app.modules.user_stats.service import UserStatsService
from app.shared.database.models import ConsultaResultado, ConsultaSubtype, ConsultaType, User
from app.shared.timezone import utc_now
from app.shared.validation import extract_consulta_key, unwrap, validate_consulta_key
from .cache import ConsultaCache, consulta_cache
from .calculo import AmnistiaConfig, estado_cuenta_ec, estado_cuenta_ics
from .repository import ConsultasRepository
from .schemas import ConsultaResponse, EstadoCuenta

logger = logging.getLogger(__name__)


class ConsultasService:
    def __init__(
        self,
        db: Session,
        readonly_db: Session,
        now: Optional[datetime] = None,
        cache: Optional[ConsultaCache] = None
    ):
        self.db = db
        self.repository = ConsultasRepository(readonly_db)
        self.user_stats = UserStatsService(db)
        self.cache = cache if cache is not None else consulta_cache
        self.now = now

    def consultar(
        self,
        consulta_type: ConsultaType,
        consulta_subtype: ConsultaSubtype,
        parametros: Dict[str, Any],
        user: User,
        request: Optional[Request] = None
    ) -> ConsultaResponse:
        """
        Calcular el estado de cuenta EC / ICS y dejar la consulta registrada
        en consulta_logs.

        Sin registros se registra NOT_FOUND y se responde 404. Si el sistema
        tributario no responde se registra ERROR y se responde 503.
        """
        parametros = {k: v.strip() for k, v in parametros.items() if v is not None and v.strip()}
        for value in parametros.values():
            unwrap(validate_consulta_key(value))
        consulta_key = extract_consulta_key(parametros)
        if consulta_key is None:
            raise InvalidInputError(
                "Debe enviar al menos un parámetro de búsqueda",
                details={"campos": ["ics", "dni"] if consulta_type == ConsultaType.ICS else ["claveCatastral", "dni"]}
            )

        amnistia = consulta_subtype == ConsultaSubtype.AMNISTIA
        documento = parametros.get("ics" if consulta_type == ConsultaType.ICS else "claveCatastral")
        dni = parametros.get("dni")
        cache_key = ConsultaCache.build_key(consulta_type.value, documento, dni, amnistia)

        logger.info(
            f"Consulta {consulta_type.value} ({consulta_subtype.value}) - Usuario: {user.username} - Clave: {consulta_key}"
        )
        started = time.perf_counter()

        estado = self.cache.get(cache_key)
        desde_cache = estado is not None
        if desde_cache:
            logger.info(f"Cache hit para: {cache_key}")
        else:
            try:
                estado = self._calcular(consulta_type, documento, dni, amnistia)
            except OperationalError as e:
                logger.error(f"Sistema tributario no disponible: {e}", exc_info=True)
                self._registrar(
                    consulta_type, consulta_subtype, parametros, ConsultaResultado.ERROR,
                    user, request, started, error_message="Sistema tributario no disponible"
                )
                raise UpstreamUnavailableError("No se pudo consultar el sistema tributario")

        if estado is None:
            self._registrar(
                consulta_type, consulta_subtype, parametros, ConsultaResultado.NOT_FOUND,
                user, request, started
            )
            raise NotFoundError(
                "No se encontraron registros para los parámetros proporcionados",
                details={"consulta_key": consulta_key}
            )

        if not desde_cache:
            self.cache.set(cache_key, estado)

        duracion_ms = self._registrar(
            consulta_type, consulta_subtype, parametros, ConsultaResultado.SUCCESS,
            user, request, started, total_encontrado=estado.total_a_pagar
        )
        return ConsultaResponse(
            success=True,
            message="Consulta realizada",
            consulta_type=consulta_type.value,
            consulta_subtype=consulta_subtype.value,
            resultado=ConsultaResultado.SUCCESS.value,
            consulta_key=consulta_key,
            total_encontrado=estado.total_a_pagar,
            duracion_ms=duracion_ms,
            desde_cache=desde_cache,
            data=estado
        )

    def _calcular(
        self,
        consulta_type: ConsultaType,
        documento: Optional[str],
        dni: Optional[str],
        amnistia: bool
    ) -> Optional[EstadoCuenta]:
        config = AmnistiaConfig.from_settings()
        ahora = self.now or utc_now()
        por_dni = documento is None

        if consulta_type == ConsultaType.ICS:
            registros = self.repository.get_deudas_ics(ics=documento, dni=dni)
            logger.info(f"Registros ICS encontrados: {len(registros)}")
            return estado_cuenta_ics(registros, por_dni, amnistia, config, ahora) if registros else None

        registros = self.repository.get_deudas_ec(clave_catastral=documento, dni=dni)
        logger.info(f"Registros EC encontrados: {len(registros)}")
        return estado_cuenta_ec(registros, por_dni, amnistia, config, ahora) if registros else None

    def _registrar(
        self,
        consulta_type: ConsultaType,
        consulta_subtype: ConsultaSubtype,
        parametros: Dict[str, Any],
        resultado: ConsultaResultado,
        user: User,
        request: Optional[Request],
        started: float,
        total_encontrado: Optional[Decimal] = None,
        error_message: Optional[str] = None
    ) -> int:
        duracion_ms = int((time.perf_counter() - started) * 1000)
        try:
            self.user_stats.log_consulta(
                ConsultaLogCreate(
                    consulta_type=consulta_type,
                    consulta_subtype=consulta_subtype,
                    parametros=parametros,
                    resultado=resultado,
                    total_encontrado=total_encontrado,
                    error_message=error_message,
                    duracion_ms=duracion_ms
                ),
                user,
                request
            )
        except SQLAlchemyError as e:
            # un fallo del log no invalida la consulta ya hecha
            self.db.rollback()
            logger.error(f"Error al registrar log de consulta: {e}", exc_info=True)
        return duracion_ms
