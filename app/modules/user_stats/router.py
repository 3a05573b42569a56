# app/modules/user_stats/router.py
from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db, get_recaudo_db
from app.core.auth.dependencies import get_admin_user, get_current_user
from app.shared.database.models import ConsultaType, ConsultaSubtype, ConsultaResultado
from app.shared.schemas.common import PaginatedResponse
from app.shared.validation import unwrap, validate_periodo
from .service import UserStatsService
from .schemas import (
    AssignLocationRequest, ConsultaLogCreate, ConsultaLogFilters, ConsultaLogResponse,
    GeneralStatsResponse, LocationHistoryResponse, MatchReportResponse, StatsTimeRange,
    UserLocationResponse, UserStatsResponse
)

router = APIRouter()

@router.post("/log", response_model=ConsultaLogResponse, status_code=201)
async def log_consulta(
    log_data: ConsultaLogCreate,
    request: Request,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Registrar manualmente una consulta EC / ICS"""
    return UserStatsService(db).log_consulta(log_data, current_user, request)

@router.get("/logs", response_model=PaginatedResponse)
async def get_consulta_logs(
    user_id: Optional[int] = Query(None),
    username: Optional[str] = Query(None),
    user_location: Optional[str] = Query(None),
    consulta_type: Optional[ConsultaType] = Query(None),
    consulta_subtype: Optional[ConsultaSubtype] = Query(None),
    resultado: Optional[ConsultaResultado] = Query(None),
    consulta_key: Optional[str] = Query(None),
    time_range: StatsTimeRange = Query(StatsTimeRange.MONTH),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    filters = ConsultaLogFilters(
        user_id=user_id, username=username, user_location=user_location,
        consulta_type=consulta_type, consulta_subtype=consulta_subtype,
        resultado=resultado, consulta_key=consulta_key, time_range=time_range,
        start_date=start_date, end_date=end_date, page=page, limit=limit
    )
    return UserStatsService(db).search_logs(filters)

@router.get("/general", response_model=GeneralStatsResponse)
async def get_general_stats(
    time_range: StatsTimeRange = Query(StatsTimeRange.MONTH),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Estadísticas generales: por tipo, resultado, ubicación y top usuarios"""
    return UserStatsService(db).get_general_stats(time_range, start_date, end_date)

@router.get("/my-stats", response_model=UserStatsResponse)
async def get_my_stats(
    time_range: StatsTimeRange = Query(StatsTimeRange.MONTH),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UserStatsService(db).get_user_stats(current_user.id, time_range, start_date, end_date)

@router.get("/user/{user_id}", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: int,
    time_range: StatsTimeRange = Query(StatsTimeRange.MONTH),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return UserStatsService(db).get_user_stats(user_id, time_range, start_date, end_date)

@router.post("/user-location", response_model=UserLocationResponse, status_code=201)
async def assign_user_location(
    location_data: AssignLocationRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Asignar ubicación a un usuario (desactiva la anterior)"""
    return UserStatsService(db).assign_location(location_data, current_user.id, request)

@router.get("/my-location-history", response_model=LocationHistoryResponse)
async def get_my_location_history(
    active_only: bool = Query(False),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UserStatsService(db).get_location_history(current_user.id, active_only, sort_order == "asc")

@router.get("/user/{user_id}/location-history", response_model=LocationHistoryResponse)
async def get_user_location_history(
    user_id: int,
    active_only: bool = Query(False),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return UserStatsService(db).get_location_history(user_id, active_only, sort_order == "asc")

@router.get("/match", response_model=MatchReportResponse)
async def get_matches(
    year: Optional[str] = Query(None, description="Año a analizar (obligatorio, 4 dígitos)"),
    mes_inicio: Optional[str] = Query(None, description="Mes inicial 1-12 (por defecto 1)"),
    mes_fin: Optional[str] = Query(None, description="Mes final 1-12 (por defecto 12)"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db),
    recaudo_db: Session = Depends(get_recaudo_db)
):
    """
    Conciliación de consultas contra pagos del recaudo.

    Un pago con fecha igual o posterior a la consulta cuenta como pago mediante la app.
    """
    periodo = unwrap(validate_periodo(year, mes_inicio, mes_fin))
    return UserStatsService(db, recaudo_db).get_match_report(periodo)
