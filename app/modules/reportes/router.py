# app/modules/reportes/router.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_consulta_user, get_market_user
from .service import ReportesService
from .schemas import ConfiguracionResponse, EstadisticasResponse, GenerarReporteRequest, ReporteResponse

router = APIRouter()

@router.post("/generar", response_model=ReporteResponse)
async def generar_reporte(
    body: GenerarReporteRequest,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """
    Generar reporte de facturación

    **Tipos:**
    - **FINANCIERO**: totales, desglose por estado y por mercado
    - **OPERACIONAL**: actividad de mercados y locales
    - **MERCADO** / **LOCAL**: totales por mercado o por local

    Sin fecha_inicio/fecha_fin se usa el mes, trimestre o año en curso (hora local).
    """
    return ReportesService(db).generar(body, current_user, request)

@router.get("/configuracion", response_model=ConfiguracionResponse)
async def configuracion_reportes(
    current_user = Depends(get_consulta_user),
    db: Session = Depends(get_db)
):
    """Tipos, períodos, formatos, mercados activos y tipos de local"""
    return ReportesService(db).configuracion()

@router.get("/stats", response_model=EstadisticasResponse)
async def estadisticas_reportes(
    current_user = Depends(get_consulta_user),
    db: Session = Depends(get_db)
):
    return ReportesService(db).estadisticas()
