# app/modules/facturas/router.py
from datetime import datetime
from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user, get_market_user
from app.shared.database.models import EstadoFactura
from app.shared.schemas.common import PaginatedResponse
from .service import FacturasService
from .schemas import (
    AnularFacturaRequest, FacturaCreateRequest, FacturaMasivaRequest, FacturaMasivaResponse,
    FacturaResponse, FacturaSearchParams, FacturaStatsResponse, VencidasResponse
)

router = APIRouter()

@router.post("/", response_model=FacturaResponse, status_code=201)
async def create_factura(
    factura_data: FacturaCreateRequest,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """Emitir factura para un local (una por local y mes)"""
    return FacturasService(db).create_factura(factura_data, current_user.id, request)

@router.post("/masivas", response_model=FacturaMasivaResponse, status_code=201)
async def generate_massive(
    masiva: FacturaMasivaRequest,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """Emitir facturas del mes para todos los locales activos de un mercado"""
    return FacturasService(db).generate_massive(masiva, current_user.id, request)

@router.get("/", response_model=PaginatedResponse)
async def list_facturas(
    estado: Optional[EstadoFactura] = Query(None),
    local_id: Optional[int] = Query(None),
    mercado_id: Optional[int] = Query(None),
    anio: Optional[int] = Query(None, ge=2000, le=9999),
    mes: Optional[str] = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    params = FacturaSearchParams(
        estado=estado, local_id=local_id, mercado_id=mercado_id,
        anio=anio, mes=mes, page=page, limit=limit
    )
    return FacturasService(db).search(params)

@router.get("/stats", response_model=FacturaStatsResponse)
async def facturas_stats(
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return FacturasService(db).get_stats()

@router.post("/actualizar-vencidas", response_model=VencidasResponse)
async def update_overdue(
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Marcar como VENCIDA toda factura PENDIENTE con vencimiento pasado"""
    return FacturasService(db).update_overdue()

@router.get("/{factura_id}", response_model=FacturaResponse)
async def get_factura(
    factura_id: int,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return FacturasService(db).get_factura(factura_id)

@router.patch("/{factura_id}/pagar", response_model=FacturaResponse)
async def pay_factura(
    factura_id: int,
    request: Request,
    fecha_pago: Optional[datetime] = Body(None, embed=True),
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return FacturasService(db).mark_as_paid(factura_id, current_user.id, fecha_pago, request)

@router.patch("/{factura_id}/anular", response_model=FacturaResponse)
async def anular_factura(
    factura_id: int,
    anulacion: AnularFacturaRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Anular factura con razón (10 a 500 caracteres)"""
    return FacturasService(db).anular(factura_id, anulacion, current_user.id, request)
