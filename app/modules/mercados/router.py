# app/modules/mercados/router.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user, get_market_user
from app.shared.schemas.common import MessageResponse, PaginatedResponse
from .service import MercadosService
from .schemas import (
    MercadoCreateRequest, MercadoUpdateRequest, MercadoResponse, MercadoStatsResponse
)

router = APIRouter()

@router.post("/", response_model=MercadoResponse, status_code=201)
async def create_mercado(
    mercado_data: MercadoCreateRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Crear un mercado (nombre único)"""
    service = MercadosService(db)
    return service.create_mercado(mercado_data, current_user.id, request)

@router.get("/", response_model=PaginatedResponse)
async def list_mercados(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    is_active: Optional[bool] = Query(None, description="Filtrar por estado"),
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    service = MercadosService(db)
    return service.list_mercados(page, limit, is_active)

@router.get("/stats", response_model=MercadoStatsResponse)
async def mercados_stats(
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """Ocupación de locales en mercados activos"""
    return MercadosService(db).get_stats()

@router.get("/{mercado_id}", response_model=MercadoResponse)
async def get_mercado(
    mercado_id: int,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return MercadosService(db).get_mercado(mercado_id)

@router.patch("/{mercado_id}", response_model=MercadoResponse)
async def update_mercado(
    mercado_id: int,
    update_data: MercadoUpdateRequest,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    service = MercadosService(db)
    return service.update_mercado(mercado_id, update_data, current_user.id, request)

@router.delete("/{mercado_id}", response_model=MessageResponse)
async def deactivate_mercado(
    mercado_id: int,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Desactivar mercado (no se elimina)"""
    return MercadosService(db).deactivate_mercado(mercado_id, current_user.id, request)

@router.patch("/{mercado_id}/activate", response_model=MessageResponse)
async def activate_mercado(
    mercado_id: int,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return MercadosService(db).activate_mercado(mercado_id, current_user.id, request)
