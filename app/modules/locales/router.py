# app/modules/locales/router.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user, get_market_user
from app.shared.database.models import EstadoLocal, TipoLocal
from app.shared.schemas.common import MessageResponse, PaginatedResponse
from .service import LocalesService
from .schemas import (
    LocalCreateRequest, LocalUpdateRequest, LocalResponse,
    LocalStatsResponse, LocalDetailStatsResponse
)

router = APIRouter()

@router.post("/", response_model=LocalResponse, status_code=201)
async def create_local(
    local_data: LocalCreateRequest,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """Crear local dentro de un mercado existente"""
    return LocalesService(db).create_local(local_data, current_user.id, request)

@router.get("/", response_model=PaginatedResponse)
async def list_locales(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    mercado_id: Optional[int] = Query(None),
    estado_local: Optional[EstadoLocal] = Query(None),
    tipo_local: Optional[TipoLocal] = Query(None),
    search: Optional[str] = Query(None, description="Nombre, número o propietario"),
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).list_locales(
        page, limit,
        mercado_id=mercado_id,
        estado_local=estado_local,
        tipo_local=tipo_local.value if tipo_local else None,
        search=search
    )

@router.get("/stats", response_model=LocalStatsResponse)
async def locales_stats(
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).get_stats()

@router.get("/{local_id}", response_model=LocalResponse)
async def get_local(
    local_id: int,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).get_local(local_id)

@router.get("/{local_id}/stats", response_model=LocalDetailStatsResponse)
async def local_stats(
    local_id: int,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """Resumen de facturación de un local"""
    return LocalesService(db).get_local_stats(local_id)

@router.get("/{local_id}/facturas", response_model=PaginatedResponse)
async def local_facturas(
    local_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).get_facturas(local_id, page, limit)

@router.patch("/{local_id}", response_model=LocalResponse)
async def update_local(
    local_id: int,
    update_data: LocalUpdateRequest,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).update_local(local_id, update_data, current_user.id, request)

@router.patch("/{local_id}/activate", response_model=LocalResponse)
async def activate_local(
    local_id: int,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).change_estado(local_id, EstadoLocal.ACTIVO, current_user.id, request)

@router.patch("/{local_id}/deactivate", response_model=LocalResponse)
async def deactivate_local(
    local_id: int,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).change_estado(local_id, EstadoLocal.INACTIVO, current_user.id, request)

@router.patch("/{local_id}/suspend", response_model=LocalResponse)
async def suspend_local(
    local_id: int,
    request: Request,
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    return LocalesService(db).change_estado(local_id, EstadoLocal.SUSPENDIDO, current_user.id, request)

@router.delete("/{local_id}", response_model=MessageResponse)
async def delete_local(
    local_id: int,
    request: Request,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Eliminar local (solo si no tiene facturas)"""
    return LocalesService(db).delete_local(local_id, current_user.id, request)
