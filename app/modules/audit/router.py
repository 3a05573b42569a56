# app/modules/audit/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user
from app.shared.database.models import AuditAction
from app.shared.schemas.common import PaginatedResponse
from .service import AuditService
from .schemas import AuditLogResponse, AuditSearchParams, AuditStatsResponse

router = APIRouter()

@router.get("/", response_model=PaginatedResponse)
async def list_audit_logs(
    user_id: Optional[int] = Query(None, description="Filtrar por usuario"),
    tabla: Optional[str] = Query(None, description="Filtrar por tabla afectada"),
    accion: Optional[AuditAction] = Query(None, description="Filtrar por acción"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Listar bitácora de auditoría (más recientes primero)"""
    service = AuditService(db)
    params = AuditSearchParams(user_id=user_id, tabla=tabla, accion=accion, page=page, limit=limit)
    return service.search(params)

@router.get("/stats", response_model=AuditStatsResponse)
async def audit_stats(
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Totales por acción, tabla y usuarios más activos"""
    return AuditService(db).get_stats()

@router.get("/{audit_id}", response_model=AuditLogResponse)
async def get_audit_log(
    audit_id: int,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return AuditService(db).get(audit_id)
