# app/modules/dashboard/router.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_market_user
from .service import DashboardService
from .schemas import DashboardStatistics

router = APIRouter()

@router.get("/statistics", response_model=DashboardStatistics)
async def get_dashboard_statistics(
    current_user = Depends(get_market_user),
    db: Session = Depends(get_db)
):
    """
    Métricas financieras, de facturas y de entidades.

    Un grupo que no pudo calcularse viene como {"estado": "no_disponible", "motivo": ...}
    """
    return DashboardService(db).get_statistics()
