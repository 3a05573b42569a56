# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1.auth import router as auth_router
from app.modules.users.router import router as users_router
from app.modules.mercados.router import router as mercados_router
from app.modules.locales.router import router as locales_router
from app.modules.facturas.router import router as facturas_router
from app.modules.audit.router import router as audit_router
from app.modules.consultas.router import router as consultas_router
from app.modules.user_stats.router import router as user_stats_router
from app.modules.dashboard.router import router as dashboard_router
from app.modules.reportes.router import router as reportes_router
from app.config.settings import settings

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])

api_router.include_router(
    users_router,
    prefix="/users",
    tags=["Usuarios"]
)

# ==================== MERCADOS Y COBRO ====================

api_router.include_router(
    mercados_router,
    prefix="/mercados",
    tags=["Mercados"]
)

api_router.include_router(
    locales_router,
    prefix="/locales",
    tags=["Locales"]
)

api_router.include_router(
    facturas_router,
    prefix="/facturas",
    tags=["Facturas"]
)

# ==================== CONSULTAS Y REPORTES ====================

api_router.include_router(
    consultas_router,
    prefix="/consultas",
    tags=["Consultas EC / ICS"]
)

api_router.include_router(
    user_stats_router,
    prefix="/user-stats",
    tags=["User Stats"]
)

api_router.include_router(
    dashboard_router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

api_router.include_router(
    reportes_router,
    prefix="/reportes",
    tags=["Reportes"]
)

api_router.include_router(
    audit_router,
    prefix="/audit",
    tags=["Auditoría"]
)

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": f"{settings.app_name} v1",
        "version": settings.version,
        "status": "active",
        "docs": "/docs",
        "available_endpoints": {
            "authentication": "/api/v1/auth",
            "users": "/api/v1/users",
            "mercados": "/api/v1/mercados",
            "locales": "/api/v1/locales",
            "facturas": "/api/v1/facturas",
            "consultas": "/api/v1/consultas",
            "user_stats": "/api/v1/user-stats",
            "dashboard": "/api/v1/dashboard",
            "reportes": "/api/v1/reportes",
            "audit": "/api/v1/audit"
        }
    }
