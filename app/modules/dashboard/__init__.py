# app/modules/dashboard/__init__.py
"""
Módulo de Dashboard - Métricas agregadas de solo lectura

- Recaudación mensual, anual, total y por mercado, con proyección
- Facturas por estado (excluyentes) y tasas de cobro
- Mercados, locales, usuarios y ocupación
"""

from .router import router
from .service import DashboardService

__all__ = [
    "router",
    "DashboardService"
]
