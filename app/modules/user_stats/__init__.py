# app/modules/user_stats/__init__.py
"""
Módulo de Estadísticas de Usuario

- Registro de consultas EC / ICS y filtros sobre los logs
- Estadísticas por usuario, por ubicación y generales
- Asignación de ubicaciones con historial
- Conciliación de consultas contra pagos del recaudo
"""

from .router import router
from .service import UserStatsService
from .repository import UserStatsRepository

__all__ = [
    "router",
    "UserStatsService",
    "UserStatsRepository"
]
