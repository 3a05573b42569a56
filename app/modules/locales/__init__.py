# app/modules/locales/__init__.py
"""
Módulo de Locales - Puestos dentro de los mercados

- CRUD de locales (número único por mercado)
- Cambios de estado: activar, desactivar, suspender
- Facturas de un local y estadísticas
"""

from .router import router
from .service import LocalesService
from .repository import LocalesRepository

__all__ = [
    "router",
    "LocalesService",
    "LocalesRepository"
]
