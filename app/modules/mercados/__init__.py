# app/modules/mercados/__init__.py
"""
Módulo de Mercados - Gestión de mercados municipales

- Alta, consulta, actualización de mercados
- Desactivación (no se puede con locales activos) y reactivación
- Estadísticas de ocupación

Arquitectura:
- router.py: Endpoints
- service.py: Reglas de negocio
- repository.py: Acceso a datos
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import MercadosService
from .repository import MercadosRepository

__all__ = [
    "router",
    "MercadosService",
    "MercadosRepository"
]
