# app/modules/audit/__init__.py
"""
Módulo de Auditoría - Bitácora de acciones

- Registro de acciones (CREATE, UPDATE, DELETE, LOGIN, ANULAR, PAGAR)
- Consulta de la bitácora con filtros
- Estadísticas por acción, tabla y usuario

Los registros son de solo inserción: no se actualizan ni se eliminan.
"""

from .router import router
from .service import AuditService
from .repository import AuditRepository

__all__ = [
    "router",
    "AuditService",
    "AuditRepository"
]
