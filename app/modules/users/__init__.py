# app/modules/users/__init__.py
"""
Módulo de Usuarios - Administración de cuentas

- Alta con correo, username, DNI y número de empleado únicos
- Listado paginado con ubicación activa y estadísticas por rol
- Desactivación / reactivación y restablecimiento de contraseña
- Toda escritura queda en la bitácora de auditoría
"""

from .router import router
from .service import UsersService
from .repository import UsersRepository

__all__ = [
    "router",
    "UsersService",
    "UsersRepository"
]
