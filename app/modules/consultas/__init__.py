# app/modules/consultas/__init__.py
"""
Módulo de Consultas - Estado de cuenta (EC) e ICS

- Estado de cuenta normal y con amnistía calculado sobre el sistema tributario
- Recargo por mora, descuento por pronto pago y cache de 10 minutos
- Cada consulta queda registrada en consulta_logs
"""

from .router import router
from .service import ConsultasService

__all__ = [
    "router",
    "ConsultasService"
]
