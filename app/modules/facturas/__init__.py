# app/modules/facturas/__init__.py
"""
Módulo de Facturas - Cobro mensual de locales

- Emisión individual y masiva por mercado (una factura por local/mes)
- Pago, anulación con razón y marcado de vencidas
- Consulta con filtros y estadísticas de recaudación
"""

from .router import router
from .service import FacturasService
from .repository import FacturasRepository

__all__ = [
    "router",
    "FacturasService",
    "FacturasRepository"
]
