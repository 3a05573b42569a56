# app/modules/reportes/__init__.py
"""
Módulo de Reportes - Facturación por período

Reportes FINANCIERO, OPERACIONAL, MERCADO y LOCAL sobre las facturas
emitidas en un rango (mes, trimestre, año o fechas propias), con filtro
opcional por mercados y locales.
"""

from .router import router
from .service import ReportesService
from .repository import ReportesRepository

__all__ = [
    "router",
    "ReportesService",
    "ReportesRepository"
]
