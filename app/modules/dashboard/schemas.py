# app/modules/dashboard/schemas.py
from pydantic import BaseModel, Field
from typing import List, Literal, Union
from decimal import Decimal
from datetime import datetime

# ==================== MARCADOR DE DEGRADACIÓN ====================

class MetricaNoDisponible(BaseModel):
    """Reemplaza a un grupo de métricas cuyas consultas fallaron"""
    estado: Literal["no_disponible"] = "no_disponible"
    motivo: str

# ==================== FINANZAS ====================

class MarketRevenue(BaseModel):
    mercado_id: int
    mercado_nombre: str
    total: Decimal
    monthly: Decimal
    annual: Decimal
    total_locales: int
    facturas_pagadas: int
    promedio_por_local: Decimal
    porcentaje_del_total: float

class LocalRevenue(BaseModel):
    local_id: int
    local_nombre: str
    mercado_nombre: str
    total: Decimal

class Proyeccion(BaseModel):
    """Estimación, no recaudación real"""
    es_proyeccion: bool = True
    locales_ocupados: int
    promedio_factura_pagada: Decimal
    expected_monthly_revenue: Decimal
    expected_annual_revenue: Decimal

class FinancialMetrics(BaseModel):
    monthly_revenue: Decimal
    annual_revenue: Decimal
    total_revenue: Decimal
    proyeccion: Proyeccion
    revenue_by_market: List[MarketRevenue]
    top_locales: List[LocalRevenue]

# ==================== FACTURAS ====================

class InvoiceMetrics(BaseModel):
    generated: int
    paid: int
    pending: int
    overdue: int
    cancelled: int
    pending_amount: Decimal
    overdue_amount: Decimal
    payment_rate: float = Field(..., ge=0, le=100)
    overdue_rate: float = Field(..., ge=0, le=100)
    collection_efficiency: float = Field(..., ge=0, le=100)

# ==================== ENTIDADES ====================

class MarketOccupancy(BaseModel):
    mercado_id: int
    mercado_nombre: str
    total_locales: int
    locales_ocupados: int
    occupancy_rate: float = Field(..., ge=0, le=100)

class EntityMetrics(BaseModel):
    total_markets: int
    active_markets: int
    total_locals: int
    active_locals: int
    total_users: int
    active_users: int
    occupancy_rate: float = Field(..., ge=0, le=100)
    average_locals_per_market: float
    locals_with_payments_this_month: int
    occupancy_by_market: List[MarketOccupancy]

# ==================== RESPUESTA ====================

class DashboardStatistics(BaseModel):
    financial: Union[FinancialMetrics, MetricaNoDisponible]
    invoices: Union[InvoiceMetrics, MetricaNoDisponible]
    entities: Union[EntityMetrics, MetricaNoDisponible]
    generado_en: datetime
    consistencia: str = "eventual_por_reporte"
