# app/modules/reportes/schemas.py
from pydantic import BaseModel, Field, validator
from typing import Dict, List, Optional, Union
from decimal import Decimal
from datetime import date, datetime
from enum import Enum

from app.shared.schemas.common import BaseResponse

class TipoReporte(str, Enum):
    FINANCIERO = "FINANCIERO"
    OPERACIONAL = "OPERACIONAL"
    MERCADO = "MERCADO"
    LOCAL = "LOCAL"

class PeriodoReporte(str, Enum):
    MENSUAL = "MENSUAL"
    TRIMESTRAL = "TRIMESTRAL"
    ANUAL = "ANUAL"

class FormatoReporte(str, Enum):
    # Solo vista previa; la exportación a archivo la hace el cliente
    JSON = "JSON"

# ==================== REQUEST ====================

class GenerarReporteRequest(BaseModel):
    tipo: TipoReporte
    periodo: PeriodoReporte = PeriodoReporte.MENSUAL
    formato: FormatoReporte = FormatoReporte.JSON
    fecha_inicio: Optional[date] = Field(None, description="Inicio personalizado (YYYY-MM-DD, hora local)")
    fecha_fin: Optional[date] = Field(None, description="Fin personalizado, inclusive")
    mercados: List[int] = Field(default_factory=list, max_length=100)
    locales: List[int] = Field(default_factory=list, max_length=500)

    @validator('fecha_fin', always=True)
    def validate_fechas(cls, v, values):
        inicio = values.get('fecha_inicio')
        if (v is None) != (inicio is None):
            raise ValueError('fecha_inicio y fecha_fin se envían juntas')
        if v is not None and v < inicio:
            raise ValueError('fecha_fin no puede ser anterior a fecha_inicio')
        return v

    @validator('mercados', 'locales')
    def validate_ids(cls, v):
        if any(i < 1 for i in v):
            raise ValueError('Los IDs deben ser positivos')
        return sorted(set(v))

    class Config:
        json_schema_extra = {
            "example": {
                "tipo": "FINANCIERO",
                "periodo": "MENSUAL",
                "formato": "JSON",
                "fecha_inicio": "2025-01-01",
                "fecha_fin": "2025-03-31",
                "mercados": [1, 2]
            }
        }

# ==================== DATOS ====================

class EstadoMonto(BaseModel):
    cantidad: int
    monto: Decimal

class MercadoReporte(BaseModel):
    mercado_id: int
    nombre_mercado: str
    total_facturas: int
    facturas_pagadas: int
    total_facturado: Decimal
    total_recaudado: Decimal
    total_locales: int
    porcentaje_pagadas: float

class LocalReporte(BaseModel):
    local_id: int
    numero_local: Optional[str] = None
    nombre_local: Optional[str] = None
    mercado: str
    total_facturas: int
    facturas_pagadas: int
    total_facturado: Decimal
    total_recaudado: Decimal

class ResumenFinanciero(BaseModel):
    total_facturas: int
    total_facturado: Decimal
    total_recaudado: Decimal
    promedio_factura: Decimal
    porcentaje_recaudado: float

class ReporteFinanciero(BaseModel):
    resumen: ResumenFinanciero
    por_estado: Dict[str, EstadoMonto]
    por_mercado: List[MercadoReporte]

class ReporteOperacional(BaseModel):
    total_facturas: int
    mercados_con_facturas: int
    locales_con_facturas: int
    facturas_hoy: int
    eficiencia: str

class ReporteMercados(BaseModel):
    mercados: List[MercadoReporte]

class ReporteLocales(BaseModel):
    locales: List[LocalReporte]

# ==================== RESPONSE ====================

class ReporteMetadata(BaseModel):
    tipo: TipoReporte
    periodo: PeriodoReporte
    formato: FormatoReporte
    fecha_inicio: datetime
    fecha_fin: datetime
    rango_local: str
    personalizado: bool
    tiempo_procesamiento_ms: int
    generado_en: datetime
    usuario: str

class FiltrosAplicados(BaseModel):
    mercados: List[int]
    locales: List[int]

class ReporteResponse(BaseResponse):
    data: Union[ReporteFinanciero, ReporteOperacional, ReporteMercados, ReporteLocales]
    metadata: ReporteMetadata
    filtros_aplicados: FiltrosAplicados

class OpcionConfiguracion(BaseModel):
    value: str
    label: str

class MercadoDisponible(BaseModel):
    id: int
    nombre_mercado: str
    direccion: str

class ConfiguracionReportes(BaseModel):
    tipos_reporte: List[OpcionConfiguracion]
    periodos: List[OpcionConfiguracion]
    formatos: List[OpcionConfiguracion]
    mercados_disponibles: List[MercadoDisponible]
    tipos_local: List[str]

class ConfiguracionResponse(BaseResponse):
    configuracion: ConfiguracionReportes

class EstadisticasGenerales(BaseModel):
    total_mercados: int
    total_locales: int
    total_facturas: int
    total_recaudado: Decimal
    promedio_factura: Decimal

class EstadisticasResponse(BaseResponse):
    estadisticas: EstadisticasGenerales
