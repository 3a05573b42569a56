from pydantic import BaseModel, Field, validator
from typing import Any, Dict, List, Optional
from decimal import Decimal
from datetime import datetime
from enum import Enum

from app.shared.database.models import ConsultaType, ConsultaSubtype, ConsultaResultado
from app.shared.schemas.common import BaseResponse

class StatsTimeRange(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"

# ===== LOGS DE CONSULTA =====

class ConsultaLogCreate(BaseModel):
    consulta_type: ConsultaType
    consulta_subtype: ConsultaSubtype = ConsultaSubtype.NORMAL
    parametros: Dict[str, Any] = Field(default_factory=dict)
    resultado: ConsultaResultado
    total_encontrado: Optional[Decimal] = Field(None, ge=0)
    error_message: Optional[str] = Field(None, max_length=2000)
    duracion_ms: Optional[int] = Field(None, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "consulta_type": "EC",
                "consulta_subtype": "normal",
                "parametros": {"claveCatastral": "0801-1234-00001"},
                "resultado": "SUCCESS",
                "total_encontrado": 1250.50,
                "duracion_ms": 340
            }
        }

class ConsultaLogResponse(BaseModel):
    id: int
    consulta_type: str
    consulta_subtype: str
    parametros: Dict[str, Any]
    consulta_key: Optional[str] = None
    resultado: str
    total_encontrado: Optional[Decimal] = None
    error_message: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    duracion_ms: Optional[int] = None
    user_id: int
    username: Optional[str] = None
    user_location: Optional[str] = None
    created_at: datetime

class ConsultaLogFilters(BaseModel):
    user_id: Optional[int] = None
    username: Optional[str] = None
    user_location: Optional[str] = None
    consulta_type: Optional[ConsultaType] = None
    consulta_subtype: Optional[ConsultaSubtype] = None
    resultado: Optional[ConsultaResultado] = None
    consulta_key: Optional[str] = None
    time_range: StatsTimeRange = StatsTimeRange.MONTH
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=500)

# ===== ESTADÍSTICAS =====

class UserStatsResponse(BaseModel):
    user_id: int
    username: str
    user_location: Optional[str] = None
    total_consultas: int
    consultas_ec: int
    consultas_ics: int
    consultas_exitosas: int
    consultas_con_error: int
    consultas_no_encontradas: int
    promedio_tiempo_respuesta: float
    total_recaudado_consultado: Decimal
    ultima_consulta: Optional[datetime] = None
    periodo_consultado: str

class LocationStatsResponse(BaseModel):
    location: str
    total_usuarios: int
    total_consultas: int
    consultas_ec: int
    consultas_ics: int
    promedio_consultas_por_usuario: float

class GeneralStatsResponse(BaseResponse):
    total_usuarios: int
    usuarios_activos: int
    total_consultas: int
    consultas_por_tipo: Dict[str, int]
    consultas_por_resultado: Dict[str, int]
    stats_por_ubicacion: List[LocationStatsResponse]
    top_usuarios: List[UserStatsResponse]
    periodo_consultado: str

# ===== UBICACIONES =====

class AssignLocationRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    location_name: str = Field(..., min_length=2, max_length=255)
    location_code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)

    @validator('location_name')
    def validate_location_name(cls, v):
        if not v.strip():
            raise ValueError('El nombre de la ubicación no puede estar vacío')
        return v.strip()

class UserLocationResponse(BaseModel):
    id: int
    user_id: int
    location_name: str
    location_code: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    assigned_at: datetime
    assigned_by: Optional[int] = None

    class Config:
        from_attributes = True

class LocationHistoryResponse(BaseResponse):
    user_id: int
    username: str
    ubicacion_actual: Optional[UserLocationResponse] = None
    historial: List[UserLocationResponse]
    total: int

# ===== CONCILIACIÓN =====

class MatchDetail(BaseModel):
    consulta_log_id: int
    consulta_key: str
    consulta_type: Optional[str] = None
    user_id: Optional[int] = None
    username: Optional[str] = None
    user_location: Optional[str] = None
    fecha_consulta: datetime
    total_encontrado: Optional[Decimal] = None
    recaudo_id: int
    fecha_pago: datetime
    total_pagado: Decimal
    tipo_pago: str
    es_pago_mediante_app: bool

class ArticuloAmplificado(BaseModel):
    consultas: int
    pagos: int
    matches: int

class EstadisticasDuplicados(BaseModel):
    total_articulos_unicos: int
    total_articulos_duplicados: int
    total_articulos_con_multiples_pagos: int
    total_matches_amplificados: int
    articulos_amplificados: Dict[str, ArticuloAmplificado]

class MatchReportResponse(BaseModel):
    total_consultas_analizadas: int
    total_matches: int
    suma_total_encontrado: Decimal
    suma_total_pagado: Decimal
    total_pagos_mediante_app: int
    suma_total_pagado_mediante_app: Decimal
    total_pagos_previos: int
    suma_total_pagos_previos: Decimal
    matches: List[MatchDetail]
    estadisticas_duplicados: EstadisticasDuplicados
    periodo_consultado: str
    consistencia: str = "eventual_por_reporte"
    generado_en: datetime
