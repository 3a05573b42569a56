import re
from pydantic import BaseModel, Field, validator, root_validator
from typing import Optional, Dict
from decimal import Decimal
from datetime import datetime

from app.shared.database.models import EstadoFactura
from app.shared.schemas.common import BaseResponse

_MES_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

class FacturaCreateRequest(BaseModel):
    local_id: int = Field(..., gt=0, description="ID del local")
    concepto: str = Field(..., min_length=3, max_length=255, description="Concepto de la factura")
    mes: str = Field(..., description="Mes de la factura (YYYY-MM)")
    anio: int = Field(..., ge=2000, le=9999)
    monto: Decimal = Field(..., gt=0, description="Monto de la factura")
    fecha_vencimiento: Optional[datetime] = Field(None, description="Si no se envía: último día del mes siguiente")
    observaciones: Optional[str] = Field(None, max_length=1000)

    @validator('mes')
    def validate_mes(cls, v):
        if not _MES_PATTERN.match(v):
            raise ValueError('El mes debe tener formato YYYY-MM')
        return v

    @root_validator(skip_on_failure=True)
    def validate_mes_anio(cls, values):
        mes, anio = values.get('mes'), values.get('anio')
        if mes and anio and int(mes[:4]) != anio:
            raise ValueError('El año del mes no coincide con anio')
        return values

    class Config:
        json_schema_extra = {
            "example": {
                "local_id": 1,
                "concepto": "Cuota mensual Enero 2025",
                "mes": "2025-01",
                "anio": 2025,
                "monto": 150.0
            }
        }

class FacturaMasivaRequest(BaseModel):
    mercado_id: int = Field(..., gt=0)
    mes: str = Field(..., description="Mes a facturar (YYYY-MM)")
    anio: int = Field(..., ge=2000, le=9999)

    @validator('mes')
    def validate_mes(cls, v):
        if not _MES_PATTERN.match(v):
            raise ValueError('El mes debe tener formato YYYY-MM')
        return v

    @root_validator(skip_on_failure=True)
    def validate_mes_anio(cls, values):
        mes, anio = values.get('mes'), values.get('anio')
        if mes and anio and int(mes[:4]) != anio:
            raise ValueError('El año del mes no coincide con anio')
        return values

class AnularFacturaRequest(BaseModel):
    razon_anulacion: str = Field(..., min_length=10, max_length=500, description="Razón de la anulación")

    @validator('razon_anulacion')
    def validate_razon(cls, v):
        if len(v.strip()) < 10:
            raise ValueError('La razón debe tener al menos 10 caracteres para ser descriptiva')
        return v.strip()

class FacturaResponse(BaseModel):
    id: int
    correlativo: str
    concepto: str
    mes: str
    anio: int
    monto: Decimal
    estado: str
    fecha_vencimiento: datetime
    fecha_pago: Optional[datetime] = None
    fecha_anulacion: Optional[datetime] = None
    razon_anulacion: Optional[str] = None
    observaciones: Optional[str] = None
    mercado_nombre: Optional[str] = None
    local_nombre: Optional[str] = None
    local_numero: Optional[str] = None
    propietario_nombre: Optional[str] = None
    propietario_dni: Optional[str] = None
    local_id: int
    created_by_user_id: Optional[int] = None
    created_at: datetime

class FacturaMasivaResponse(BaseResponse):
    count: int
    mercado_id: int
    mes: str
    anio: int

class FacturaStatsResponse(BaseResponse):
    total_facturas: int
    por_estado: Dict[str, int]
    monto_total: Decimal
    monto_recaudado: Decimal
    porcentaje_recaudacion: float

class VencidasResponse(BaseResponse):
    actualizadas: int

class FacturaSearchParams(BaseModel):
    estado: Optional[EstadoFactura] = None
    local_id: Optional[int] = None
    mercado_id: Optional[int] = None
    anio: Optional[int] = None
    mes: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
