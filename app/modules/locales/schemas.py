from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, List, Any
from decimal import Decimal
from datetime import datetime

from app.shared.database.models import EstadoLocal, TipoLocal
from app.shared.schemas.common import BaseResponse

class LocalCreateRequest(BaseModel):
    mercado_id: int = Field(..., gt=0, description="ID del mercado")
    nombre_local: Optional[str] = Field(None, max_length=255, description="Nombre comercial")
    numero_local: Optional[str] = Field(None, max_length=50, description="Número del local, p.ej. A-001")
    permiso_operacion: Optional[str] = Field(None, max_length=100)
    tipo_local: Optional[TipoLocal] = None
    direccion_local: Optional[str] = Field(None, max_length=500)
    propietario: Optional[str] = Field(None, max_length=255)
    dni_propietario: Optional[str] = Field(None, max_length=30)
    telefono: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    monto_mensual: Decimal = Field(Decimal("0"), ge=0, description="Cuota mensual")
    estado_local: EstadoLocal = EstadoLocal.PENDIENTE
    latitud: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitud: Optional[Decimal] = Field(None, ge=-180, le=180)

    @validator('numero_local', 'nombre_local')
    def strip_optional(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None

class LocalUpdateRequest(BaseModel):
    nombre_local: Optional[str] = Field(None, max_length=255)
    numero_local: Optional[str] = Field(None, max_length=50)
    permiso_operacion: Optional[str] = Field(None, max_length=100)
    tipo_local: Optional[TipoLocal] = None
    direccion_local: Optional[str] = Field(None, max_length=500)
    propietario: Optional[str] = Field(None, max_length=255)
    dni_propietario: Optional[str] = Field(None, max_length=30)
    telefono: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    monto_mensual: Optional[Decimal] = Field(None, ge=0)
    latitud: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitud: Optional[Decimal] = Field(None, ge=-180, le=180)

class LocalResponse(BaseModel):
    id: int
    mercado_id: int
    mercado_nombre: Optional[str] = None
    nombre_local: Optional[str] = None
    numero_local: Optional[str] = None
    permiso_operacion: Optional[str] = None
    tipo_local: Optional[str] = None
    direccion_local: Optional[str] = None
    propietario: Optional[str] = None
    dni_propietario: Optional[str] = None
    telefono: Optional[str] = None
    email: Optional[str] = None
    monto_mensual: Decimal
    estado_local: str
    created_at: datetime
    updated_at: datetime

class LocalStatsResponse(BaseResponse):
    total_locales: int
    por_estado: Dict[str, int]
    por_tipo: Dict[str, int]
    monto_mensual_activos: Decimal

class LocalDetailStatsResponse(BaseResponse):
    local_id: int
    total_facturas: int
    facturas_por_estado: Dict[str, int]
    total_pagado: Decimal
    total_pendiente: Decimal
    ultima_fecha_pago: Optional[datetime] = None
    facturas_recientes: List[Dict[str, Any]]
