from pydantic import BaseModel, Field, validator
from typing import Optional
from decimal import Decimal
from datetime import datetime

from app.shared.schemas.common import BaseResponse

class MercadoCreateRequest(BaseModel):
    nombre_mercado: str = Field(..., min_length=3, max_length=255, description="Nombre del mercado")
    direccion: str = Field(..., min_length=3, max_length=500, description="Dirección del mercado")
    latitud: Decimal = Field(..., ge=-90, le=90, description="Latitud geográfica")
    longitud: Decimal = Field(..., ge=-180, le=180, description="Longitud geográfica")
    descripcion: Optional[str] = Field(None, max_length=2000)

    @validator('nombre_mercado', 'direccion')
    def strip_text(cls, v):
        if not v.strip():
            raise ValueError('El campo no puede estar vacío')
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "nombre_mercado": "Mercado Zonal Belén",
                "direccion": "Barrio Belén, Comayagüela",
                "latitud": 14.0818,
                "longitud": -87.2068,
                "descripcion": "Mercado municipal con 300 puestos"
            }
        }

class MercadoUpdateRequest(BaseModel):
    nombre_mercado: Optional[str] = Field(None, min_length=3, max_length=255)
    direccion: Optional[str] = Field(None, min_length=3, max_length=500)
    latitud: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitud: Optional[Decimal] = Field(None, ge=-180, le=180)
    descripcion: Optional[str] = Field(None, max_length=2000)

class MercadoResponse(BaseModel):
    id: int
    nombre_mercado: str
    direccion: str
    latitud: Decimal
    longitud: Decimal
    descripcion: Optional[str] = None
    is_active: bool
    total_locales: int = 0
    locales_activos: int = 0
    created_at: datetime
    updated_at: datetime

class MercadoStatsResponse(BaseResponse):
    total_mercados: int
    total_locales: int
    locales_ocupados: int
    locales_libres: int
    ocupacion_percentage: float
