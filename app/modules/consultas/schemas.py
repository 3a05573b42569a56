from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from app.shared.schemas.common import BaseResponse

class ConsultaECParams(BaseModel):
    claveCatastral: Optional[str] = Field(None, max_length=50, description="Clave catastral del inmueble")
    dni: Optional[str] = Field(None, max_length=50, description="DNI del contribuyente")

class ConsultaICSParams(BaseModel):
    ics: Optional[str] = Field(None, max_length=50, description="Número de ICS")
    dni: Optional[str] = Field(None, max_length=50, description="DNI del contribuyente")

# ===== ESTADO DE CUENTA =====

class DetalleMora(BaseModel):
    """Deuda de un año: montos base, recargo y días vencidos usados"""
    year: int
    impuesto: Decimal
    tren_de_aseo: Decimal
    tasa_bomberos: Decimal
    otros: Decimal = Decimal("0.00")
    recargo: Decimal
    total: Decimal
    dias: int
    amnistia_aplicada: bool = False

class Propiedad(BaseModel):
    """Inmueble (EC) o empresa (ICS) cuando se consulta por DNI"""
    clave: str
    colonia: Optional[str] = None
    nombre_colonia: Optional[str] = None
    mes: Optional[str] = None
    detalles_mora: List[DetalleMora] = []
    total_propiedad: Decimal

class EstadoCuenta(BaseModel):
    nombre: str
    identidad: str
    tipo_consulta: str = Field(..., description="clave_catastral, ics o dni")
    clave: Optional[str] = None
    colonia: Optional[str] = None
    nombre_colonia: Optional[str] = None
    mes: Optional[str] = None
    detalles_mora: List[DetalleMora] = []
    propiedades: List[Propiedad] = []
    total_general: Decimal
    descuento_pronto_pago: Decimal = Decimal("0.00")
    total_a_pagar: Decimal
    total_a_pagar_texto: str
    amnistia_vigente: bool = False
    fecha_fin_amnistia: Optional[date] = None
    generado_en: datetime

class ConsultaResponse(BaseResponse):
    consulta_type: str
    consulta_subtype: str
    resultado: str
    consulta_key: str
    total_encontrado: Optional[Decimal] = None
    duracion_ms: int
    desde_cache: bool = False
    data: Optional[EstadoCuenta] = None
