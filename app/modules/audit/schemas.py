from pydantic import BaseModel, Field
from typing import Any, Optional, Dict, List
from datetime import datetime

from app.shared.database.models import AuditAction
from app.shared.schemas.common import BaseResponse

class AuditLogResponse(BaseModel):
    id: int
    accion: str
    tabla: str
    registro_id: Optional[str] = None
    datos_anteriores: Optional[str] = None
    datos_nuevos: Optional[str] = None
    descripcion: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    user_id: int
    username: Optional[str] = None
    created_at: datetime

class AuditSearchParams(BaseModel):
    user_id: Optional[int] = None
    tabla: Optional[str] = None
    accion: Optional[AuditAction] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)

class AuditStatsResponse(BaseResponse):
    total_registros: int
    por_accion: Dict[str, int]
    por_tabla: Dict[str, int]
    usuarios_mas_activos: List[Dict[str, Any]]
