from pydantic import BaseModel, Field, validator
from typing import Dict, Optional
import re

from app.shared.database.models import Role
from app.shared.schemas.common import BaseResponse

_CORREO = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME = re.compile(r"^[A-Za-z0-9_.\-]+$")

def _clean_correo(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().lower()
    if not _CORREO.match(v):
        raise ValueError('Correo electrónico no válido')
    return v

def _clean_username(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not _USERNAME.match(v):
        raise ValueError('Solo letras, números, punto, guion y guion bajo')
    return v

class UserCreateRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    correo: str = Field(..., max_length=255)
    nombre: str = Field(..., min_length=1, max_length=255)
    apellido: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = Role.USER
    telefono: Optional[str] = Field(None, max_length=20)
    dni: Optional[str] = Field(None, max_length=20)
    gerencia: Optional[str] = Field(None, max_length=255)
    numero_empleado: Optional[int] = Field(None, ge=1)

    @validator('correo')
    def validate_correo(cls, v):
        return _clean_correo(v)

    @validator('username')
    def validate_username(cls, v):
        return _clean_username(v)

    class Config:
        json_schema_extra = {
            "example": {
                "username": "cajero2",
                "correo": "cajero2@mercados.hn",
                "nombre": "Rosa",
                "apellido": "Martínez",
                "password": "cajero123",
                "role": "USER",
                "dni": "0801199512345",
                "gerencia": "Gerencia de Recaudación",
                "numero_empleado": 1045
            }
        }

class UserUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=100)
    correo: Optional[str] = Field(None, max_length=255)
    nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    apellido: Optional[str] = Field(None, min_length=1, max_length=255)
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    role: Optional[Role] = None
    telefono: Optional[str] = Field(None, max_length=20)
    dni: Optional[str] = Field(None, max_length=20)
    gerencia: Optional[str] = Field(None, max_length=255)
    numero_empleado: Optional[int] = Field(None, ge=1)

    @validator('correo')
    def validate_correo(cls, v):
        return _clean_correo(v)

    @validator('username')
    def validate_username(cls, v):
        return _clean_username(v)

class ResetPasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=6, max_length=72)

class UserStatsResponse(BaseResponse):
    total_users: int
    active_last_month: int
    by_role: Dict[str, int]
