from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime

from app.shared.timezone import ensure_utc

class UserLogin(BaseModel):
    """Schema para login de usuario"""
    username: str = Field(..., min_length=3, description="Nombre de usuario")
    password: str = Field(..., min_length=6, description="Contraseña del usuario")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "admin",
                "password": "admin123"
            }
        }

class UserResponse(BaseModel):
    """Schema para respuesta de usuario"""
    id: int
    username: str
    correo: str
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    dni: Optional[str] = None
    gerencia: Optional[str] = None
    numero_empleado: Optional[int] = None
    role: str
    is_active: bool
    location_name: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        location = user.active_location
        return cls(
            id=user.id,
            username=user.username,
            correo=user.correo,
            nombre=user.nombre,
            apellido=user.apellido,
            telefono=user.telefono,
            dni=user.dni,
            gerencia=user.gerencia,
            numero_empleado=user.numero_empleado,
            role=user.role,
            is_active=user.is_active,
            location_name=location.location_name if location else None,
            last_login=ensure_utc(user.last_login),
            created_at=ensure_utc(user.created_at)
        )

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "username": "cajero1",
                "correo": "cajero1@mercados.hn",
                "nombre": "Juan",
                "apellido": "Pérez",
                "role": "USER",
                "is_active": True,
                "location_name": "Mercado Zonal Belén"
            }
        }

class TokenResponse(BaseModel):
    """Schema para respuesta de token"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse

class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=10)

class ChangePasswordRequest(BaseModel):
    """Cambio de contraseña del propio usuario"""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=72)

    @validator('new_password')
    def validate_new_password(cls, v, values):
        if v == values.get('current_password'):
            raise ValueError('La nueva contraseña debe ser diferente a la actual')
        return v
