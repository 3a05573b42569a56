# app/shared/database/models.py
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    Numeric, ForeignKey, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship

from app.shared.timezone import utc_now

Base = declarative_base()


# =====================================================
# ENUMS
# =====================================================

class Role(str, Enum):
    ADMIN = "ADMIN"
    USER_ADMIN = "USER_ADMIN"
    MARKET = "MARKET"
    USER = "USER"


class EstadoLocal(str, Enum):
    ACTIVO = "ACTIVO"
    INACTIVO = "INACTIVO"
    SUSPENDIDO = "SUSPENDIDO"
    PENDIENTE = "PENDIENTE"


class TipoLocal(str, Enum):
    COMIDA = "COMIDA"
    ROPA = "ROPA"
    ABARROTES = "ABARROTES"
    CARNICERIA = "CARNICERIA"
    VERDURAS = "VERDURAS"
    SERVICIOS = "SERVICIOS"
    OTROS = "OTROS"


class EstadoFactura(str, Enum):
    PENDIENTE = "PENDIENTE"
    PAGADA = "PAGADA"
    VENCIDA = "VENCIDA"
    ANULADA = "ANULADA"


class ConsultaType(str, Enum):
    EC = "EC"
    ICS = "ICS"


class ConsultaSubtype(str, Enum):
    NORMAL = "normal"
    AMNISTIA = "amnistia"


class ConsultaResultado(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    NOT_FOUND = "NOT_FOUND"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    ANULAR = "ANULAR"
    PAGAR = "PAGAR"
    ACTIVAR = "ACTIVAR"
    RESET_PASSWORD = "RESET_PASSWORD"
    CAMBIAR_PASSWORD = "CAMBIAR_PASSWORD"
    GENERAR_REPORTE = "GENERAR_REPORTE"


def _enum_values(enum_cls) -> str:
    return ", ".join(f"'{member.value}'" for member in enum_cls)


# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Mixin que agrega campos created_at y updated_at (UTC)"""
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


# =====================================================
# USUARIOS
# =====================================================

class User(Base, TimestampMixin):
    """Modelo de Usuario"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    correo = Column(String(255), nullable=False, unique=True)
    nombre = Column(String(255), nullable=False)
    apellido = Column(String(255), nullable=False)
    telefono = Column(String(20))
    dni = Column(String(20), unique=True)
    gerencia = Column(String(255))
    numero_empleado = Column(Integer, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=Role.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(f"role IN ({_enum_values(Role)})", name="ck_users_role"),
    )

    # Relationships
    user_locations = relationship("UserLocation", back_populates="user", foreign_keys="UserLocation.user_id")
    consulta_logs = relationship("ConsultaLog", back_populates="user")
    audit_logs = relationship("AuditLog", back_populates="user")

    @property
    def full_name(self):
        return f"{self.nombre} {self.apellido}"

    @property
    def active_location(self):
        for location in self.user_locations:
            if location.is_active:
                return location
        return None


class UserLocation(Base, TimestampMixin):
    """Ubicación asignada a un usuario. Solo una activa a la vez"""
    __tablename__ = "user_locations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    location_name = Column(String(255), nullable=False, index=True)
    location_code = Column(String(50))
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    assigned_by = Column(Integer, ForeignKey("users.id"))

    # Relationships
    user = relationship("User", back_populates="user_locations", foreign_keys=[user_id])


# =====================================================
# MERCADOS Y LOCALES
# =====================================================

class Mercado(Base, TimestampMixin):
    """Modelo de Mercado municipal"""
    __tablename__ = "mercados"

    id = Column(Integer, primary_key=True, index=True)
    nombre_mercado = Column(String(255), nullable=False, unique=True)
    direccion = Column(String(500), nullable=False)
    latitud = Column(Numeric(10, 7), nullable=False)
    longitud = Column(Numeric(10, 7), nullable=False)
    descripcion = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    locales = relationship("Local", back_populates="mercado")


class Local(Base, TimestampMixin):
    """Modelo de Local (puesto) dentro de un mercado"""
    __tablename__ = "locales"

    id = Column(Integer, primary_key=True, index=True)
    mercado_id = Column(Integer, ForeignKey("mercados.id"), nullable=False, index=True)
    nombre_local = Column(String(255))
    numero_local = Column(String(50))
    permiso_operacion = Column(String(100))
    tipo_local = Column(String(20))
    direccion_local = Column(String(500))
    propietario = Column(String(255))
    dni_propietario = Column(String(30))
    telefono = Column(String(30))
    email = Column(String(255))
    monto_mensual = Column(Numeric(12, 2), nullable=False, default=0)
    estado_local = Column(String(20), nullable=False, default=EstadoLocal.PENDIENTE.value, index=True)
    latitud = Column(Numeric(10, 7))
    longitud = Column(Numeric(10, 7))

    __table_args__ = (
        UniqueConstraint('mercado_id', 'numero_local', name='locales_numero_unico_por_mercado'),
        CheckConstraint(f"estado_local IN ({_enum_values(EstadoLocal)})", name="ck_locales_estado"),
    )

    # Relationships
    mercado = relationship("Mercado", back_populates="locales")
    facturas = relationship("Factura", back_populates="local")


# =====================================================
# FACTURAS
# =====================================================

class Factura(Base, TimestampMixin):
    """Modelo de Factura mensual de un local"""
    __tablename__ = "facturas"

    id = Column(Integer, primary_key=True, index=True)
    correlativo = Column(String(20), nullable=False, unique=True)
    concepto = Column(String(255), nullable=False)
    mes = Column(String(7), nullable=False)
    anio = Column(Integer, nullable=False)
    monto = Column(Numeric(12, 2), nullable=False)
    estado = Column(String(20), nullable=False, default=EstadoFactura.PENDIENTE.value, index=True)
    fecha_vencimiento = Column(DateTime(timezone=True), nullable=False)
    fecha_pago = Column(DateTime(timezone=True), index=True)
    fecha_anulacion = Column(DateTime(timezone=True))
    razon_anulacion = Column(Text)
    observaciones = Column(Text)

    # Datos copiados al momento de emitir
    mercado_nombre = Column(String(255))
    local_nombre = Column(String(255))
    local_numero = Column(String(50))
    propietario_nombre = Column(String(255))
    propietario_dni = Column(String(30))

    local_id = Column(Integer, ForeignKey("locales.id"), nullable=False, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"))
    anulado_por_user_id = Column(Integer, ForeignKey("users.id"))

    __table_args__ = (
        UniqueConstraint('local_id', 'mes', 'anio', name='facturas_una_por_local_mes'),
        CheckConstraint(f"estado IN ({_enum_values(EstadoFactura)})", name="ck_facturas_estado"),
    )

    # Relationships
    local = relationship("Local", back_populates="facturas")
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    anulado_por = relationship("User", foreign_keys=[anulado_por_user_id])


# =====================================================
# LOGS DE CONSULTA Y RECAUDO
# =====================================================

class ConsultaLog(Base):
    """Registro inmutable de cada consulta externa (EC / ICS)"""
    __tablename__ = "consulta_logs"

    id = Column(Integer, primary_key=True, index=True)
    consulta_type = Column(String(10), nullable=False)
    consulta_subtype = Column(String(20), nullable=False, default=ConsultaSubtype.NORMAL.value)
    parametros = Column(Text, nullable=False, default="{}")
    consulta_key = Column(String(50), index=True)
    resultado = Column(String(20), nullable=False)
    total_encontrado = Column(Numeric(14, 2))
    error_message = Column(Text)
    ip = Column(String(64))
    user_agent = Column(String(500))
    duracion_ms = Column(Integer)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_location = Column(String(255))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    __table_args__ = (
        CheckConstraint(f"consulta_type IN ({_enum_values(ConsultaType)})", name="ck_consulta_logs_type"),
        CheckConstraint(f"consulta_subtype IN ({_enum_values(ConsultaSubtype)})", name="ck_consulta_logs_subtype"),
        CheckConstraint(f"resultado IN ({_enum_values(ConsultaResultado)})", name="ck_consulta_logs_resultado"),
        Index("ix_consulta_logs_created_key", "created_at", "consulta_key"),
    )

    # Relationships
    user = relationship("User", back_populates="consulta_logs")


class Recaudo(Base):
    """Pago registrado en el libro de recaudo (solo lectura)"""
    __tablename__ = "recaudos"

    id = Column(Integer, primary_key=True, index=True)
    articulo = Column(String(50), nullable=False, index=True)
    total_pagado = Column(Numeric(14, 2), nullable=False)
    fecha_pago = Column(DateTime(timezone=True), nullable=False)


# =====================================================
# AUDITORÍA
# =====================================================

class AuditLog(Base):
    """Bitácora de acciones. Solo se inserta"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    accion = Column(String(20), nullable=False, index=True)
    tabla = Column(String(50), nullable=False, index=True)
    registro_id = Column(String(50))
    datos_anteriores = Column(Text)
    datos_nuevos = Column(Text)
    descripcion = Column(Text)
    ip = Column(String(64))
    user_agent = Column(String(500))
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    # Relationships
    user = relationship("User", back_populates="audit_logs")
