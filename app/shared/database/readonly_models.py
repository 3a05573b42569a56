# app/shared/database/readonly_models.py
"""
Tablas del sistema tributario municipal que se leen para armar los estados
de cuenta EC (bienes inmuebles) e ICS (industria y comercio).

El esquema pertenece al sistema tributario: esta API nunca lo crea ni lo
modifica, por eso usa su propio declarative_base separado de Base.
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import declarative_base

ReadonlyBase = declarative_base()

# Productos facturables
PRODUCTO_BIENES_INMUEBLES = 15
PRODUCTO_INDUSTRIA_COMERCIO = 13


class Actor(ReadonlyBase):
    """Contribuyente"""
    __tablename__ = "MI_ACTOR"

    id = Column("ID_ACTOR", Integer, primary_key=True)
    identificacion = Column("TXT_IDENTIFICACION", String(50), index=True)
    primer_nombre = Column("TXT_PRIMER_NOMBRE", String(100))
    segundo_nombre = Column("TXT_SEGUNDO_NOMBRE", String(100))
    primer_apellido = Column("TXT_PRIMER_APELLIDO", String(100))
    segundo_apellido = Column("TXT_SEGUNDO_APELLIDO", String(100))


class HistoricoArticulo(ReadonlyBase):
    """Relación contribuyente - artículo. Solo la fila activa vale"""
    __tablename__ = "MI_HISTORICO_ARTICULO"

    id = Column("ID", Integer, primary_key=True)
    actor_id = Column("ID_ACTOR", Integer, nullable=False)
    articulo_id = Column("ID_ARTICULO", Integer, nullable=False)
    activo = Column("SN_ACTIVO", Boolean, default=True)


class Articulo(ReadonlyBase):
    """Inmueble o empresa. NUM_DOCUMENTO es la clave catastral o el número ICS"""
    __tablename__ = "MI_ARTICULO"

    id = Column("ID_ARTICULO", Integer, primary_key=True)
    num_documento = Column("NUM_DOCUMENTO", String(50), index=True)
    activo = Column("SN_ACTIVO", Boolean, default=True)


class Facturable(ReadonlyBase):
    __tablename__ = "MI_FACTURABLE"

    id = Column("ID_FACTURABLE", Integer, primary_key=True)
    articulo_id = Column("ID_ARTICULO", Integer, nullable=False)
    producto_id = Column("ID_PRODUCTO", Integer, nullable=False)


class Obligacion(ReadonlyBase):
    """Obligación anual (EC) o mensual (ICS, TXT_NOMBRE = 'AAAA-MM')"""
    __tablename__ = "MI_OBLIGACION"

    id = Column("ID_OBLIGACION", Integer, primary_key=True)
    facturable_id = Column("ID_FACTURABLE", Integer, nullable=False)
    anio = Column("ANIO", Integer, nullable=False)
    nombre = Column("TXT_NOMBRE", String(100))
    fecha_vencimiento = Column("FEC_VENCIMIENTO", DateTime)


class Movimiento(ReadonlyBase):
    __tablename__ = "MI_MOVIMIENTO"

    id = Column("ID_MOVIMIENTO", Integer, primary_key=True)
    obligacion_id = Column("ID_OBLIGACION", Integer, nullable=False)
    tipo_movimiento_id = Column("ID_TIPO_MOVIMIENTO", Integer, nullable=False)
    balance = Column("BALANCE", Numeric(14, 2))


class TipoMovimiento(ReadonlyBase):
    __tablename__ = "MI_TIPO_MOVIMIENTO"

    id = Column("ID_TIPO_MOVIMIENTO", Integer, primary_key=True)
    nombre = Column("TXT_NOMBRE", String(100))


class BienInmueble(ReadonlyBase):
    __tablename__ = "MI_BIEN_INMUEBLE"

    articulo_id = Column("ID_ARTICULO", Integer, primary_key=True)
    direccion_id = Column("ID_DIRECCION", Integer)


class Direccion(ReadonlyBase):
    __tablename__ = "MI_DIRECCION"

    id = Column("ID_DIRECCION", Integer, primary_key=True)
    codigo_postal_id = Column("ID_CODIGO_POSTAL", Integer)


class CodigoPostal(ReadonlyBase):
    __tablename__ = "MI_CODIGO_POSTAL"

    id = Column("ID_CODIGO_POSTAL", Integer, primary_key=True)
    desarrollo_vivienda_id = Column("ID_DESARROLLO_VIVIENDA", Integer)


class DesarrolloVivienda(ReadonlyBase):
    """Colonia"""
    __tablename__ = "MI_DESARROLLO_VIVIENDA"

    id = Column("ID_DESARROLLO_VIVIENDA", Integer, primary_key=True)
    sector_id = Column("ID_SECTOR", String(20))
    nombre = Column("TXT_NOMBRE", String(150))


class SucursalLicencia(ReadonlyBase):
    """Licencia de operación de una empresa ICS"""
    __tablename__ = "MI_SUCURSAL_LICENCIA"

    id = Column("ID_SUCURSAL_LICENCIA", Integer, primary_key=True)
    articulo_id = Column("ID_ARTICULO", Integer, nullable=False)
    activo = Column("SN_ACTIVO", Boolean, default=True)
