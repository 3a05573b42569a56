# app/modules/consultas/calculo.py
"""
Cálculo del estado de cuenta EC / ICS.

Funciones puras sobre los registros que devuelve el repositorio: no tocan la
base ni leen el reloj, la fecha de cálculo (hoy, en hora local) se recibe.

Recargo por mora:  (impuesto + tren de aseo + bomberos [+ otros]) × días × 22% / 360
"""
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from app.config.settings import settings
from app.shared.timezone import to_local
from .schemas import DetalleMora, EstadoCuenta, Propiedad

CENT = Decimal("0.01")
TASA_RECARGO = Decimal("0.22")
DIAS_ANIO_COMERCIAL = 360
TASA_PRONTO_PAGO = Decimal("0.10")
NO_DISPONIBLE = "No disponible"

_MES_OBLIGACION = re.compile(r"^(\d{4})-(\d{1,2})")


def money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def formatear_lempiras(value: Decimal) -> str:
    return f"L {money(value):,.2f}"


@dataclass(frozen=True)
class RegistroDeuda:
    """Saldo pendiente de una obligación, ya pivotado por tipo de movimiento"""
    clave: str
    identidad: Optional[str]
    nombre: Optional[str]
    anio: int
    vencimiento: Optional[date]
    impuesto: Decimal = Decimal("0")
    tren_de_aseo: Decimal = Decimal("0")
    tasa_bomberos: Decimal = Decimal("0")
    otros: Decimal = Decimal("0")
    sector: Optional[str] = None
    colonia: Optional[str] = None
    mes: Optional[str] = None

    @property
    def base(self) -> Decimal:
        return self.impuesto + self.tren_de_aseo + self.tasa_bomberos + self.otros


@dataclass(frozen=True)
class AmnistiaConfig:
    activa: bool
    fecha_inicio: date
    fecha_fin: date
    anio_desde: int
    anio_hasta: int
    descripcion: str = "Amnistía Tributaria"

    @classmethod
    def from_settings(cls) -> "AmnistiaConfig":
        return cls(
            activa=settings.amnistia_activa,
            fecha_inicio=settings.amnistia_fecha_inicio,
            fecha_fin=settings.amnistia_fecha_fin,
            anio_desde=settings.amnistia_anio_desde,
            anio_hasta=settings.amnistia_anio_hasta,
            descripcion=settings.amnistia_descripcion
        )

    def vigente(self, hoy: date) -> bool:
        return self.activa and self.fecha_inicio <= hoy <= self.fecha_fin

    def cubre_anio(self, anio: int) -> bool:
        return self.anio_desde <= anio <= self.anio_hasta


# ===== DÍAS Y RECARGO =====

def calcular_recargo(base: Decimal, dias: int) -> Decimal:
    if dias <= 0 or base <= 0:
        return Decimal("0.00")
    return money(base * dias * TASA_RECARGO / DIAS_ANIO_COMERCIAL)


def dias_vencidos(vencimiento: Optional[date], hoy: date) -> int:
    """Días desde el vencimiento, 0 si todavía no vence"""
    if vencimiento is None:
        return 0
    return max(0, (hoy - vencimiento).days)


def dias_vencidos_ec_amnistia(anio: int, hoy: date, config: AmnistiaConfig) -> int:
    """
    Días vencidos de bienes inmuebles cuando se pide la consulta con amnistía.

    El impuesto anual vence el 31 de agosto. Con la amnistía vigente los años
    cubiertos anteriores al actual no generan días; el año en curso cuenta
    desde su vencimiento como siempre.
    """
    vencimiento = date(anio, 8, 31)
    if not config.vigente(hoy):
        return dias_vencidos(vencimiento, hoy)
    if config.cubre_anio(anio) and anio < hoy.year:
        return 0
    return dias_vencidos(vencimiento, hoy)


def dias_vencidos_ics_amnistia(anio: int, hoy: date, config: AmnistiaConfig) -> int:
    """
    Días vencidos de industria y comercio con amnistía.

    Se cuentan hasta el fin de la amnistía como máximo. El último año cubierto
    cuenta 30 días por mes transcurrido; los anteriores desde el 31 de diciembre.
    """
    if not config.cubre_anio(anio):
        return 0
    fecha_calculo = min(hoy, config.fecha_fin)
    if anio == config.anio_hasta:
        return min(fecha_calculo.month, config.fecha_fin.month) * 30
    return max(0, (fecha_calculo - date(anio, 12, 31)).days)


def descuento_pronto_pago(registros: Iterable[RegistroDeuda], hoy: date) -> Decimal:
    """
    10% sobre la base (sin recargo) de los meses del año en curso desde
    mes actual + 4 hasta diciembre.

    Solo en los primeros 10 días del mes y si quedan al menos 4 meses en el
    año. Las obligaciones de contrato no tienen descuento.
    """
    if hoy.day > 10 or 12 - hoy.month < 4:
        return Decimal("0.00")

    desde = hoy.month + 4
    base = Decimal("0")
    for registro in registros:
        mes = registro.mes or ""
        if "Obligación de Contrato" in mes:
            continue
        match = _MES_OBLIGACION.match(mes)
        if not match or int(match.group(1)) != hoy.year:
            continue
        if desde <= int(match.group(2)) <= 12:
            base += registro.base
    return money(base * TASA_PRONTO_PAGO)


# ===== EC =====

def _detalle_ec(registro: RegistroDeuda, amnistia: bool, config: AmnistiaConfig, hoy: date) -> DetalleMora:
    if amnistia:
        dias = dias_vencidos_ec_amnistia(registro.anio, hoy, config)
    else:
        dias = dias_vencidos(registro.vencimiento, hoy)
    recargo = calcular_recargo(registro.base, dias)
    return DetalleMora(
        year=registro.anio,
        impuesto=money(registro.impuesto),
        tren_de_aseo=money(registro.tren_de_aseo),
        tasa_bomberos=money(registro.tasa_bomberos),
        otros=money(registro.otros),
        recargo=recargo,
        total=money(registro.base) + recargo,
        dias=dias,
        amnistia_aplicada=(
            amnistia and config.vigente(hoy) and config.cubre_anio(registro.anio) and registro.anio < hoy.year
        )
    )


def estado_cuenta_ec(
    registros: List[RegistroDeuda],
    por_dni: bool,
    amnistia: bool,
    config: AmnistiaConfig,
    ahora: datetime
) -> EstadoCuenta:
    hoy = to_local(ahora).date()
    primero = registros[0]
    vigente = config.vigente(hoy)

    if por_dni:
        propiedades = []
        for clave, grupo in sorted(_agrupar(registros, lambda r: r.clave).items()):
            detalles = sorted(
                (_detalle_ec(r, amnistia, config, hoy) for r in grupo),
                key=lambda d: d.year
            )
            propiedades.append(Propiedad(
                clave=clave,
                colonia=grupo[0].sector or NO_DISPONIBLE,
                nombre_colonia=grupo[0].colonia or NO_DISPONIBLE,
                detalles_mora=detalles,
                total_propiedad=sum((d.total for d in detalles), Decimal("0.00"))
            ))
        detalles_mora = []
        total = sum((p.total_propiedad for p in propiedades), Decimal("0.00"))
    else:
        propiedades = []
        detalles_mora = [_detalle_ec(r, amnistia, config, hoy) for r in registros]
        total = sum((d.total for d in detalles_mora), Decimal("0.00"))

    return EstadoCuenta(
        nombre=primero.nombre or NO_DISPONIBLE,
        identidad=primero.identidad or NO_DISPONIBLE,
        tipo_consulta="dni" if por_dni else "clave_catastral",
        clave=None if por_dni else primero.clave,
        colonia=None if por_dni else primero.sector or NO_DISPONIBLE,
        nombre_colonia=None if por_dni else primero.colonia or NO_DISPONIBLE,
        detalles_mora=detalles_mora,
        propiedades=propiedades,
        total_general=total,
        total_a_pagar=total,
        total_a_pagar_texto=formatear_lempiras(total),
        amnistia_vigente=amnistia and vigente,
        fecha_fin_amnistia=config.fecha_fin if vigente else None,
        generado_en=ahora
    )


# ===== ICS =====

def _detalles_ics(registros: List[RegistroDeuda], amnistia: bool, config: AmnistiaConfig, hoy: date) -> List[DetalleMora]:
    """
    Un detalle por año. El recargo se calcula mes a mes con los días reales
    de cada obligación; con amnistía los años anteriores al último cubierto
    no llevan recargo.
    """
    detalles = []
    for anio, grupo in sorted(_agrupar(registros, lambda r: r.anio).items()):
        recargo = Decimal("0.00")
        for registro in grupo:
            if amnistia and anio < config.anio_hasta:
                continue
            recargo += calcular_recargo(registro.base, dias_vencidos(registro.vencimiento, hoy))

        dias_reales = max(dias_vencidos(r.vencimiento, hoy) for r in grupo)
        dias = dias_vencidos_ics_amnistia(anio, hoy, config) if amnistia else dias_reales
        base = sum((r.base for r in grupo), Decimal("0"))
        detalles.append(DetalleMora(
            year=anio,
            impuesto=money(sum((r.impuesto for r in grupo), Decimal("0"))),
            tren_de_aseo=money(sum((r.tren_de_aseo for r in grupo), Decimal("0"))),
            tasa_bomberos=money(sum((r.tasa_bomberos for r in grupo), Decimal("0"))),
            otros=money(sum((r.otros for r in grupo), Decimal("0"))),
            recargo=recargo,
            total=money(base) + recargo,
            dias=dias,
            amnistia_aplicada=amnistia and dias != dias_reales
        ))
    return detalles


def estado_cuenta_ics(
    registros: List[RegistroDeuda],
    por_dni: bool,
    amnistia: bool,
    config: AmnistiaConfig,
    ahora: datetime
) -> EstadoCuenta:
    hoy = to_local(ahora).date()
    primero = registros[0]
    vigente = config.vigente(hoy)
    aplicar = amnistia and vigente

    if por_dni:
        propiedades = []
        for clave, grupo in sorted(_agrupar(registros, lambda r: r.clave).items()):
            detalles = _detalles_ics(grupo, aplicar, config, hoy)
            propiedades.append(Propiedad(
                clave=clave,
                mes=grupo[0].mes,
                detalles_mora=detalles,
                total_propiedad=sum((d.total for d in detalles), Decimal("0.00"))
            ))
        detalles_mora = []
        total = sum((p.total_propiedad for p in propiedades), Decimal("0.00"))
    else:
        propiedades = []
        detalles_mora = _detalles_ics(registros, aplicar, config, hoy)
        total = sum((d.total for d in detalles_mora), Decimal("0.00"))

    descuento = descuento_pronto_pago(registros, hoy)
    total_a_pagar = total - descuento

    return EstadoCuenta(
        nombre=primero.nombre or NO_DISPONIBLE,
        identidad=primero.identidad or NO_DISPONIBLE,
        tipo_consulta="dni" if por_dni else "ics",
        clave=None if por_dni else primero.clave,
        mes=None if por_dni else primero.mes,
        detalles_mora=detalles_mora,
        propiedades=propiedades,
        total_general=total,
        descuento_pronto_pago=descuento,
        total_a_pagar=total_a_pagar,
        total_a_pagar_texto=formatear_lempiras(total_a_pagar),
        amnistia_vigente=aplicar,
        fecha_fin_amnistia=config.fecha_fin if vigente else None,
        generado_en=ahora
    )


def _agrupar(registros: Iterable[RegistroDeuda], key) -> Dict:
    grupos = {}
    for registro in registros:
        grupos.setdefault(key(registro), []).append(registro)
    return grupos
