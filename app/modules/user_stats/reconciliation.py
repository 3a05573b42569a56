# app/modules/user_stats/reconciliation.py
"""
Conciliación entre logs de consulta y pagos del recaudo.

Funciones puras: reciben filas ya cargadas (fechas en UTC) y devuelven el
resultado agregado. No tocan la base de datos.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from app.core.exceptions import ReconciliationInvariantError

ZERO = Decimal("0")


class TipoPago(str, Enum):
    MEDIANTE_APP = "MEDIANTE_APP"
    PREVIO = "PREVIO"


@dataclass(frozen=True)
class ConsultaRegistro:
    id: int
    consulta_key: str
    created_at: datetime
    total_encontrado: Optional[Decimal] = None
    consulta_type: Optional[str] = None
    user_id: Optional[int] = None
    username: Optional[str] = None
    user_location: Optional[str] = None


@dataclass(frozen=True)
class PagoRegistro:
    id: int
    articulo: str
    total_pagado: Decimal
    fecha_pago: datetime


@dataclass(frozen=True)
class Match:
    consulta: ConsultaRegistro
    pago: PagoRegistro
    tipo_pago: TipoPago

    @property
    def es_pago_mediante_app(self) -> bool:
        return self.tipo_pago == TipoPago.MEDIANTE_APP


@dataclass
class Conciliacion:
    total_consultas_analizadas: int = 0
    matches: List[Match] = field(default_factory=list)
    suma_total_encontrado: Decimal = ZERO
    suma_total_pagado: Decimal = ZERO
    total_pagos_mediante_app: int = 0
    suma_total_pagado_mediante_app: Decimal = ZERO
    total_pagos_previos: int = 0
    suma_total_pagos_previos: Decimal = ZERO
    total_articulos_unicos: int = 0
    total_articulos_duplicados: int = 0
    total_articulos_con_multiples_pagos: int = 0
    total_matches_amplificados: int = 0
    articulos_amplificados: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def total_matches(self) -> int:
        return len(self.matches)


def clasificar_pago(consulta: ConsultaRegistro, pago: PagoRegistro) -> TipoPago:
    """Un pago en el mismo instante o después de la consulta cuenta como hecho mediante la app"""
    if pago.fecha_pago >= consulta.created_at:
        return TipoPago.MEDIANTE_APP
    return TipoPago.PREVIO


def conciliar(
    consultas: Iterable[ConsultaRegistro],
    pagos: Iterable[PagoRegistro]
) -> Conciliacion:
    """
    Cruzar consultas y pagos por clave.

    Cada par (consulta, pago) con la misma clave produce un match, de modo que
    N consultas y M pagos de un mismo artículo dan N×M matches. Esos artículos
    quedan listados en articulos_amplificados.
    """
    consultas = [c for c in consultas if c.consulta_key]
    pagos_por_clave: Dict[str, List[PagoRegistro]] = defaultdict(list)
    for pago in pagos:
        pagos_por_clave[pago.articulo].append(pago)

    consultas_por_clave: Dict[str, List[ConsultaRegistro]] = defaultdict(list)
    for consulta in consultas:
        consultas_por_clave[consulta.consulta_key].append(consulta)

    resultado = Conciliacion(total_consultas_analizadas=len(consultas))
    consultas_con_match = {}

    for consulta in consultas:
        for pago in pagos_por_clave.get(consulta.consulta_key, ()):
            match = Match(consulta=consulta, pago=pago, tipo_pago=clasificar_pago(consulta, pago))
            resultado.matches.append(match)
            consultas_con_match[consulta.id] = consulta

            resultado.suma_total_pagado += pago.total_pagado
            if match.es_pago_mediante_app:
                resultado.total_pagos_mediante_app += 1
                resultado.suma_total_pagado_mediante_app += pago.total_pagado
            else:
                resultado.total_pagos_previos += 1
                resultado.suma_total_pagos_previos += pago.total_pagado

    resultado.suma_total_encontrado = sum(
        (c.total_encontrado or ZERO for c in consultas_con_match.values()), ZERO
    )

    resultado.total_articulos_unicos = len(consultas_por_clave)
    resultado.total_articulos_duplicados = sum(
        1 for logs in consultas_por_clave.values() if len(logs) > 1
    )
    resultado.total_articulos_con_multiples_pagos = sum(
        1 for clave in consultas_por_clave if len(pagos_por_clave.get(clave, ())) > 1
    )

    for clave, logs in consultas_por_clave.items():
        n_pagos = len(pagos_por_clave.get(clave, ()))
        n_matches = len(logs) * n_pagos
        if n_matches > 1:
            resultado.articulos_amplificados[clave] = {
                "consultas": len(logs),
                "pagos": n_pagos,
                "matches": n_matches
            }
            resultado.total_matches_amplificados += n_matches

    verificar_particion(resultado)
    return resultado


def verificar_particion(resultado: Conciliacion) -> None:
    """mediante_app + previos debe igualar el total, en cantidad y en monto"""
    if resultado.total_pagos_mediante_app + resultado.total_pagos_previos != resultado.total_matches:
        raise ReconciliationInvariantError(
            "La clasificación de pagos no cubre todos los matches",
            details={
                "total_matches": resultado.total_matches,
                "mediante_app": resultado.total_pagos_mediante_app,
                "previos": resultado.total_pagos_previos
            }
        )
    suma = resultado.suma_total_pagado_mediante_app + resultado.suma_total_pagos_previos
    if suma != resultado.suma_total_pagado:
        raise ReconciliationInvariantError(
            "La suma de pagos clasificados no coincide con el total pagado",
            details={"suma_total_pagado": str(resultado.suma_total_pagado), "suma_clasificada": str(suma)}
        )
