from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.modules.consultas.calculo import (
    AmnistiaConfig, RegistroDeuda, calcular_recargo, descuento_pronto_pago, dias_vencidos,
    dias_vencidos_ec_amnistia, dias_vencidos_ics_amnistia, estado_cuenta_ec, estado_cuenta_ics,
    formatear_lempiras
)

AMNISTIA = AmnistiaConfig(
    activa=True,
    fecha_inicio=date(2025, 1, 1),
    fecha_fin=date(2025, 9, 30),
    anio_desde=2016,
    anio_hasta=2025,
)
SIN_AMNISTIA = AmnistiaConfig(
    activa=False,
    fecha_inicio=date(2025, 1, 1),
    fecha_fin=date(2025, 9, 30),
    anio_desde=2016,
    anio_hasta=2025,
)

# 10 de mayo de 2025, 12:00 en Tegucigalpa
MAYO = datetime(2025, 5, 10, 18, 0, tzinfo=timezone.utc)
# 5 de marzo de 2025, 12:00 en Tegucigalpa
MARZO = datetime(2025, 3, 5, 18, 0, tzinfo=timezone.utc)


def ec(clave, anio, impuesto="0", tren="0", bomberos="0", vencimiento=None):
    return RegistroDeuda(
        clave=clave,
        identidad="0801199000111",
        nombre="Juan Carlos Pérez López",
        anio=anio,
        vencimiento=vencimiento or date(anio, 8, 31),
        impuesto=Decimal(impuesto),
        tren_de_aseo=Decimal(tren),
        tasa_bomberos=Decimal(bomberos),
        sector="K-01",
        colonia="Colonia Kennedy",
    )


def ics(mes, vencimiento, impuesto="0", otros="0", empresa="ICS-100"):
    return RegistroDeuda(
        clave=empresa,
        identidad="0801199000111",
        nombre="Comercial La Esperanza",
        anio=int(mes[:4]),
        vencimiento=vencimiento,
        impuesto=Decimal(impuesto),
        otros=Decimal(otros),
        mes=mes,
    )


# ===== RECARGO Y DÍAS =====

@pytest.mark.parametrize("base,dias,esperado", [
    ("1000.00", 360, "220.00"),
    ("100.00", 45, "2.75"),
    ("1000.00", 618, "377.67"),
    ("1000.00", 0, "0.00"),
    ("0.00", 100, "0.00"),
    ("500.00", -3, "0.00"),
])
def test_calcular_recargo(base, dias, esperado):
    assert calcular_recargo(Decimal(base), dias) == Decimal(esperado)


def test_dias_vencidos():
    hoy = date(2025, 5, 10)
    assert dias_vencidos(date(2025, 5, 1), hoy) == 9
    assert dias_vencidos(date(2025, 8, 31), hoy) == 0
    assert dias_vencidos(None, hoy) == 0


def test_amnistia_vigencia_y_cobertura():
    assert AMNISTIA.vigente(date(2025, 5, 10))
    assert AMNISTIA.vigente(date(2025, 9, 30))
    assert not AMNISTIA.vigente(date(2025, 10, 1))
    assert not SIN_AMNISTIA.vigente(date(2025, 5, 10))
    assert AMNISTIA.cubre_anio(2016) and AMNISTIA.cubre_anio(2025)
    assert not AMNISTIA.cubre_anio(2015)


def test_dias_ec_con_amnistia_vigente():
    hoy = date(2025, 5, 10)
    # años cubiertos anteriores al actual no generan días
    assert dias_vencidos_ec_amnistia(2020, hoy, AMNISTIA) == 0
    # el año en curso todavía no vence (31 de agosto)
    assert dias_vencidos_ec_amnistia(2025, hoy, AMNISTIA) == 0
    # fuera de cobertura se cuenta desde el 31 de agosto
    assert dias_vencidos_ec_amnistia(2015, hoy, AMNISTIA) == (hoy - date(2015, 8, 31)).days


def test_dias_ec_sin_amnistia_vigente_cuenta_normal():
    hoy = date(2025, 10, 15)
    assert dias_vencidos_ec_amnistia(2020, hoy, AMNISTIA) == (hoy - date(2020, 8, 31)).days
    assert dias_vencidos_ec_amnistia(2025, hoy, AMNISTIA) == 45
    assert dias_vencidos_ec_amnistia(2020, date(2025, 5, 10), SIN_AMNISTIA) > 0


def test_dias_ics_con_amnistia():
    assert dias_vencidos_ics_amnistia(2025, date(2025, 5, 10), AMNISTIA) == 150
    assert dias_vencidos_ics_amnistia(2024, date(2025, 5, 10), AMNISTIA) == 130
    assert dias_vencidos_ics_amnistia(2014, date(2025, 5, 10), AMNISTIA) == 0
    # después del fin de la amnistía se cuenta hasta el fin
    assert dias_vencidos_ics_amnistia(2025, date(2025, 11, 20), AMNISTIA) == 270
    assert dias_vencidos_ics_amnistia(2024, date(2025, 11, 20), AMNISTIA) == 273


# ===== DESCUENTO POR PRONTO PAGO =====

def test_descuento_pronto_pago_meses_desde_actual_mas_cuatro():
    registros = [
        ics("2025-06", date(2025, 7, 10), impuesto="100.00"),
        ics("2025-07", date(2025, 8, 10), impuesto="150.00", otros="50.00"),
        ics("2025-12", date(2026, 1, 10), impuesto="50.00"),
        ics("2024-09", date(2024, 10, 10), impuesto="300.00"),
        ics("Obligación de Contrato 2025-08", date(2025, 9, 10), impuesto="999.00"),
    ]

    assert descuento_pronto_pago(registros, date(2025, 3, 5)) == Decimal("25.00")


@pytest.mark.parametrize("hoy", [date(2025, 3, 15), date(2025, 9, 5), date(2025, 12, 1)])
def test_descuento_pronto_pago_fuera_de_plazo(hoy):
    registros = [ics("2025-12", date(2026, 1, 10), impuesto="100.00")]

    assert descuento_pronto_pago(registros, hoy) == Decimal("0.00")


# ===== EC =====

def test_estado_cuenta_ec_por_clave():
    registros = [
        ec("0801-2019-00123", 2023, impuesto="800.00", tren="150.00", bomberos="50.00"),
        ec("0801-2019-00123", 2025, impuesto="500.00"),
    ]

    estado = estado_cuenta_ec(registros, False, False, SIN_AMNISTIA, MAYO)

    assert estado.tipo_consulta == "clave_catastral"
    assert estado.clave == "0801-2019-00123"
    assert estado.colonia == "K-01"
    assert estado.nombre_colonia == "Colonia Kennedy"
    antiguo, actual = estado.detalles_mora
    assert antiguo.dias == 618
    assert antiguo.recargo == Decimal("377.67")
    assert antiguo.total == Decimal("1377.67")
    assert actual.dias == 0
    assert actual.total == Decimal("500.00")
    assert estado.total_general == Decimal("1877.67")
    assert estado.total_a_pagar == estado.total_general
    assert estado.total_a_pagar_texto == "L 1,877.67"
    assert estado.amnistia_vigente is False
    assert estado.fecha_fin_amnistia is None
    assert estado.propiedades == []


def test_estado_cuenta_ec_con_amnistia_quita_recargo_de_anios_cubiertos():
    registros = [
        ec("0801-2019-00123", 2023, impuesto="800.00", tren="150.00", bomberos="50.00"),
        ec("0801-2019-00123", 2025, impuesto="500.00"),
    ]

    estado = estado_cuenta_ec(registros, False, True, AMNISTIA, MAYO)

    antiguo, actual = estado.detalles_mora
    assert antiguo.dias == 0
    assert antiguo.recargo == Decimal("0.00")
    assert antiguo.amnistia_aplicada is True
    assert actual.amnistia_aplicada is False
    assert estado.total_general == Decimal("1500.00")
    assert estado.amnistia_vigente is True
    assert estado.fecha_fin_amnistia == date(2025, 9, 30)


def test_estado_cuenta_ec_amnistia_pedida_sin_vigencia_no_aplica():
    registros = [ec("0801-2019-00123", 2023, impuesto="1000.00")]

    estado = estado_cuenta_ec(registros, False, True, SIN_AMNISTIA, MAYO)

    assert estado.amnistia_vigente is False
    assert estado.detalles_mora[0].amnistia_aplicada is False
    assert estado.detalles_mora[0].recargo > 0


def test_estado_cuenta_ec_por_dni_agrupa_por_propiedad():
    registros = [
        ec("B-0002", 2024, impuesto="100.00", vencimiento=date(2025, 8, 31)),
        ec("A-0001", 2025, impuesto="200.00"),
        ec("A-0001", 2024, impuesto="300.00", vencimiento=date(2025, 8, 31)),
    ]

    estado = estado_cuenta_ec(registros, True, False, SIN_AMNISTIA, MAYO)

    assert estado.tipo_consulta == "dni"
    assert estado.clave is None
    assert estado.detalles_mora == []
    assert [p.clave for p in estado.propiedades] == ["A-0001", "B-0002"]
    assert [d.year for d in estado.propiedades[0].detalles_mora] == [2024, 2025]
    assert estado.propiedades[0].total_propiedad == Decimal("500.00")
    assert estado.total_general == Decimal("600.00")


# ===== ICS =====

def test_estado_cuenta_ics_recargo_mensual_y_descuento():
    registros = [
        ics("2024-12", date(2025, 1, 10), impuesto="100.00"),
        ics("2025-08", date(2025, 9, 10), impuesto="150.00", otros="50.00"),
    ]

    estado = estado_cuenta_ics(registros, False, False, SIN_AMNISTIA, MARZO)

    assert estado.tipo_consulta == "ics"
    assert estado.clave == "ICS-100"
    assert estado.mes == "2024-12"
    d2024, d2025 = estado.detalles_mora
    assert d2024.dias == 54
    assert d2024.recargo == Decimal("3.30")
    assert d2024.total == Decimal("103.30")
    assert d2025.otros == Decimal("50.00")
    assert d2025.total == Decimal("200.00")
    assert estado.total_general == Decimal("303.30")
    assert estado.descuento_pronto_pago == Decimal("20.00")
    assert estado.total_a_pagar == Decimal("283.30")
    assert estado.total_a_pagar_texto == "L 283.30"


def test_estado_cuenta_ics_con_amnistia():
    registros = [
        ics("2024-12", date(2025, 1, 10), impuesto="100.00"),
        ics("2025-08", date(2025, 9, 10), impuesto="200.00"),
    ]

    estado = estado_cuenta_ics(registros, False, True, AMNISTIA, MARZO)

    d2024, d2025 = estado.detalles_mora
    assert d2024.recargo == Decimal("0.00")
    assert d2024.dias == 64
    assert d2024.amnistia_aplicada is True
    assert estado.total_general == Decimal("300.00")
    assert estado.total_a_pagar == Decimal("280.00")
    assert estado.amnistia_vigente is True


def test_estado_cuenta_ics_por_dni_agrupa_por_empresa():
    registros = [
        ics("2025-01", date(2025, 2, 10), impuesto="10.00", empresa="ICS-200"),
        ics("2025-01", date(2025, 2, 10), impuesto="20.00", empresa="ICS-100"),
    ]

    estado = estado_cuenta_ics(registros, True, False, SIN_AMNISTIA, MARZO)

    assert estado.tipo_consulta == "dni"
    assert [p.clave for p in estado.propiedades] == ["ICS-100", "ICS-200"]
    assert estado.propiedades[0].mes == "2025-01"


def test_formatear_lempiras():
    assert formatear_lempiras(Decimal("1234567.891")) == "L 1,234,567.89"
    assert formatear_lempiras(Decimal("0")) == "L 0.00"
