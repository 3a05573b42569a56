# app/shared/timezone.py
"""
Manejo de zonas horarias.

Todas las fechas se guardan y se comparan en UTC. La hora local del municipio
solo se usa para calcular los límites de un período (mes/año calendario) y para
mostrar fechas. Ninguna otra parte del código suma o resta horas a mano.
"""
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from app.config.settings import settings


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_zone() -> ZoneInfo:
    return _zone(settings.timezone)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalizar un datetime a UTC consciente de zona.

    Los valores sin zona se interpretan como UTC (así los devuelven los
    drivers que no guardan zona, p.ej. SQLite).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """Convertir a hora local solo para mostrar"""
    value = ensure_utc(value)
    return value.astimezone(local_zone()) if value else None


def local_month_bounds(year: int, month_start: int, month_end: int) -> Tuple[datetime, datetime]:
    """
    Límites [inicio, fin) en UTC de los meses locales month_start..month_end del año.
    """
    zone = local_zone()
    start = datetime(year, month_start, 1, tzinfo=zone)
    if month_end == 12:
        end = datetime(year + 1, 1, 1, tzinfo=zone)
    else:
        end = datetime(year, month_end + 1, 1, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_date_bounds(first_day: date, last_day: date) -> Tuple[datetime, datetime]:
    """Límites [inicio, fin) en UTC de los días locales first_day..last_day (inclusive)"""
    zone = local_zone()
    start = datetime(first_day.year, first_day.month, first_day.day, tzinfo=zone)
    after = last_day + timedelta(days=1)
    end = datetime(after.year, after.month, after.day, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def format_local_range(start: datetime, end: datetime) -> str:
    """Rango legible en hora local, con fin inclusivo"""
    local_start = to_local(start)
    local_end = to_local(end)
    if local_end.hour == 0 and local_end.minute == 0 and local_end.second == 0:
        local_end = local_end - timedelta(seconds=1)
    return f"{local_start.strftime('%d/%m/%Y')} - {local_end.strftime('%d/%m/%Y')}"
