# app/config/settings.py
from datetime import date
from pydantic_settings import BaseSettings
from typing import List, Optional
import os

class Settings(BaseSettings):
    # App Info
    app_name: str = "Mercados Municipales API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database principal (mercados, locales, facturas, logs de consulta)
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./mercados.db")

    # Base de datos de recaudo (solo lectura). Si no se define se usa la principal
    recaudo_database_url: Optional[str] = None
    recaudo_chunk_size: int = 1000

    # Security
    secret_key: str = os.getenv("SECRET_KEY", "change-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 480
    refresh_token_expire_days: int = 7

    # Zona horaria del municipio. En BD todo se guarda en UTC
    timezone: str = "America/Tegucigalpa"

    # Rango operativo para reportes por año
    anio_minimo: int = 2020

    # Sistema tributario (solo lectura) para estados de cuenta EC/ICS.
    # Si no se define se usa la principal
    readonly_database_url: Optional[str] = None
    consulta_cache_ttl_seconds: int = 600

    # Amnistía tributaria
    amnistia_activa: bool = False
    amnistia_fecha_inicio: date = date(2025, 1, 1)
    amnistia_fecha_fin: date = date(2025, 9, 30)
    amnistia_anio_desde: int = 2016
    amnistia_anio_hasta: int = 2025
    amnistia_descripcion: str = "Amnistía Tributaria"

    # Crear tablas al iniciar (desarrollo). En producción el esquema ya existe
    create_tables: bool = False

    # CORS, orígenes separados por coma
    cors_origins: str = "*"

    # Server
    host: str = "0.0.0.0"
    port: int = int(os.getenv("PORT", 8000))

    @property
    def recaudo_url(self) -> str:
        """URL efectiva de la base de recaudo"""
        return self.recaudo_database_url or self.database_url

    @property
    def readonly_url(self) -> str:
        """URL efectiva del sistema tributario"""
        return self.readonly_database_url or self.database_url

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = 'ignore'

settings = Settings()
