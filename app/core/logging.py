import logging

from app.config.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> None:
    """Configurar logging de la aplicación una sola vez"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # SQLAlchemy ya hace echo cuando debug=True
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
