# app/modules/consultas/cache.py
import logging
import threading
import time
from typing import Dict, Optional, Tuple

from app.config.settings import settings
from .schemas import EstadoCuenta

logger = logging.getLogger(__name__)


class ConsultaCache:
    """
    Cache en memoria de estados de cuenta ya calculados.

    Cada entrada vive ttl_seconds. Al superar max_entries se purgan las
    vencidas. Es por proceso: con varios workers cada uno tiene la suya.
    """

    def __init__(self, ttl_seconds: int, max_entries: int = 100):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[float, EstadoCuenta]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def build_key(tipo: str, documento: Optional[str], dni: Optional[str], amnistia: bool) -> str:
        return f"{tipo}_{documento or ''}_{dni or ''}_{amnistia}"

    def get(self, key: str) -> Optional[EstadoCuenta]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: EstadoCuenta) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), value)
            if len(self._entries) > self.max_entries:
                self._purge()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _purge(self) -> None:
        now = time.monotonic()
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache de consultas: {len(expired)} entradas vencidas eliminadas")


consulta_cache = ConsultaCache(settings.consulta_cache_ttl_seconds)
