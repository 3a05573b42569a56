# app/core/exceptions.py
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.shared.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Error de aplicación con código HTTP y código de error estable"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(AppError):
    """Entrada inválida. No se reintenta: el cliente debe corregirla"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "INVALID_INPUT"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class BusinessRuleError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "BUSINESS_RULE"


class UpstreamUnavailableError(AppError):
    """La base de datos u otro servicio no respondió. Nunca se convierte en resultado vacío"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "UPSTREAM_UNAVAILABLE"


class ReconciliationInvariantError(AppError):
    error_code = "RECONCILIATION_INVARIANT"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.error_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.error_code}: {exc.message}")

    body = ErrorResponse(
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
