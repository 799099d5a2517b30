# distribuidora/core/exceptions.py
"""
Errores de dominio.

Todas las operaciones de escritura terminan en éxito completo o en un
DomainError con una lista detallada de errores; el handler registrado en
main.py los convierte en ErrorResponse.
"""
from typing import List, Optional, Union
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
import logging

from distribuidora.shared.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class DomainError(HTTPException):
    """Error de negocio con lista de errores itemizada"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "domain_error"

    def __init__(
        self,
        errors: Union[str, List[str]],
        message: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        self.message = message or self.errors[0]
        super().__init__(
            status_code=status_code or self.status_code,
            detail=self.message
        )


class ValidationError(DomainError):
    status_code = 422
    error_code = "validation_error"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class InsufficientStockError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "insufficient_stock"

    def __init__(self, errors: List[str]):
        super().__init__(errors, message="Stock insuficiente")


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"


class StateError(DomainError):
    """Transición no permitida desde el estado actual"""
    status_code = status.HTTP_409_CONFLICT
    error_code = "invalid_state"


class PermissionDeniedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Convertir DomainError en ErrorResponse"""
    logger.warning(
        f"{request.method} {request.url.path} - {exc.error_code}: {'; '.join(exc.errors)}"
    )
    body = ErrorResponse(
        message=exc.message,
        error_code=exc.error_code,
        errors=exc.errors
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))
