"""
Errores de dominio tipados para el portal de facturación.

Cada error lleva un `code` legible por máquina y el status HTTP con el que se
expone. Todos son recuperables por el llamador (se muestran como una acción
rechazada al admin o al cliente); ninguno es fatal para el proceso.

    BillingError (base)
    |
    +-- ValidationError        422  montos inválidos, asignaciones que exceden el pago
    +-- NotFoundError          404  id de factura/pago/documento desconocido
    +-- ConflictError          409  transición de estado no permitida
    +-- PermissionDeniedError  403  recurso de otro cliente
    +-- TenantRequiredError    400  falta X-Organization-ID o no es un UUID
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """Base de todos los errores de dominio."""

    code: str = "BILLING_ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"detail": self.message, "code": self.code}
        if self.details:
            payload["context"] = {k: str(v) for k, v in self.details.items()}
        return payload


class ValidationError(BillingError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(BillingError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Optional[Any] = None):
        message = f"{resource} no encontrado" if resource_id is None else f"{resource} {resource_id} no encontrado"
        super().__init__(message, resource=resource)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(BillingError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class PermissionDeniedError(BillingError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class TenantRequiredError(BillingError):
    """Falta el header X-Organization-ID o no es un UUID."""

    code = "TENANT_REQUIRED"
    status_code = status.HTTP_400_BAD_REQUEST


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Exception handler de FastAPI para errores de dominio."""
    logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
