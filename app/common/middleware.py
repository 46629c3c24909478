"""
Middleware for handling multi-tenancy

Every request outside the public paths must carry X-Organization-ID; the
organization UUID ends up in request.state.tenant_id. Errors use the same
{"detail", "code"} body as the domain errors.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from uuid import UUID
import logging

from app.common.exceptions import TenantRequiredError

logger = logging.getLogger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Extract the organization from X-Organization-ID and set request.state.tenant_id
    """

    # Paths that don't require an organization
    PUBLIC_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json"}

    # Signup/login run before the user picks an organization; /auth/context reads the header itself
    PUBLIC_AUTH_PATHS = {"/auth/organizations", "/auth/register", "/auth/login", "/auth/context"}

    def is_public(self, path: str) -> bool:
        path = path.rstrip("/") or "/"
        return path in self.PUBLIC_PATHS or path in self.PUBLIC_AUTH_PATHS or path.startswith("/docs/")

    @staticmethod
    def _reject(request: Request, error: TenantRequiredError) -> JSONResponse:
        logger.info(f"{error.code} on {request.method} {request.url.path}: {error.message}")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    async def dispatch(self, request: Request, call_next):
        # CORS preflight never carries custom headers
        if request.method == "OPTIONS" or self.is_public(request.url.path):
            return await call_next(request)

        tenant_header = request.headers.get("X-Organization-ID")
        if not tenant_header:
            return self._reject(request, TenantRequiredError("Falta el header X-Organization-ID"))

        try:
            tenant_id = UUID(tenant_header)
        except ValueError:
            return self._reject(request, TenantRequiredError(
                "X-Organization-ID debe ser un UUID válido",
                value=tenant_header
            ))

        request.state.tenant_id = tenant_id
        logger.debug(f"Request to {request.url.path} with tenant_id: {tenant_id}")

        response = await call_next(request)
        response.headers["X-Tenant-ID"] = str(tenant_id)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers for production
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
