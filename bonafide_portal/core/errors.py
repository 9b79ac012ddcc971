"""
Bonafide Portal — Error taxonomy

Every failure the portal reports carries a stable ``kind`` and a readable
message. Routers never build error responses by hand; they raise one of
these and the handler registered in ``main.py`` renders it.
"""
import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base exception for all portal errors."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "kind": self.kind, "detail": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PortalError):
    kind = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, {"field": field} if field else None)


class AuthenticationError(PortalError):
    kind = "authentication_error"
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AuthorizationError(PortalError):
    kind = "authorization_error"
    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotFoundError(PortalError):
    kind = "not_found"
    status_code = 404


class OtpNotFoundError(NotFoundError):
    """No live code for the phone. Reported as a bad request, not a missing resource."""

    status_code = 400

    def __init__(self, message: str = "OTP expired or not found"):
        super().__init__(message)


class MismatchError(PortalError):
    kind = "mismatch"
    status_code = 400

    def __init__(self, message: str = "Invalid OTP"):
        super().__init__(message)


class ConflictError(PortalError):
    kind = "conflict"
    status_code = 409


class AuthProviderError(PortalError):
    kind = "auth_provider_error"
    status_code = 400


class StorageError(PortalError):
    kind = "storage_error"
    status_code = 503


class NotificationError(PortalError):
    kind = "notification_error"
    status_code = 503


class UpstreamTimeoutError(PortalError):
    kind = "timeout"
    status_code = 504


# ─── FastAPI handlers ─────────────────────────────────────────────────────────

async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or None
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content=ValidationError(message, field=field).to_dict())
