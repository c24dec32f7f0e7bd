"""
Error envelope for the back office API.

Every failure leaves the service as the same JSON body: a stable ``code``,
a message, the request id and the path. Authorization engine errors,
request validation and plain HTTP errors all go through here.

401, 403 and 500 responses carry fixed messages only, so a caller never
learns which permission was missing or what failed inside.

Usage:
    from security.api_errors import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.rbac.errors import ErrorKind, RBACError

logger = logging.getLogger(__name__)


# =============================================================================
# CODES
# =============================================================================


class ErrorCode(str, Enum):
    """Machine-readable error codes. The prefix names the family."""

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_INSUFFICIENT_PERMISSIONS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    RESOURCE_CYCLE = "RESOURCE_CYCLE"
    HTTP_METHOD_NOT_ALLOWED = "HTTP_METHOD_NOT_ALLOWED"
    SERVER_INTERNAL_ERROR = "SERVER_INTERNAL_ERROR"


ERROR_CODE_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.AUTH_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: status.HTTP_403_FORBIDDEN,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESOURCE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.RESOURCE_CYCLE: status.HTTP_409_CONFLICT,
    ErrorCode.HTTP_METHOD_NOT_ALLOWED: status.HTTP_405_METHOD_NOT_ALLOWED,
    ErrorCode.SERVER_INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Used for bare HTTPExceptions (404 for unknown routes, 405 and so on)
_CODE_BY_HTTP_STATUS: Dict[int, ErrorCode] = {
    401: ErrorCode.AUTH_REQUIRED,
    403: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    400: ErrorCode.VALIDATION_ERROR,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.HTTP_METHOD_NOT_ALLOWED,
    409: ErrorCode.RESOURCE_CONFLICT,
}

ERROR_CODE_BY_KIND: Dict[ErrorKind, ErrorCode] = {
    ErrorKind.INVALID: ErrorCode.VALIDATION_ERROR,
    ErrorKind.NOT_FOUND: ErrorCode.RESOURCE_NOT_FOUND,
    ErrorKind.CONFLICT: ErrorCode.RESOURCE_CONFLICT,
    ErrorKind.CYCLE: ErrorCode.RESOURCE_CYCLE,
    ErrorKind.UNAUTHENTICATED: ErrorCode.AUTH_REQUIRED,
    ErrorKind.FORBIDDEN: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    ErrorKind.INTERNAL: ErrorCode.SERVER_INTERNAL_ERROR,
}

# Fixed client-facing messages; anything else would leak the failed requirement.
OPAQUE_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.AUTH_REQUIRED: "Authentication required",
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    ErrorCode.SERVER_INTERNAL_ERROR: "An unexpected error occurred. Please try again later.",
}


# =============================================================================
# RESPONSE BODY
# =============================================================================


class FieldError(BaseModel):
    field: str
    message: str
    code: str = "invalid"


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": True,
            "code": "RESOURCE_CYCLE",
            "message": "Manager already reports to this user",
            "status_code": 409,
            "timestamp": "2026-01-29T12:00:00Z",
            "request_id": "0b6f3c1e-5d2a-4a8e-9d57-0f1d0d3c2a11",
            "path": "/api/reporting/3f6e.../manager",
        }
    })

    error: bool = True
    code: str
    message: str
    status_code: int
    timestamp: str
    request_id: str
    path: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    field_errors: Optional[List[FieldError]] = None


# =============================================================================
# EXCEPTION
# =============================================================================


class APIError(Exception):
    """
    HTTP-level failure with an ErrorCode.

    Opaque codes swap the message for the fixed text and drop ``details``.

    Usage:
        raise APIError(ErrorCode.VALIDATION_ERROR, "role_ids must not be empty")
    """

    def __init__(
        self,
        code: Union[ErrorCode, str],
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        field_errors: Optional[List[Dict[str, str]]] = None,
    ):
        self.code = ErrorCode(code)
        self.message = OPAQUE_MESSAGES.get(self.code, message)
        self.status_code = status_code or ERROR_CODE_STATUS_MAP[self.code]
        self.details = None if self.code in OPAQUE_MESSAGES else details
        self.field_errors = field_errors or []
        super().__init__(self.message)

    @classmethod
    def from_rbac_error(cls, exc: RBACError) -> "APIError":
        code = ERROR_CODE_BY_KIND.get(exc.kind, ErrorCode.SERVER_INTERNAL_ERROR)
        details = {key: str(value) for key, value in exc.details.items()} or None
        return cls(code, exc.message, details=details)

    def to_response(self, request_id: str, path: Optional[str] = None) -> ErrorResponse:
        return ErrorResponse(
            code=self.code.value,
            message=self.message,
            status_code=self.status_code,
            timestamp=_timestamp(),
            request_id=request_id,
            path=path,
            details=self.details,
            field_errors=[FieldError(**fe) for fe in self.field_errors] or None,
        )


# =============================================================================
# HELPERS
# =============================================================================


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def get_request_id(request: Request) -> str:
    """Request id set by the identity middleware, else the header, else a new one."""
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("X-Request-ID")
        or str(uuid.uuid4())
    )


def _error_json(request: Request, error: APIError) -> JSONResponse:
    request_id = get_request_id(request)
    body = error.to_response(request_id, request.url.path)
    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(),
        headers={"X-Request-ID": request_id},
    )


def _request_extra(request: Request, **more: Any) -> Dict[str, Any]:
    return {"extra_data": {"path": request.url.path, "method": request.method, **more}}


# =============================================================================
# HANDLERS
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on ``app``."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(level, f"{exc.code.value}: {exc.message}", extra=_request_extra(request))
        return _error_json(request, exc)

    @app.exception_handler(RBACError)
    async def rbac_error_handler(request: Request, exc: RBACError) -> JSONResponse:
        error = APIError.from_rbac_error(exc)
        # The original message stays in the log; the body may carry the opaque one.
        level = logging.ERROR if error.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{type(exc).__name__}: {exc.message}",
            extra=_request_extra(request, error_code=error.code.value),
        )
        return _error_json(request, error)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        field_errors = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part != "body") or "body",
                "message": err["msg"],
                "code": err["type"],
            }
            for err in exc.errors()
        ]
        logger.warning(f"Request validation failed on {len(field_errors)} field(s)", extra=_request_extra(request))
        error = APIError(
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            field_errors=field_errors,
        )
        return _error_json(request, error)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _CODE_BY_HTTP_STATUS.get(exc.status_code, ErrorCode.SERVER_INTERNAL_ERROR)
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_extra(request))
        error = APIError(code, str(exc.detail or "Request failed"), status_code=exc.status_code)
        return _error_json(request, error)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled {type(exc).__name__}: {exc}",
            extra=_request_extra(request),
            exc_info=True,
        )
        return _error_json(request, APIError(ErrorCode.SERVER_INTERNAL_ERROR, ""))
