"""API error translation."""

from .api_errors import (
    APIError,
    ErrorCode,
    ErrorResponse,
    ERROR_CODE_STATUS_MAP,
    get_request_id,
    register_exception_handlers,
)

__all__ = [
    "APIError",
    "ErrorCode",
    "ErrorResponse",
    "ERROR_CODE_STATUS_MAP",
    "get_request_id",
    "register_exception_handlers",
]
