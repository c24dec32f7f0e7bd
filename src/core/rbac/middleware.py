"""
Caller Identity Middleware.

Provides:
- Extraction of the caller id placed in a header by the upstream authenticator
- Request id propagation (generated when absent)
- Logging context binding for the duration of the request

The middleware never rejects a request; guards decide whether a missing or
malformed identity matters for the route being called.
"""

import logging
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from services.logging_config import request_context

from .guards import parse_caller_id

logger = logging.getLogger(__name__)


class CallerIdentityMiddleware(BaseHTTPMiddleware):
    """
    Stores ``caller_id`` (raw header value) and ``request_id`` on request.state.
    """

    def __init__(
        self,
        app: ASGIApp,
        identity_header: str = "X-User-ID",
        request_id_header: str = "X-Request-ID",
    ):
        super().__init__(app)
        self.identity_header = identity_header
        self.request_id_header = request_id_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.request_id_header) or str(uuid.uuid4())
        raw_caller: Optional[str] = request.headers.get(self.identity_header)

        request.state.request_id = request_id
        request.state.caller_id = raw_caller

        caller = parse_caller_id(raw_caller)
        with request_context(request_id=request_id, user_id=str(caller) if caller else None):
            response = await call_next(request)

        response.headers[self.request_id_header] = request_id
        return response
