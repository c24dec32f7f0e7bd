"""
Logging setup for the recruitment back office.

Two output shapes share one record layout:
- one JSON object per line (production, and always for the log file)
- a coloured single line for local work

Request and caller ids travel in context variables set by the identity
middleware, so every record emitted while a request runs can be correlated.
Authorization outcomes have their own ``rbac.access`` logger.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")


def _context_fields() -> Dict[str, str]:
    fields = {}
    for key, var in (("request_id", request_id_var), ("user_id", user_id_var)):
        value = var.get()
        if value:
            fields[key] = value
    return fields


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return dict(getattr(record, 'extra_data', None) or {})


class JsonFormatter(logging.Formatter):
    """One JSON object per record, ready for a log shipper."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(_context_fields())
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured ``HH:MM:SS.mmm LEVEL [logger] message | k=v`` lines."""

    LEVEL_COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        parts = [f"{clock} {color}{record.levelname:<8}{self.RESET} [{record.name}] {record.getMessage()}"]

        fields = {**_context_fields(), **_extra_fields(record)}
        parts.extend(f"{key}={value}" for key, value in fields.items())

        line = " | ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class ContextLogger(logging.LoggerAdapter):
    """Adapter that merges its bound fields into each record's ``extra_data``."""

    def process(self, msg: str, kwargs: Dict) -> tuple:
        extra = dict(kwargs.get('extra') or {})
        extra['extra_data'] = {**self.extra, **(extra.get('extra_data') or {})}
        kwargs['extra'] = extra
        return msg, kwargs


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Replace the root handlers with the application's.

    Args:
        level: Root level name
        json_output: JSON lines on stdout instead of the readable format
        log_file: Also append JSON lines to this file
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JsonFormatter() if json_output else ReadableFormatter())
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, **fields) -> ContextLogger:
    """Logger that stamps ``fields`` on every record."""
    return ContextLogger(logging.getLogger(name), fields)


@contextmanager
def request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Iterator[None]:
    """
    Bind request and caller ids to every log record emitted inside the block.

    Usage:
        with request_context(request_id="abc", user_id=str(caller_id)):
            handle()
    """
    request_token = request_id_var.set(request_id)
    user_token = user_id_var.set(user_id)
    try:
        yield
    finally:
        user_id_var.reset(user_token)
        request_id_var.reset(request_token)


class AccessLogger:
    """
    Records guard outcomes.

    A denial carries the guard kind, the caller and the reason. The required
    permission or role name is never passed in, so it cannot reach the log.
    """

    def __init__(self, name: str = "rbac.access"):
        self.logger = get_logger(name)

    @staticmethod
    def _fields(guard: str, user_id: Any, **more: Any) -> Dict[str, Any]:
        return {'extra_data': {
            'guard': guard,
            'caller': str(user_id) if user_id is not None else None,
            **more,
        }}

    def allowed(self, guard: str, user_id: Any) -> None:
        self.logger.debug("Access granted", extra=self._fields(guard, user_id))

    def denied(self, guard: str, user_id: Any, reason: str) -> None:
        self.logger.info("Access denied", extra=self._fields(guard, user_id, reason=reason))

    def failed(self, guard: str, user_id: Any, error: BaseException) -> None:
        """Decision aborted by an infrastructure error; logged with traceback."""
        self.logger.error(
            f"Access decision failed: {type(error).__name__}",
            exc_info=error,
            extra=self._fields(guard, user_id),
        )
