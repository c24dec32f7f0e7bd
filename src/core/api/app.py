"""
FastAPI application factory.

Usage:
    uvicorn --factory core.api.app:create_app
    python -m core.api.app
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from config.settings import Settings, get_settings
from core.rbac.middleware import CallerIdentityMiddleware
from database.connection import close_engine
from security.api_errors import register_exception_handlers
from services.logging_config import configure_logging

from .router import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_engine()


def create_app(settings: Optional[Settings] = None, configure_logs: bool = True) -> FastAPI:
    """
    Build the application: logging, identity middleware, error handlers, routes.

    Args:
        settings: Overrides the environment-derived settings (tests)
        configure_logs: Set False to leave the host's logging untouched
    """
    settings = settings or get_settings()

    if configure_logs:
        configure_logging(
            level=settings.log_level,
            json_output=settings.log_json,
            log_file=Path(settings.log_file) if settings.log_file else None,
        )

    app = FastAPI(
        title=settings.name,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CallerIdentityMiddleware,
        identity_header=settings.identity_header,
        request_id_header=settings.request_id_header,
    )
    register_exception_handlers(app)
    app.include_router(api_router)

    logger.info(f"{settings.name} {settings.version} ready ({settings.environment})")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="127.0.0.1", port=8000)
