"""
RBAC API Router

Combines the management, user-role and reporting routes.
Mount this router at /api in your FastAPI application.
"""

import logging

from fastapi import APIRouter

from .rbac_routes import router as rbac_router
from .reporting_routes import router as reporting_router
from .users_routes import router as users_router

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api")

api_router.include_router(rbac_router)
api_router.include_router(users_router)
api_router.include_router(reporting_router)


@api_router.get("/health")
def health_check():
    """Liveness probe; no authentication."""
    return {"status": "healthy", "service": "rbac"}
