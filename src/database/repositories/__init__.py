"""Repository implementations for the authorization engine."""

from .rbac_repository import RBACRepository
from .reporting_repository import ReportingRepository

__all__ = [
    "RBACRepository",
    "ReportingRepository",
]
