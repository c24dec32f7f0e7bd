"""Domain layer: repository contracts for the authorization engine."""

from .repositories import IAccessReadStore, IRBACRepository, IReportingRepository

__all__ = ["IAccessReadStore", "IRBACRepository", "IReportingRepository"]
