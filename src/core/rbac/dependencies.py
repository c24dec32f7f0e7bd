"""
RBAC FastAPI Dependencies - route-level guards.

Provides:
- Request-scoped repository, engine and guard construction
- Class-based guard dependencies for permissions and roles

Usage:
    from core.rbac.dependencies import RequirePermission, RequireMinimumRole

    @router.put("/candidates/{candidate_id}")
    def update_candidate(caller_id: UUID = Depends(RequirePermission("candidate.update"))):
        ...

    @router.get("/metrics/department")
    def department_metrics(caller_id: UUID = Depends(RequireMinimumRole("RA Manager"))):
        ...
"""

from typing import Iterable, Optional
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database.connection import get_session
from database.repositories import RBACRepository, ReportingRepository

from .access import AccessDecisionEngine
from .assignments import UserRoleService
from .cache import PermissionCache, get_permission_cache
from .guards import AccessGuard
from .management import RBACManagementService
from .reporting import ReportingGraphService


# =============================================================================
# REQUEST-SCOPED SERVICES
# =============================================================================

def get_caller_id(request: Request) -> Optional[str]:
    """Raw caller identity for this request, as set by CallerIdentityMiddleware."""
    return getattr(request.state, "caller_id", None)


def get_cache() -> Optional[PermissionCache]:
    cache = get_permission_cache()
    return cache if cache.enabled else None


def get_rbac_repository(session: Session = Depends(get_session)) -> RBACRepository:
    return RBACRepository(session)


def get_reporting_repository(session: Session = Depends(get_session)) -> ReportingRepository:
    return ReportingRepository(session)


def get_access_engine(
    repo: RBACRepository = Depends(get_rbac_repository),
    cache: Optional[PermissionCache] = Depends(get_cache),
) -> AccessDecisionEngine:
    return AccessDecisionEngine(repo, cache)


def get_access_guard(engine: AccessDecisionEngine = Depends(get_access_engine)) -> AccessGuard:
    return AccessGuard(engine)


def get_management_service(
    repo: RBACRepository = Depends(get_rbac_repository),
    cache: Optional[PermissionCache] = Depends(get_cache),
) -> RBACManagementService:
    return RBACManagementService(repo, cache)


def get_user_role_service(
    repo: RBACRepository = Depends(get_rbac_repository),
    cache: Optional[PermissionCache] = Depends(get_cache),
) -> UserRoleService:
    return UserRoleService(repo, cache)


def get_reporting_service(
    repo: ReportingRepository = Depends(get_reporting_repository),
) -> ReportingGraphService:
    return ReportingGraphService(repo)


# =============================================================================
# GUARD DEPENDENCIES
# =============================================================================

class RequirePermission:
    """
    Dependency that requires a specific permission.

    Returns the caller's user id when allowed; raises UnauthenticatedError,
    ForbiddenError or InternalError otherwise.
    """

    def __init__(self, permission: str):
        self.permission = permission

    def __call__(self, request: Request, guard: AccessGuard = Depends(get_access_guard)) -> UUID:
        decision = guard.require_permission(get_caller_id(request), self.permission)
        decision.raise_for_denial()
        return decision.user_id


class RequireRole:
    """Dependency that requires holding a named role."""

    def __init__(self, role_name: str):
        self.role_name = role_name

    def __call__(self, request: Request, guard: AccessGuard = Depends(get_access_guard)) -> UUID:
        decision = guard.require_role(get_caller_id(request), self.role_name)
        decision.raise_for_denial()
        return decision.user_id


class RequireMinimumRole:
    """Dependency that requires a highest role at least as privileged as ``role_name``."""

    def __init__(self, role_name: str):
        self.role_name = role_name

    def __call__(self, request: Request, guard: AccessGuard = Depends(get_access_guard)) -> UUID:
        decision = guard.require_minimum_role(get_caller_id(request), self.role_name)
        decision.raise_for_denial()
        return decision.user_id


class RequireAnyRole:
    """Dependency that requires holding at least one of the named roles."""

    def __init__(self, role_names: Iterable[str]):
        self.role_names = list(role_names)

    def __call__(self, request: Request, guard: AccessGuard = Depends(get_access_guard)) -> UUID:
        decision = guard.require_any_role(get_caller_id(request), self.role_names)
        decision.raise_for_denial()
        return decision.user_id


def require_authenticated(request: Request, guard: AccessGuard = Depends(get_access_guard)) -> UUID:
    """Dependency that only requires a known, active caller."""
    decision = guard.require_authenticated(get_caller_id(request))
    decision.raise_for_denial()
    return decision.user_id
