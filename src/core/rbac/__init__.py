"""
Authorization & Organizational Hierarchy Engine.

Decides what a back office user may do in the recruitment agency.

Features:
- Database-driven permission catalog and role forest
- Hierarchy levels (0 = Admin ... 5 = individual contributor) for minimum-role checks
- Effective permissions as the union over a user's active roles
- Manager/reportee graph with cycle-safe reassignment and history
- Optional process-level permission cache with invalidation on every change

Usage:
    from core.rbac.dependencies import RequirePermission, RequireMinimumRole

    @router.put("/candidates/{candidate_id}")
    def update_candidate(caller_id: UUID = Depends(RequirePermission("candidate.update"))):
        ...

    @router.get("/metrics/department")
    def department_metrics(caller_id: UUID = Depends(RequireMinimumRole("RA Manager"))):
        ...

FastAPI wiring (``dependencies``, ``middleware``) and the seed command
(``python -m core.rbac.seed``) are imported from their submodules.
"""

from .models import (
    Department,
    HierarchyLevel,
    Permission,
    PermissionAction,
    Role,
    RolePermission,
    UserReporting,
    UserRoleAssignment,
)

from .errors import (
    ConflictError,
    CycleError,
    ErrorKind,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    RBACError,
    UnauthenticatedError,
)

from .catalog import (
    STANDARD_PERMISSIONS,
    STANDARD_ROLES,
    RBACCatalog,
    get_rbac_catalog,
)

from .cache import (
    CacheConfig,
    PermissionCache,
    get_permission_cache,
    reset_permission_cache,
)

from .permissions import PermissionResolver, ResolvedPermissions, select_highest_role
from .access import AccessDecisionEngine
from .guards import AccessDecision, AccessGuard
from .role_graph import RoleGraphService
from .management import BulkResult, RBACManagementService
from .assignments import UserAccessSummary, UserRoleService
from .reporting import OrganizationalHierarchy, OrgMember, ReportingGraphService

__all__ = [
    # Models
    "Department",
    "HierarchyLevel",
    "Permission",
    "PermissionAction",
    "Role",
    "RolePermission",
    "UserReporting",
    "UserRoleAssignment",
    # Errors
    "ConflictError",
    "CycleError",
    "ErrorKind",
    "ForbiddenError",
    "InternalError",
    "InvalidInputError",
    "NotFoundError",
    "RBACError",
    "UnauthenticatedError",
    # Catalog
    "STANDARD_PERMISSIONS",
    "STANDARD_ROLES",
    "RBACCatalog",
    "get_rbac_catalog",
    # Cache
    "CacheConfig",
    "PermissionCache",
    "get_permission_cache",
    "reset_permission_cache",
    # Decisions
    "PermissionResolver",
    "ResolvedPermissions",
    "select_highest_role",
    "AccessDecisionEngine",
    "AccessDecision",
    "AccessGuard",
    # Services
    "RoleGraphService",
    "BulkResult",
    "RBACManagementService",
    "UserAccessSummary",
    "UserRoleService",
    "OrganizationalHierarchy",
    "OrgMember",
    "ReportingGraphService",
]
