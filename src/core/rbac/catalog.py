"""
RBAC Catalog - Standard permission and role definitions.

Provides:
- The permission catalog (``resource.action`` names)
- The standard role forest (Admin -> VP -> Directors -> Managers -> Leads -> ICs)
- The grants each standard role starts with

These definitions feed the seed command; at runtime the database is the
source of truth and roles or permissions can be edited freely.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import Department, HierarchyLevel, PermissionAction


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class PermissionDefinition:
    """Definition of a catalog permission."""
    resource: str
    action: str
    description: str

    @property
    def name(self) -> str:
        return f"{self.resource}.{self.action}"


CRUD_RESOURCES: Dict[str, str] = {
    "job_posting": "job postings",
    "candidate": "candidates",
    "company": "companies",
    "user": "users",
    "role": "roles",
    "assignment": "assignments",
}

_MANAGE_LABELS = {
    "job_posting": "job posting",
    "candidate": "candidate",
    "company": "company",
    "user": "user",
    "role": "role",
    "assignment": "assignment",
}


def _crud_permissions(resource: str, plural: str) -> List[PermissionDefinition]:
    return [
        PermissionDefinition(resource, PermissionAction.CREATE.value, f"Create new {plural}"),
        PermissionDefinition(resource, PermissionAction.READ.value, f"Read {plural}"),
        PermissionDefinition(resource, PermissionAction.UPDATE.value, f"Update {plural}"),
        PermissionDefinition(resource, PermissionAction.DELETE.value, f"Delete {plural}"),
        PermissionDefinition(
            resource,
            PermissionAction.MANAGE.value,
            f"Full {_MANAGE_LABELS[resource]} management",
        ),
    ]


METRICS_PERMISSIONS: List[PermissionDefinition] = [
    PermissionDefinition("metrics", "view_department", "View department metrics"),
    PermissionDefinition("metrics", "view_all", "View all metrics"),
    PermissionDefinition("metrics", "export", "Export metrics"),
]

STANDARD_PERMISSIONS: List[PermissionDefinition] = [
    definition
    for resource, plural in CRUD_RESOURCES.items()
    for definition in _crud_permissions(resource, plural)
] + METRICS_PERMISSIONS


# =============================================================================
# ROLE DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class RoleDefinition:
    """Definition of a standard role."""
    name: str
    description: str
    hierarchy_level: HierarchyLevel
    department: Optional[Department] = None
    parent_role: Optional[str] = None
    permissions: List[str] = field(default_factory=list)


_CRU = ("create", "read", "update")
_CR = ("create", "read")


def _grants(resource: str, actions) -> List[str]:
    return [f"{resource}.{action}" for action in actions]


STANDARD_ROLES: List[RoleDefinition] = [
    RoleDefinition(
        name="Admin",
        description="Full system access with all permissions",
        hierarchy_level=HierarchyLevel.ADMIN,
        permissions=[p.name for p in STANDARD_PERMISSIONS],
    ),
    RoleDefinition(
        name="VP",
        description="Vice President - can view all department metrics",
        hierarchy_level=HierarchyLevel.VP,
        parent_role="Admin",
        permissions=[
            "metrics.view_all", "job_posting.read", "candidate.read",
            "company.read", "assignment.read",
        ],
    ),

    # Research
    RoleDefinition(
        name="RA Director",
        description="Research Department Director",
        hierarchy_level=HierarchyLevel.DIRECTOR,
        department=Department.RESEARCH,
        parent_role="VP",
        permissions=[
            "job_posting.manage", "candidate.manage",
            "metrics.view_department", "assignment.manage",
        ],
    ),
    RoleDefinition(
        name="RA Manager",
        description="Research Department Manager",
        hierarchy_level=HierarchyLevel.MANAGER,
        department=Department.RESEARCH,
        parent_role="RA Director",
        permissions=_grants("job_posting", _CRU) + _grants("candidate", _CRU) + _grants("assignment", _CRU),
    ),
    RoleDefinition(
        name="RA Lead",
        description="Research Department Team Lead",
        hierarchy_level=HierarchyLevel.LEAD,
        department=Department.RESEARCH,
        parent_role="RA Manager",
        permissions=_grants("job_posting", _CRU) + _grants("candidate", _CRU) + _grants("assignment", _CR),
    ),
    RoleDefinition(
        name="RA",
        description="Research Associate",
        hierarchy_level=HierarchyLevel.INDIVIDUAL_CONTRIBUTOR,
        department=Department.RESEARCH,
        parent_role="RA Lead",
        permissions=["job_posting.read", "candidate.read", "assignment.read"],
    ),

    # Business development
    RoleDefinition(
        name="BDM Director",
        description="Business Development Director",
        hierarchy_level=HierarchyLevel.DIRECTOR,
        department=Department.BUSINESS,
        parent_role="VP",
        permissions=["company.manage", "job_posting.read", "metrics.view_department"],
    ),
    RoleDefinition(
        name="Sr BDM Director",
        description="Senior Business Development Director",
        hierarchy_level=HierarchyLevel.MANAGER,
        department=Department.BUSINESS,
        parent_role="BDM Director",
        permissions=_grants("company", _CRU) + ["job_posting.read"],
    ),
    RoleDefinition(
        name="BDM",
        description="Business Development Manager",
        hierarchy_level=HierarchyLevel.LEAD,
        department=Department.BUSINESS,
        parent_role="Sr BDM Director",
        permissions=_grants("company", _CRU) + ["job_posting.read"],
    ),

    # Recruitment
    RoleDefinition(
        name="Recruitment Director",
        description="Recruitment Department Director",
        hierarchy_level=HierarchyLevel.DIRECTOR,
        department=Department.RECRUITMENT,
        parent_role="VP",
        permissions=[
            "candidate.manage", "job_posting.read",
            "assignment.manage", "metrics.view_department",
        ],
    ),
    RoleDefinition(
        name="Recruitment Manager",
        description="Recruitment Department Manager",
        hierarchy_level=HierarchyLevel.MANAGER,
        department=Department.RECRUITMENT,
        parent_role="Recruitment Director",
        permissions=_grants("candidate", _CRU) + _grants("assignment", _CRU),
    ),
    RoleDefinition(
        name="Recruitment Lead",
        description="Recruitment Department Team Lead",
        hierarchy_level=HierarchyLevel.LEAD,
        department=Department.RECRUITMENT,
        parent_role="Recruitment Manager",
        permissions=_grants("candidate", _CRU) + _grants("assignment", _CR),
    ),
    RoleDefinition(
        name="Recruiter",
        description="Recruitment Specialist",
        hierarchy_level=HierarchyLevel.INDIVIDUAL_CONTRIBUTOR,
        department=Department.RECRUITMENT,
        parent_role="Recruitment Lead",
        permissions=_grants("candidate", _CRU) + ["assignment.read"],
    ),

    # Finance
    RoleDefinition(
        name="Finance Director",
        description="Finance Department Director",
        hierarchy_level=HierarchyLevel.DIRECTOR,
        department=Department.FINANCE,
        parent_role="VP",
        permissions=["metrics.view_department", "company.read", "assignment.read"],
    ),
    RoleDefinition(
        name="Finance Manager",
        description="Finance Department Manager",
        hierarchy_level=HierarchyLevel.MANAGER,
        department=Department.FINANCE,
        parent_role="Finance Director",
        permissions=["company.read", "assignment.read"],
    ),
    RoleDefinition(
        name="Finance Lead",
        description="Finance Department Team Lead",
        hierarchy_level=HierarchyLevel.LEAD,
        department=Department.FINANCE,
        parent_role="Finance Manager",
        permissions=["company.read", "assignment.read"],
    ),
    RoleDefinition(
        name="Finance Analyst",
        description="Finance Department Analyst",
        hierarchy_level=HierarchyLevel.INDIVIDUAL_CONTRIBUTOR,
        department=Department.FINANCE,
        parent_role="Finance Lead",
        permissions=["company.read", "assignment.read"],
    ),
]


# =============================================================================
# CATALOG
# =============================================================================

class RBACCatalog:
    """
    In-memory view of the standard definitions.

    Used by the seed command and for quick lookups without database queries.
    """

    def __init__(
        self,
        permissions: Optional[List[PermissionDefinition]] = None,
        roles: Optional[List[RoleDefinition]] = None,
    ):
        self._permissions: Dict[str, PermissionDefinition] = {
            p.name: p for p in (permissions if permissions is not None else STANDARD_PERMISSIONS)
        }
        self._roles: Dict[str, RoleDefinition] = {
            r.name: r for r in (roles if roles is not None else STANDARD_ROLES)
        }

    def get_permission(self, name: str) -> Optional[PermissionDefinition]:
        return self._permissions.get(name)

    def get_role(self, name: str) -> Optional[RoleDefinition]:
        return self._roles.get(name)

    @property
    def permissions(self) -> List[PermissionDefinition]:
        return list(self._permissions.values())

    @property
    def roles(self) -> List[RoleDefinition]:
        """Roles ordered parents-first, so each parent exists before its children."""
        return sorted(self._roles.values(), key=lambda r: int(r.hierarchy_level))

    def validate(self) -> List[str]:
        """
        Check internal consistency.

        Returns:
            Problems found (empty when the catalog is consistent)
        """
        problems = []
        for role in self._roles.values():
            if role.parent_role and role.parent_role not in self._roles:
                problems.append(f"{role.name}: unknown parent {role.parent_role}")
            for name in role.permissions:
                if name not in self._permissions:
                    problems.append(f"{role.name}: unknown permission {name}")
        return problems


_catalog: Optional[RBACCatalog] = None


def get_rbac_catalog() -> RBACCatalog:
    """Get singleton catalog."""
    global _catalog
    if _catalog is None:
        _catalog = RBACCatalog()
    return _catalog
