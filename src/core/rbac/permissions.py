"""
Permission Service - Permission aggregation for users.

Provides:
- Privilege ordering of roles (level, then name, then id)
- Aggregation of a user's permissions across active role assignments
- Optional per-user caching of the aggregate

Resolution Algorithm:
1. Load the roles behind the user's active, unexpired assignments
   (inactive users and inactive roles contribute nothing)
2. Union the active permissions granted to those roles
3. Pick the highest-privilege role (lowest level) for level comparisons

Parent/child role links are not walked: a role's permissions are exactly its
own grants.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

from database.models import utcnow
from domain.repositories import IAccessReadStore

from .cache import PermissionCache

logger = logging.getLogger(__name__)


def privilege_key(role: Any) -> Tuple[int, str, str]:
    """Sort key ordering roles from most to least privileged."""
    return (role.hierarchy_level, role.name, str(role.role_id))


def select_highest_role(roles: Iterable[Any]) -> Optional[Any]:
    """Return the most privileged role, or None for an empty collection."""
    return min(roles, key=privilege_key, default=None)


@dataclass
class ResolvedPermissions:
    """Result of permission resolution."""
    user_id: UUID
    permissions: FrozenSet[str]
    roles: List[str]
    highest_role: Optional[str]
    hierarchy_level: Optional[int]
    resolved_at: datetime = field(default_factory=utcnow)
    from_cache: bool = False

    def to_dict(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "permissions": sorted(self.permissions),
            "roles": self.roles,
            "highest_role": self.highest_role,
            "hierarchy_level": self.hierarchy_level,
        }


class PermissionResolver:
    """
    Aggregates effective permissions for a user.

    The store is injected; a cache may be injected as well; without one
    every call reads the store.
    """

    def __init__(self, store: IAccessReadStore, cache: Optional[PermissionCache] = None):
        self.store = store
        self.cache = cache

    def resolve(self, user_id: UUID) -> ResolvedPermissions:
        """
        Resolve the effective permissions and roles of a user.

        Args:
            user_id: User ID

        Returns:
            ResolvedPermissions, empty when the user has no active roles
        """
        if self.cache is not None:
            entry = self.cache.get(user_id)
            if entry is not None:
                return ResolvedPermissions(
                    user_id=user_id,
                    permissions=entry.permissions,
                    roles=list(entry.roles),
                    highest_role=entry.highest_role,
                    hierarchy_level=entry.hierarchy_level,
                    from_cache=True,
                )
            generation = self.cache.generation

        roles = sorted(self.store.get_active_roles_for_user(user_id), key=privilege_key)
        permissions = frozenset(
            self.store.get_active_permission_names(r.role_id for r in roles)
        )
        highest = roles[0] if roles else None

        resolved = ResolvedPermissions(
            user_id=user_id,
            permissions=permissions,
            roles=[r.name for r in roles],
            highest_role=highest.name if highest else None,
            hierarchy_level=highest.hierarchy_level if highest else None,
        )

        if self.cache is not None:
            self.cache.set(
                user_id,
                permissions=resolved.permissions,
                roles=resolved.roles,
                highest_role=resolved.highest_role,
                hierarchy_level=resolved.hierarchy_level,
                generation=generation,
            )

        return resolved

    def get_permissions_for_user(self, user_id: UUID) -> FrozenSet[str]:
        """Union of active permission names across the user's active roles."""
        return self.resolve(user_id).permissions

    @staticmethod
    def check_permission(resolved: ResolvedPermissions, permission: str) -> bool:
        """Check if resolved permissions include a specific permission."""
        return permission in resolved.permissions

    @staticmethod
    def check_any_permission(resolved: ResolvedPermissions, permissions: Iterable[str]) -> bool:
        """Check if resolved permissions include any of the specified permissions."""
        return not resolved.permissions.isdisjoint(permissions)

    @staticmethod
    def check_all_permissions(resolved: ResolvedPermissions, permissions: Iterable[str]) -> bool:
        """Check if resolved permissions include all specified permissions."""
        return resolved.permissions.issuperset(permissions)
