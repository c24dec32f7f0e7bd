"""
Access Decision Engine.

Answers the three questions every guard asks:

- does the user hold a permission?
- does the user hold a role?
- is the user's highest role at least as privileged as a required role?

Privilege is decided by ``hierarchy_level`` alone (lower = more privileged).
The role parent/child links never take part in a decision.
"""

import logging
from typing import Any, Iterable, List, Optional
from uuid import UUID

from domain.repositories import IAccessReadStore

from .cache import PermissionCache
from .permissions import PermissionResolver, ResolvedPermissions, privilege_key

logger = logging.getLogger(__name__)


class AccessDecisionEngine:
    """
    Stateless decision engine over an injected read store.

    Usage:
        engine = AccessDecisionEngine(RBACRepository(session))
        if engine.has_permission(user_id, "candidate.update"):
            ...
    """

    def __init__(self, store: IAccessReadStore, cache: Optional[PermissionCache] = None):
        self.store = store
        self.resolver = PermissionResolver(store, cache)

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    def is_active_user(self, user_id: UUID) -> bool:
        """Check that the user exists and is active."""
        user = self.store.get_user(user_id)
        return user is not None and bool(user.is_active)

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    def resolve(self, user_id: UUID) -> ResolvedPermissions:
        return self.resolver.resolve(user_id)

    def get_permissions(self, user_id: UUID) -> frozenset:
        return self.resolver.get_permissions_for_user(user_id)

    def has_permission(self, user_id: UUID, permission_name: str) -> bool:
        """
        Check a single permission.

        ``manage`` permissions are literal: ``candidate.manage`` does not
        satisfy a ``candidate.update`` check, nor the other way round.
        """
        return PermissionResolver.check_permission(self.resolve(user_id), permission_name)

    def has_any_permission(self, user_id: UUID, permission_names: Iterable[str]) -> bool:
        return PermissionResolver.check_any_permission(self.resolve(user_id), permission_names)

    def has_all_permissions(self, user_id: UUID, permission_names: Iterable[str]) -> bool:
        return PermissionResolver.check_all_permissions(self.resolve(user_id), permission_names)

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    def has_role(self, user_id: UUID, role_name: str) -> bool:
        """Check for an active assignment to an active role with this name."""
        return role_name in self.resolve(user_id).roles

    def has_any_role(self, user_id: UUID, role_names: Iterable[str]) -> bool:
        wanted = set(role_names)
        return any(name in wanted for name in self.resolve(user_id).roles)

    def get_user_roles(self, user_id: UUID) -> List[Any]:
        """Active roles of a user, most privileged first."""
        return sorted(self.store.get_active_roles_for_user(user_id), key=privilege_key)

    def get_role_names(self, user_id: UUID) -> List[str]:
        """Names of the active roles, most privileged first."""
        return list(self.resolve(user_id).roles)

    def get_highest_role(self, user_id: UUID) -> Optional[Any]:
        """
        Most privileged active role of a user.

        Ties on level are broken by role name, then role id.
        """
        roles = self.get_user_roles(user_id)
        return roles[0] if roles else None

    # -------------------------------------------------------------------------
    # Hierarchy
    # -------------------------------------------------------------------------

    def can_access_resource(self, user_id: UUID, required_role_name: str) -> bool:
        """
        Check the user's highest role against a required role's level.

        Args:
            user_id: User ID
            required_role_name: Name of the least privileged role allowed

        Returns:
            True iff the user's best level <= the required role's level.
            False when the user has no active role or the role name is unknown.
        """
        required = self.store.get_role_by_name(required_role_name)
        if required is None:
            logger.warning("Minimum-role check against an unknown role")
            return False

        level = self.resolve(user_id).hierarchy_level
        if level is None:
            return False

        return level <= required.hierarchy_level
