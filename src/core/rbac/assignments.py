"""
User Role Service - user-to-role assignment maintenance.

Provides:
- Assign and remove a single role
- Replace a user's whole role set atomically
- A combined roles-and-permissions view of a user
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from domain.repositories import IRBACRepository

from .cache import PermissionCache
from .errors import ConflictError, NotFoundError
from .models import Role, UserRoleAssignment
from .permissions import PermissionResolver, privilege_key

logger = logging.getLogger(__name__)


@dataclass
class RoleSummary:
    """A role with the permissions it grants."""
    role_id: UUID
    name: str
    description: Optional[str]
    hierarchy_level: int
    department: Optional[str]
    is_active: bool
    permissions: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class UserAccessSummary:
    """Everything the engine knows about one user's access."""
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    is_active: bool
    roles: List[RoleSummary]
    all_permissions: List[str]
    highest_role: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": {
                "id": str(self.user_id),
                "email": self.email,
                "first_name": self.first_name,
                "last_name": self.last_name,
                "is_active": self.is_active,
            },
            "roles": [
                {
                    "id": str(r.role_id),
                    "name": r.name,
                    "description": r.description,
                    "hierarchy_level": r.hierarchy_level,
                    "department": r.department,
                    "is_active": r.is_active,
                    "permissions": r.permissions,
                }
                for r in self.roles
            ],
            "all_permissions": self.all_permissions,
            "highest_role": self.highest_role,
        }


class UserRoleService:
    """
    Maintains user-role assignments.

    Every change invalidates the affected user's cached aggregate.
    """

    def __init__(self, repo: IRBACRepository, cache: Optional[PermissionCache] = None):
        self.repo = repo
        self.cache = cache
        self.resolver = PermissionResolver(repo, cache)

    def _require_user(self, user_id: UUID) -> Any:
        user = self.repo.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=str(user_id))
        return user

    def _require_role(self, role_id: UUID) -> Role:
        role = self.repo.get_role(role_id)
        if role is None:
            raise NotFoundError("Role not found", role_id=str(role_id))
        return role

    def assign_role(
        self,
        user_id: UUID,
        role_id: UUID,
        assigned_by: Optional[UUID] = None,
        expires_at: Optional[datetime] = None,
    ) -> UserRoleAssignment:
        """
        Assign a role to a user.

        Raises:
            NotFoundError: user or role does not exist
            ConflictError: the user already holds the role
        """
        with self.repo.transaction():
            self._require_user(user_id)
            role = self._require_role(role_id)

            if self.repo.get_user_role_assignment(user_id, role_id) is not None:
                raise ConflictError("User already has this role", user_id=str(user_id), role_id=str(role_id))

            assignment = self.repo.add(UserRoleAssignment(
                user_id=user_id,
                role_id=role_id,
                assigned_by=assigned_by,
                expires_at=expires_at,
            ))

        logger.info(f"Assigned role {role.name} to user {user_id}")
        self._invalidate_user(user_id)
        return assignment

    def remove_role(self, user_id: UUID, role_id: UUID) -> None:
        """
        Remove a role from a user.

        Raises:
            NotFoundError: the user does not hold the role
        """
        with self.repo.transaction():
            assignment = self.repo.get_user_role_assignment(user_id, role_id)
            if assignment is None:
                raise NotFoundError(
                    "User role assignment not found",
                    user_id=str(user_id),
                    role_id=str(role_id),
                )
            self.repo.delete(assignment)

        logger.info(f"Removed role {role_id} from user {user_id}")
        self._invalidate_user(user_id)

    def replace_roles(
        self,
        user_id: UUID,
        role_ids: Sequence[UUID],
        assigned_by: Optional[UUID] = None,
    ) -> List[UserRoleAssignment]:
        """
        Replace every role of a user in one transaction.

        Concurrent readers see either the old set or the new one, never an
        empty set in between. An empty ``role_ids`` clears the user's roles.

        Raises:
            NotFoundError: user or a role does not exist
        """
        role_ids = list(dict.fromkeys(role_ids))

        with self.repo.transaction():
            self._require_user(user_id)
            for role_id in role_ids:
                self._require_role(role_id)

            self.repo.delete_user_role_assignments(user_id)
            assignments = [
                self.repo.add(UserRoleAssignment(
                    user_id=user_id,
                    role_id=role_id,
                    assigned_by=assigned_by,
                ))
                for role_id in role_ids
            ]

        logger.info(f"Replaced roles of user {user_id} with {len(role_ids)} role(s)")
        self._invalidate_user(user_id)
        return assignments

    def get_user_roles_and_permissions(self, user_id: UUID) -> UserAccessSummary:
        """
        Summarize a user's active roles and effective permissions.

        Raises:
            NotFoundError: user does not exist
        """
        user = self._require_user(user_id)
        roles = sorted(self.repo.get_active_roles_for_user(user_id), key=privilege_key)
        resolved = self.resolver.resolve(user_id)

        summaries = [
            RoleSummary(
                role_id=role.role_id,
                name=role.name,
                description=role.description,
                hierarchy_level=role.hierarchy_level,
                department=role.department,
                is_active=role.is_active,
                permissions=[
                    {
                        "id": str(p.permission_id),
                        "name": p.name,
                        "resource": p.resource,
                        "action": p.action,
                        "is_active": p.is_active,
                    }
                    for p in self.repo.get_role_permissions(role.role_id)
                ],
            )
            for role in roles
        ]

        return UserAccessSummary(
            user_id=user.user_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_active=user.is_active,
            roles=summaries,
            all_permissions=sorted(resolved.permissions),
            highest_role=resolved.highest_role,
        )

    def _invalidate_user(self, user_id: UUID) -> None:
        if self.cache is not None:
            self.cache.invalidate_user(user_id)
