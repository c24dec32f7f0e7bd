"""
Role Graph Service - role forest maintenance.

Provides:
- Role creation with an optional parent
- Parent reassignment with cycle rejection
- Guarded deletion (no holders, no children)
- Ancestor chain and descendant walks

The parent pointer is organizational lineage only. Privilege comparisons use
``hierarchy_level`` and never follow these links.
"""

import logging
from collections import deque
from typing import Any, List, Optional, Set
from uuid import UUID

from domain.repositories import IRBACRepository

from .cache import PermissionCache
from .errors import ConflictError, CycleError, InvalidInputError, NotFoundError
from .models import Role

logger = logging.getLogger(__name__)


def validate_hierarchy_level(level: int) -> int:
    if isinstance(level, bool) or not isinstance(level, int) or level < 0:
        raise InvalidInputError("hierarchy_level must be a non-negative integer")
    return level


class RoleGraphService:
    """
    Maintains the role forest.

    Every public mutation runs in its own transaction. ``check_parent`` and
    ``require_role`` are transaction-free so other services can compose them
    inside their own unit of work.
    """

    def __init__(self, repo: IRBACRepository, cache: Optional[PermissionCache] = None):
        self.repo = repo
        self.cache = cache

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def require_role(self, role_id: UUID) -> Role:
        role = self.repo.get_role(role_id)
        if role is None:
            raise NotFoundError("Role not found", role_id=str(role_id))
        return role

    def get_children(self, role_id: UUID) -> List[Role]:
        self.require_role(role_id)
        return self.repo.get_child_roles(role_id)

    def get_descendants(self, role_id: UUID) -> List[Role]:
        """
        Every role below ``role_id``, breadth first.

        A visited set ends the walk even if stored data were ever cyclic.
        """
        self.require_role(role_id)

        descendants: List[Role] = []
        visited: Set[UUID] = {role_id}
        worklist = deque([role_id])

        while worklist:
            current = worklist.popleft()
            for child in self.repo.get_child_roles(current):
                if child.role_id in visited:
                    continue
                visited.add(child.role_id)
                descendants.append(child)
                worklist.append(child.role_id)

        return descendants

    def resolve_hierarchy_chain(self, role_id: UUID) -> List[Role]:
        """
        Ancestors of a role, from the direct parent up to the root.

        Returns:
            Empty list for a root role
        """
        role = self.require_role(role_id)

        chain: List[Role] = []
        visited: Set[UUID] = {role.role_id}
        parent_id = role.parent_role_id

        while parent_id is not None and parent_id not in visited:
            parent = self.repo.get_role(parent_id)
            if parent is None:
                logger.warning(f"Role {role_id} has a dangling ancestor {parent_id}")
                break
            visited.add(parent_id)
            chain.append(parent)
            parent_id = parent.parent_role_id

        return chain

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def check_parent(self, role_id: Optional[UUID], parent_role_id: Optional[UUID]) -> Optional[Role]:
        """
        Validate a prospective parent.

        Args:
            role_id: Role being re-parented, None for a role being created
            parent_role_id: Proposed parent, None for a root

        Returns:
            The parent role, or None

        Raises:
            NotFoundError: parent does not exist
            CycleError: parent is the role itself or one of its descendants
        """
        if parent_role_id is None:
            return None

        if role_id is not None and parent_role_id == role_id:
            raise CycleError("A role cannot be its own parent", role_id=str(role_id))

        parent = self.repo.get_role(parent_role_id)
        if parent is None:
            raise NotFoundError("Parent role not found", role_id=str(parent_role_id))

        if role_id is not None:
            descendant_ids = {r.role_id for r in self.get_descendants(role_id)}
            if parent_role_id in descendant_ids:
                raise CycleError(
                    "Parent assignment would create a cycle",
                    role_id=str(role_id),
                    parent_role_id=str(parent_role_id),
                )

        return parent

    def check_name_available(self, name: str, exclude_role_id: Optional[UUID] = None) -> None:
        existing = self.repo.get_role_by_name(name)
        if existing is not None and existing.role_id != exclude_role_id:
            raise ConflictError("Role with this name already exists", name=name)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def build_role(
        self,
        name: str,
        hierarchy_level: int,
        department: Optional[str] = None,
        parent_role_id: Optional[UUID] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> Role:
        """Validate and stage a new role without committing."""
        validate_hierarchy_level(hierarchy_level)
        self.check_name_available(name)
        self.check_parent(None, parent_role_id)

        role = Role(
            name=name,
            description=description,
            hierarchy_level=hierarchy_level,
            department=department,
            parent_role_id=parent_role_id,
            is_active=is_active,
        )
        return self.repo.add(role)

    def create_role(
        self,
        name: str,
        hierarchy_level: int,
        department: Optional[str] = None,
        parent_role_id: Optional[UUID] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> Role:
        """
        Create a role.

        Raises:
            ConflictError: name already used
            NotFoundError: parent does not exist
        """
        with self.repo.transaction():
            role = self.build_role(
                name=name,
                hierarchy_level=hierarchy_level,
                department=department,
                parent_role_id=parent_role_id,
                description=description,
                is_active=is_active,
            )

        logger.info(f"Created role {role.name} (level {role.hierarchy_level})")
        return role

    def reassign_parent(self, role_id: UUID, new_parent_id: Optional[UUID]) -> Role:
        """
        Move a role under a new parent, or make it a root with None.

        Raises:
            NotFoundError: role or parent does not exist
            CycleError: new parent is the role or one of its descendants
        """
        with self.repo.transaction():
            role = self.require_role(role_id)
            self.check_parent(role_id, new_parent_id)
            role.parent_role_id = new_parent_id
            self.repo.flush()

        logger.info(f"Role {role.name} moved under {new_parent_id}")
        return role

    def delete_role(self, role_id: UUID) -> None:
        """
        Delete a role and its grants.

        Raises:
            NotFoundError: role does not exist
            ConflictError: a user holds the role or a child role points at it
        """
        with self.repo.transaction():
            role = self.require_role(role_id)

            assignment_count = self.repo.count_assignments_for_role(role_id)
            if assignment_count > 0:
                raise ConflictError(
                    f"Cannot delete role. It is assigned to {assignment_count} user(s)",
                    role_id=str(role_id),
                )

            children = self.repo.get_child_roles(role_id)
            if children:
                raise ConflictError(
                    f"Cannot delete role. It has {len(children)} child role(s)",
                    role_id=str(role_id),
                )

            removed = self.repo.delete_role_permissions(role_id)
            self.repo.delete(role)

        logger.info(f"Deleted role {role.name} with {removed} grant(s)")
        self._invalidate_all()

    def _invalidate_all(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_global()
