"""
Repository Interfaces for the Authorization Engine.

Repository interfaces define the contract for data access. Services receive
an implementation through their constructor instead of reaching for a
shared database handle.

The decision engine and guards depend only on IAccessReadStore, so tests
can run them against an in-memory store; the SQLAlchemy implementations live
in database.repositories.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID


class IAccessReadStore(ABC):
    """
    Read-only view needed to answer access decisions.

    Any store that answers these four questions can back a decision engine.
    """

    @abstractmethod
    def get_user(self, user_id: UUID) -> Optional[Any]:
        """
        Retrieve a user by ID.

        Args:
            user_id: User identifier

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    def get_active_roles_for_user(self, user_id: UUID) -> List[Any]:
        """
        Get the roles behind a user's active assignments.

        Only assignments that have not expired, held by an active user,
        pointing at an active role are returned.

        Args:
            user_id: User identifier

        Returns:
            Roles, in no particular order
        """
        pass

    @abstractmethod
    def get_active_permission_names(self, role_ids: Iterable[UUID]) -> Set[str]:
        """
        Get the names of active permissions granted to any of the roles.

        Args:
            role_ids: Role identifiers

        Returns:
            Set of permission names
        """
        pass

    @abstractmethod
    def get_role_by_name(self, name: str) -> Optional[Any]:
        """
        Retrieve a role by its unique name, active or not.

        Args:
            name: Role name

        Returns:
            The role if found, None otherwise
        """
        pass


class IRBACRepository(IAccessReadStore):
    """
    Full RBAC store: catalog, role graph, grants and user assignments.
    """

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Open a transaction that commits on success and rolls back on error."""
        pass

    @abstractmethod
    def add(self, entity: Any) -> Any:
        """Stage an entity for insert and flush it so it is visible to reads."""
        pass

    @abstractmethod
    def delete(self, entity: Any) -> None:
        """Delete an entity."""
        pass

    @abstractmethod
    def flush(self) -> None:
        """Push pending changes to the database inside the open transaction."""
        pass

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_permission(self, permission_id: UUID) -> Optional[Any]:
        pass

    @abstractmethod
    def get_permission_by_name(self, name: str) -> Optional[Any]:
        pass

    @abstractmethod
    def get_permissions_by_ids(self, permission_ids: Iterable[UUID]) -> List[Any]:
        pass

    @abstractmethod
    def list_permissions(
        self,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "name",
        descending: bool = False,
    ) -> List[Any]:
        """
        List permissions.

        Args:
            resource: Exact resource filter
            action: Exact action filter
            is_active: Active flag filter
            search: Case-insensitive substring over name, resource, action, description
            sort_by: Column to sort by
            descending: Sort direction

        Returns:
            Matching permissions
        """
        pass

    @abstractmethod
    def count_roles_with_permission(self, permission_id: UUID) -> int:
        pass

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_role(self, role_id: UUID) -> Optional[Any]:
        pass

    @abstractmethod
    def list_roles(
        self,
        department: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "hierarchy_level",
        descending: bool = False,
    ) -> List[Any]:
        """
        List roles.

        Args:
            department: Exact department filter
            is_active: Active flag filter
            search: Case-insensitive substring over name, description, department
            sort_by: Column to sort by
            descending: Sort direction

        Returns:
            Matching roles
        """
        pass

    @abstractmethod
    def get_child_roles(self, role_id: UUID) -> List[Any]:
        pass

    @abstractmethod
    def count_assignments_for_role(self, role_id: UUID) -> int:
        pass

    # -------------------------------------------------------------------------
    # Role-permission grants
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_role_permission(self, role_id: UUID, permission_id: UUID) -> Optional[Any]:
        pass

    @abstractmethod
    def get_role_permissions(self, role_id: UUID) -> List[Any]:
        """Get every permission granted to a role, active or not."""
        pass

    @abstractmethod
    def delete_role_permissions(
        self,
        role_id: UUID,
        permission_ids: Optional[Iterable[UUID]] = None,
    ) -> int:
        """
        Delete grants of a role.

        Args:
            role_id: Role identifier
            permission_ids: Grants to delete; all of the role's grants when None

        Returns:
            Number of rows deleted
        """
        pass

    # -------------------------------------------------------------------------
    # User-role assignments
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_user_role_assignment(self, user_id: UUID, role_id: UUID) -> Optional[Any]:
        pass

    @abstractmethod
    def get_user_role_assignments(self, user_id: UUID) -> List[Any]:
        """Get every assignment row of a user, including expired ones."""
        pass

    @abstractmethod
    def delete_user_role_assignments(self, user_id: UUID) -> int:
        pass


class IReportingRepository(ABC):
    """
    Store for the manager/reportee graph.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Open a transaction that commits on success and rolls back on error."""
        pass

    @abstractmethod
    def get_user(self, user_id: UUID) -> Optional[Any]:
        pass

    @abstractmethod
    def get_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, Any]:
        """Get users keyed by id; unknown ids are omitted."""
        pass

    @abstractmethod
    def list_users(self, active_only: bool = True) -> List[Any]:
        """List users ordered by creation time."""
        pass

    @abstractmethod
    def get_active_edge(self, user_id: UUID) -> Optional[Any]:
        """Get the user's active reporting edge, if any."""
        pass

    @abstractmethod
    def get_active_edges_for_manager(self, manager_id: UUID) -> List[Any]:
        pass

    @abstractmethod
    def list_active_edges(self) -> List[Any]:
        """Get every active edge in one read."""
        pass

    @abstractmethod
    def add_edge(self, user_id: UUID, manager_id: UUID) -> Any:
        pass

    @abstractmethod
    def deactivate_edges(self, user_id: UUID) -> int:
        """
        Deactivate every active edge of a user.

        Returns:
            Number of edges deactivated
        """
        pass

    @abstractmethod
    def get_active_roles_for_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, List[Any]]:
        """Get the active roles of several users in one read, keyed by user id."""
        pass
