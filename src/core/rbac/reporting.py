"""
Reporting Graph Service - who reports to whom.

Provides:
- Direct and transitive reportees of a manager
- A user's manager and upward management chain
- A combined organizational view of a user
- Manager assignment (create, re-point, replace, remove)

This graph is independent of the role forest: it is never consulted for an
allow/deny decision. A user has at most one active manager edge; replaced
edges are kept inactive as history.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from database.models import utcnow
from domain.repositories import IReportingRepository

from .errors import ConflictError, CycleError, NotFoundError
from .permissions import select_highest_role

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class OrgMember:
    """A user as seen from the reporting graph."""
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    is_active: bool
    role_name: Optional[str] = None
    hierarchy_level: Optional[int] = None
    department: Optional[str] = None
    reporting_since: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.user_id),
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "is_active": self.is_active,
            "role": {
                "name": self.role_name,
                "hierarchy_level": self.hierarchy_level,
                "department": self.department,
            } if self.role_name else None,
            "reporting_since": self.reporting_since.isoformat() if self.reporting_since else None,
        }


@dataclass
class OrganizationalHierarchy:
    """Manager plus direct and transitive reportees of one user."""
    user_id: UUID
    manager: Optional[OrgMember]
    direct_reportees: List[OrgMember] = field(default_factory=list)
    all_reportees: List[OrgMember] = field(default_factory=list)

    @property
    def total_direct_reportees(self) -> int:
        return len(self.direct_reportees)

    @property
    def total_all_reportees(self) -> int:
        return len(self.all_reportees)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "manager": self.manager.to_dict() if self.manager else None,
            "direct_reportees": [m.to_dict() for m in self.direct_reportees],
            "all_reportees": [m.to_dict() for m in self.all_reportees],
            "total_direct_reportees": self.total_direct_reportees,
            "total_all_reportees": self.total_all_reportees,
        }


@dataclass
class ManagerAssignment:
    """Result of a manager assignment."""
    reporting_id: UUID
    user_id: UUID
    manager_id: UUID
    is_active: bool
    assigned_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_edge(cls, edge: Any) -> "ManagerAssignment":
        return cls(
            reporting_id=edge.reporting_id,
            user_id=edge.user_id,
            manager_id=edge.manager_id,
            is_active=edge.is_active,
            assigned_at=edge.created_at,
            updated_at=edge.updated_at,
        )


# =============================================================================
# SERVICE
# =============================================================================

class ReportingGraphService:
    """
    Queries and maintains the manager/reportee graph.

    Usage:
        service = ReportingGraphService(ReportingRepository(session))
        hierarchy = service.get_organizational_hierarchy(user_id)
    """

    def __init__(self, repo: IReportingRepository):
        self.repo = repo

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_direct_reportees(self, manager_id: UUID) -> List[OrgMember]:
        edges = self.repo.get_active_edges_for_manager(manager_id)
        return self._members([(e.user_id, e.created_at) for e in edges])

    def get_all_reportees(self, manager_id: UUID) -> List[OrgMember]:
        """
        Direct and indirect reportees, each exactly once, breadth first.

        Computed from a single read of the active edges. A user already
        visited (the manager included) is never expanded again, so corrupt
        cyclic data ends the walk instead of looping.
        """
        children = self._children_by_manager()
        order = self._closure(manager_id, children)
        return self._members(order)

    def get_manager(self, user_id: UUID) -> Optional[OrgMember]:
        edge = self.repo.get_active_edge(user_id)
        if edge is None:
            return None
        members = self._members([(edge.manager_id, edge.created_at)])
        return members[0] if members else None

    def get_management_chain(self, user_id: UUID) -> List[OrgMember]:
        """Managers from the direct one up to the top of the tree."""
        chain = []
        visited: Set[UUID] = {user_id}
        edge = self.repo.get_active_edge(user_id)

        while edge is not None and edge.manager_id not in visited:
            visited.add(edge.manager_id)
            chain.append((edge.manager_id, edge.created_at))
            edge = self.repo.get_active_edge(edge.manager_id)

        return self._members(chain)

    def get_organizational_hierarchy(self, user_id: UUID) -> OrganizationalHierarchy:
        children = self._children_by_manager()
        closure = self._closure(user_id, children)

        return OrganizationalHierarchy(
            user_id=user_id,
            manager=self.get_manager(user_id),
            direct_reportees=self._members(children.get(user_id, [])),
            all_reportees=self._members(closure),
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def assign_manager(self, user_id: UUID, manager_id: UUID) -> ManagerAssignment:
        """
        Make ``manager_id`` the manager of ``user_id``.

        Any existing active edge is deactivated first.

        Raises:
            NotFoundError: user or manager does not exist
            CycleError: self-management, or the manager reports to the user
            ConflictError: this exact edge is already active
        """
        with self.repo.transaction():
            self._validate_pair(user_id, manager_id)

            current = self.repo.get_active_edge(user_id)
            if current is not None and current.manager_id == manager_id:
                raise ConflictError("Manager relationship already exists", user_id=str(user_id))

            self.repo.deactivate_edges(user_id)
            edge = self.repo.add_edge(user_id, manager_id)

        logger.info(f"Assigned manager {manager_id} to user {user_id}")
        return ManagerAssignment.from_edge(edge)

    def update_manager(self, user_id: UUID, new_manager_id: UUID) -> ManagerAssignment:
        """
        Re-point the user's existing active edge at a new manager.

        Raises:
            NotFoundError: user, manager or an existing active edge is missing
            CycleError: self-management, or the manager reports to the user
            ConflictError: the user already reports to this manager
        """
        with self.repo.transaction():
            self._validate_pair(user_id, new_manager_id)

            edge = self.repo.get_active_edge(user_id)
            if edge is None:
                raise NotFoundError(
                    "User does not have an existing manager relationship",
                    user_id=str(user_id),
                )
            if edge.manager_id == new_manager_id:
                raise ConflictError("User already has this manager", user_id=str(user_id))

            edge.manager_id = new_manager_id
            edge.updated_at = utcnow()

        logger.info(f"Updated manager of user {user_id} to {new_manager_id}")
        return ManagerAssignment.from_edge(edge)

    def replace_manager(self, user_id: UUID, manager_id: UUID) -> ManagerAssignment:
        """
        Deactivate every active edge of the user and create a fresh one.

        Unlike ``assign_manager`` this succeeds when the edge already exists,
        restarting its ``reporting_since``.

        Raises:
            NotFoundError: user or manager does not exist
            CycleError: self-management, or the manager reports to the user
        """
        with self.repo.transaction():
            self._validate_pair(user_id, manager_id)
            self.repo.deactivate_edges(user_id)
            edge = self.repo.add_edge(user_id, manager_id)

        logger.info(f"Replaced manager of user {user_id} with {manager_id}")
        return ManagerAssignment.from_edge(edge)

    def remove_manager(self, user_id: UUID) -> int:
        """
        Deactivate the user's active edge, keeping it as history.

        Raises:
            NotFoundError: the user has no active manager
        """
        with self.repo.transaction():
            removed = self.repo.deactivate_edges(user_id)
            if removed == 0:
                raise NotFoundError("User does not have a manager", user_id=str(user_id))

        logger.info(f"Removed manager of user {user_id}")
        return removed

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _validate_pair(self, user_id: UUID, manager_id: UUID) -> None:
        if self.repo.get_user(user_id) is None:
            raise NotFoundError("User not found", user_id=str(user_id))
        if self.repo.get_user(manager_id) is None:
            raise NotFoundError("Manager not found", user_id=str(manager_id))
        if user_id == manager_id:
            raise CycleError("User cannot be their own manager", user_id=str(user_id))

        reportee_ids = {uid for uid, _ in self._closure(user_id, self._children_by_manager())}
        if manager_id in reportee_ids:
            raise CycleError(
                "Manager already reports to this user",
                user_id=str(user_id),
                manager_id=str(manager_id),
            )

    def _children_by_manager(self) -> Dict[UUID, List[tuple]]:
        children: Dict[UUID, List[tuple]] = defaultdict(list)
        for edge in self.repo.list_active_edges():
            children[edge.manager_id].append((edge.user_id, edge.created_at))
        return children

    @staticmethod
    def _closure(root_id: UUID, children: Dict[UUID, List[tuple]]) -> List[tuple]:
        """Worklist walk returning (user_id, reporting_since) pairs below ``root_id``."""
        visited: Set[UUID] = {root_id}
        order: List[tuple] = []
        worklist = deque([root_id])

        while worklist:
            current = worklist.popleft()
            for user_id, since in children.get(current, []):
                if user_id in visited:
                    continue
                visited.add(user_id)
                order.append((user_id, since))
                worklist.append(user_id)

        return order

    def _members(self, entries: List[tuple]) -> List[OrgMember]:
        """Build OrgMembers for (user_id, reporting_since) pairs, keeping order."""
        if not entries:
            return []

        ids = [uid for uid, _ in entries]
        users = self.repo.get_users(ids)
        roles = self.repo.get_active_roles_for_users(ids)

        members = []
        for user_id, since in entries:
            user = users.get(user_id)
            if user is None:
                continue
            highest = select_highest_role(roles.get(user_id, []))
            members.append(OrgMember(
                user_id=user.user_id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                is_active=user.is_active,
                role_name=highest.name if highest else None,
                hierarchy_level=highest.hierarchy_level if highest else None,
                department=highest.department if highest else None,
                reporting_since=since,
            ))
        return members
