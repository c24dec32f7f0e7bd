"""RBAC Repository Implementation.

Implements IRBACRepository using SQLAlchemy sessions. Every query filters on
the active flags in SQL so callers never aggregate inactive data.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from core.rbac.models import Permission, Role, RolePermission, UserRoleAssignment
from database.models import User, utcnow
from database.transaction import TransactionManager
from domain.repositories import IRBACRepository

logger = logging.getLogger(__name__)

PERMISSION_SORT_COLUMNS = {
    "name": Permission.name,
    "resource": Permission.resource,
    "action": Permission.action,
    "created_at": Permission.created_at,
    "updated_at": Permission.updated_at,
}

ROLE_SORT_COLUMNS = {
    "name": Role.name,
    "hierarchy_level": Role.hierarchy_level,
    "department": Role.department,
    "created_at": Role.created_at,
    "updated_at": Role.updated_at,
}


def _order(column, descending: bool):
    return column.desc() if descending else column.asc()


class RBACRepository(IRBACRepository):
    """
    SQLAlchemy implementation of IRBACRepository.

    The session is owned by the caller (request scope, CLI command or test
    fixture); the repository only opens transactions on it.
    """

    def __init__(self, session: Session):
        """
        Initialize repository with a session.

        Args:
            session: SQLAlchemy session.
        """
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    def transaction(self) -> TransactionManager:
        return TransactionManager(self._session)

    def add(self, entity: Any) -> Any:
        self._session.add(entity)
        self._session.flush()
        return entity

    def delete(self, entity: Any) -> None:
        self._session.delete(entity)
        self._session.flush()

    def flush(self) -> None:
        self._session.flush()

    # -------------------------------------------------------------------------
    # Access reads
    # -------------------------------------------------------------------------

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self._session.get(User, user_id)

    def get_active_roles_for_user(self, user_id: UUID) -> List[Role]:
        stmt = (
            select(Role)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.role_id)
            .join(User, User.user_id == UserRoleAssignment.user_id)
            .where(
                UserRoleAssignment.user_id == user_id,
                User.is_active.is_(True),
                Role.is_active.is_(True),
                or_(
                    UserRoleAssignment.expires_at.is_(None),
                    UserRoleAssignment.expires_at > utcnow(),
                ),
            )
        )
        return list(self._session.scalars(stmt).all())

    def get_active_permission_names(self, role_ids: Iterable[UUID]) -> Set[str]:
        role_ids = list(role_ids)
        if not role_ids:
            return set()

        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.permission_id)
            .where(
                RolePermission.role_id.in_(role_ids),
                Permission.is_active.is_(True),
            )
            .distinct()
        )
        return set(self._session.scalars(stmt).all())

    def get_role_by_name(self, name: str) -> Optional[Role]:
        stmt = select(Role).where(Role.name == name)
        return self._session.execute(stmt).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    def get_permission(self, permission_id: UUID) -> Optional[Permission]:
        return self._session.get(Permission, permission_id)

    def get_permission_by_name(self, name: str) -> Optional[Permission]:
        stmt = select(Permission).where(Permission.name == name)
        return self._session.execute(stmt).scalar_one_or_none()

    def get_permissions_by_ids(self, permission_ids: Iterable[UUID]) -> List[Permission]:
        permission_ids = list(permission_ids)
        if not permission_ids:
            return []
        stmt = select(Permission).where(Permission.permission_id.in_(permission_ids))
        return list(self._session.scalars(stmt).all())

    def list_permissions(
        self,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "name",
        descending: bool = False,
    ) -> List[Permission]:
        stmt = select(Permission)

        if resource:
            stmt = stmt.where(Permission.resource == resource)
        if action:
            stmt = stmt.where(Permission.action == action)
        if is_active is not None:
            stmt = stmt.where(Permission.is_active.is_(is_active))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Permission.name.ilike(pattern),
                    Permission.resource.ilike(pattern),
                    Permission.action.ilike(pattern),
                    Permission.description.ilike(pattern),
                )
            )

        column = PERMISSION_SORT_COLUMNS.get(sort_by, Permission.name)
        stmt = stmt.order_by(_order(column, descending), Permission.name.asc())
        return list(self._session.scalars(stmt).all())

    def count_roles_with_permission(self, permission_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(RolePermission)
            .where(RolePermission.permission_id == permission_id)
        )
        return self._session.execute(stmt).scalar_one()

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    def get_role(self, role_id: UUID) -> Optional[Role]:
        return self._session.get(Role, role_id)

    def list_roles(
        self,
        department: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "hierarchy_level",
        descending: bool = False,
    ) -> List[Role]:
        stmt = select(Role)

        if department:
            stmt = stmt.where(Role.department == department)
        if is_active is not None:
            stmt = stmt.where(Role.is_active.is_(is_active))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Role.name.ilike(pattern),
                    Role.description.ilike(pattern),
                    Role.department.ilike(pattern),
                )
            )

        column = ROLE_SORT_COLUMNS.get(sort_by, Role.hierarchy_level)
        stmt = stmt.order_by(_order(column, descending), Role.name.asc())
        return list(self._session.scalars(stmt).all())

    def get_child_roles(self, role_id: UUID) -> List[Role]:
        stmt = select(Role).where(Role.parent_role_id == role_id).order_by(Role.name)
        return list(self._session.scalars(stmt).all())

    def count_assignments_for_role(self, role_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(UserRoleAssignment)
            .where(UserRoleAssignment.role_id == role_id)
        )
        return self._session.execute(stmt).scalar_one()

    # -------------------------------------------------------------------------
    # Role-permission grants
    # -------------------------------------------------------------------------

    def get_role_permission(self, role_id: UUID, permission_id: UUID) -> Optional[RolePermission]:
        return self._session.get(RolePermission, (role_id, permission_id))

    def get_role_permissions(self, role_id: UUID) -> List[Permission]:
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.permission_id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.resource, Permission.action)
        )
        return list(self._session.scalars(stmt).all())

    def delete_role_permissions(
        self,
        role_id: UUID,
        permission_ids: Optional[Iterable[UUID]] = None,
    ) -> int:
        stmt = delete(RolePermission).where(RolePermission.role_id == role_id)
        if permission_ids is not None:
            permission_ids = list(permission_ids)
            if not permission_ids:
                return 0
            stmt = stmt.where(RolePermission.permission_id.in_(permission_ids))

        result = self._session.execute(stmt, execution_options={"synchronize_session": "fetch"})
        return result.rowcount

    # -------------------------------------------------------------------------
    # User-role assignments
    # -------------------------------------------------------------------------

    def get_user_role_assignment(self, user_id: UUID, role_id: UUID) -> Optional[UserRoleAssignment]:
        return self._session.get(UserRoleAssignment, (user_id, role_id))

    def get_user_role_assignments(self, user_id: UUID) -> List[UserRoleAssignment]:
        stmt = (
            select(UserRoleAssignment)
            .where(UserRoleAssignment.user_id == user_id)
            .order_by(UserRoleAssignment.assigned_at)
        )
        return list(self._session.scalars(stmt).all())

    def delete_user_role_assignments(self, user_id: UUID) -> int:
        stmt = delete(UserRoleAssignment).where(UserRoleAssignment.user_id == user_id)
        result = self._session.execute(stmt, execution_options={"synchronize_session": "fetch"})
        return result.rowcount
