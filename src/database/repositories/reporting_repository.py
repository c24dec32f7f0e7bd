"""Reporting Repository Implementation.

Implements IReportingRepository using SQLAlchemy sessions. Replaced edges
are deactivated in place, never deleted, so the table doubles as history.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from core.rbac.models import Role, UserReporting, UserRoleAssignment
from database.models import User, utcnow
from database.transaction import TransactionManager
from domain.repositories import IReportingRepository

logger = logging.getLogger(__name__)


class ReportingRepository(IReportingRepository):
    """
    SQLAlchemy implementation of IReportingRepository.
    """

    def __init__(self, session: Session):
        self._session = session

    def transaction(self) -> TransactionManager:
        return TransactionManager(self._session)

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self._session.get(User, user_id)

    def get_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, User]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        stmt = select(User).where(User.user_id.in_(user_ids))
        return {user.user_id: user for user in self._session.scalars(stmt).all()}

    def list_users(self, active_only: bool = True) -> List[User]:
        stmt = select(User).order_by(User.created_at, User.email)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        return list(self._session.scalars(stmt).all())

    def get_active_edge(self, user_id: UUID) -> Optional[UserReporting]:
        stmt = select(UserReporting).where(
            UserReporting.user_id == user_id,
            UserReporting.is_active.is_(True),
        )
        return self._session.execute(stmt).scalars().first()

    def get_active_edges_for_manager(self, manager_id: UUID) -> List[UserReporting]:
        stmt = (
            select(UserReporting)
            .where(
                UserReporting.manager_id == manager_id,
                UserReporting.is_active.is_(True),
            )
            .order_by(UserReporting.created_at)
        )
        return list(self._session.scalars(stmt).all())

    def list_active_edges(self) -> List[UserReporting]:
        stmt = (
            select(UserReporting)
            .where(UserReporting.is_active.is_(True))
            .order_by(UserReporting.created_at)
        )
        return list(self._session.scalars(stmt).all())

    def add_edge(self, user_id: UUID, manager_id: UUID) -> UserReporting:
        edge = UserReporting(user_id=user_id, manager_id=manager_id, is_active=True)
        self._session.add(edge)
        self._session.flush()
        logger.debug(f"Reporting edge created: {user_id} -> {manager_id}")
        return edge

    def deactivate_edges(self, user_id: UUID) -> int:
        stmt = (
            update(UserReporting)
            .where(
                UserReporting.user_id == user_id,
                UserReporting.is_active.is_(True),
            )
            .values(is_active=False, updated_at=utcnow())
        )
        result = self._session.execute(stmt, execution_options={"synchronize_session": "fetch"})
        return result.rowcount

    def get_active_roles_for_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, List[Role]]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}

        stmt = (
            select(UserRoleAssignment.user_id, Role)
            .join(Role, Role.role_id == UserRoleAssignment.role_id)
            .where(
                UserRoleAssignment.user_id.in_(user_ids),
                Role.is_active.is_(True),
                or_(
                    UserRoleAssignment.expires_at.is_(None),
                    UserRoleAssignment.expires_at > utcnow(),
                ),
            )
        )
        roles: Dict[UUID, List[Role]] = defaultdict(list)
        for user_id, role in self._session.execute(stmt).all():
            roles[user_id].append(role)
        return dict(roles)
