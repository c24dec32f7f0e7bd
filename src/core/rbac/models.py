"""
RBAC Database Models - SQLAlchemy ORM models for the authorization engine.

Tables:
- permissions: Permission catalog (``resource.action`` names)
- roles: Role forest with numeric hierarchy levels
- role_permissions: Role-to-permission grants
- user_role_assignments: User-to-role assignments
- user_reporting: Manager/reportee edges (active edge + history)
"""

from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer,
    String, Text, Uuid, text
)
from sqlalchemy.orm import relationship

from database.models import Base, utcnow


# =============================================================================
# ENUMERATIONS
# =============================================================================

class HierarchyLevel(int, PyEnum):
    """
    Standard hierarchy levels of the recruitment agency.

    Lower numbers = higher privilege. The level is the sole input to
    privilege comparison; custom roles may use any non-negative integer.
    """
    ADMIN = 0
    VP = 1
    DIRECTOR = 2
    MANAGER = 3
    LEAD = 4
    INDIVIDUAL_CONTRIBUTOR = 5


class Department(str, PyEnum):
    """Departments used by the seeded role forest."""
    RESEARCH = "Research"
    BUSINESS = "Business"
    RECRUITMENT = "Recruitment"
    FINANCE = "Finance"


class PermissionAction(str, PyEnum):
    """
    Standard permission actions.

    ``MANAGE`` is a permission in its own right. Holding it does not imply
    create/read/update/delete, and holding all four does not imply it.
    """
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


# =============================================================================
# PERMISSION MODEL
# =============================================================================

class Permission(Base):
    """
    Permission catalog entry.

    Named ``resource.action`` (e.g. ``candidate.update``). Only active
    permissions contribute to a user's aggregate.
    """
    __tablename__ = "permissions"

    permission_id = Column(Uuid, primary_key=True, default=uuid4)

    name = Column(String(100), nullable=False, unique=True, index=True)
    resource = Column(String(50), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    role_permissions = relationship(
        "RolePermission",
        back_populates="permission",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_permission_resource_action", "resource", "action"),
    )

    def __repr__(self):
        return f"<Permission(name={self.name}, active={self.is_active})>"


# =============================================================================
# ROLE MODEL
# =============================================================================

class Role(Base):
    """
    Role definition.

    ``hierarchy_level`` decides privilege; ``parent_role_id`` records
    organizational lineage only and is never consulted by access checks.
    """
    __tablename__ = "roles"

    role_id = Column(Uuid, primary_key=True, default=uuid4)

    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    hierarchy_level = Column(Integer, nullable=False, index=True)
    department = Column(String(100), nullable=True, index=True)

    parent_role_id = Column(
        Uuid,
        ForeignKey("roles.role_id"),
        nullable=True,
        index=True
    )

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    role_permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    parent_role = relationship(
        "Role",
        remote_side=[role_id],
        foreign_keys=[parent_role_id],
        back_populates="child_roles"
    )
    child_roles = relationship(
        "Role",
        foreign_keys=[parent_role_id],
        back_populates="parent_role"
    )
    user_assignments = relationship(
        "UserRoleAssignment",
        back_populates="role"
    )

    __table_args__ = (
        Index("ix_role_hierarchy_active", "hierarchy_level", "is_active"),
        CheckConstraint("hierarchy_level >= 0", name="ck_role_hierarchy"),
    )

    def __repr__(self):
        return f"<Role(name={self.name}, level={self.hierarchy_level})>"


# =============================================================================
# ROLE-PERMISSION MAPPING
# =============================================================================

class RolePermission(Base):
    """
    Role-to-Permission grant. At most one row per pair.
    """
    __tablename__ = "role_permissions"

    role_id = Column(
        Uuid,
        ForeignKey("roles.role_id", ondelete="CASCADE"),
        primary_key=True
    )
    permission_id = Column(
        Uuid,
        ForeignKey("permissions.permission_id", ondelete="CASCADE"),
        primary_key=True
    )

    granted_at = Column(DateTime, default=utcnow, nullable=False)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions")

    __table_args__ = (
        Index("ix_role_permission_permission", "permission_id"),
    )

    def __repr__(self):
        return f"<RolePermission(role={self.role_id}, permission={self.permission_id})>"


# =============================================================================
# USER ROLE ASSIGNMENT
# =============================================================================

class UserRoleAssignment(Base):
    """
    User-to-Role assignment. At most one row per pair.

    The assignment counts while the user is active and ``expires_at`` is
    unset or in the future.
    """
    __tablename__ = "user_role_assignments"

    user_id = Column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        primary_key=True
    )
    role_id = Column(
        Uuid,
        ForeignKey("roles.role_id"),
        primary_key=True
    )

    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    assigned_by = Column(Uuid, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    role = relationship("Role", back_populates="user_assignments")
    user = relationship("User")

    __table_args__ = (
        Index("ix_user_role_assignment_role", "role_id"),
    )

    def __repr__(self):
        return f"<UserRoleAssignment(user={self.user_id}, role={self.role_id})>"


# =============================================================================
# USER REPORTING
# =============================================================================

class UserReporting(Base):
    """
    Manager/reportee edge.

    A user has at most one active edge; replaced edges are deactivated and
    kept as history.
    """
    __tablename__ = "user_reporting"

    reporting_id = Column(Uuid, primary_key=True, default=uuid4)

    user_id = Column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    manager_id = Column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", foreign_keys=[user_id])
    manager = relationship("User", foreign_keys=[manager_id])

    __table_args__ = (
        Index(
            "uq_user_reporting_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_user_reporting_manager_active", "manager_id", "is_active"),
        CheckConstraint("user_id <> manager_id", name="ck_user_reporting_not_self"),
    )

    def __repr__(self):
        return f"<UserReporting(user={self.user_id}, manager={self.manager_id}, active={self.is_active})>"
