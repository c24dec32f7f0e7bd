"""
RBAC Seed Command.

Loads the standard catalog into the database and wires the default
reporting lines. Safe to run repeatedly: permissions and roles are upserted
by name and grants, assignments and reporting edges are only added when
missing.

Usage:
    python -m core.rbac.seed
    python -m core.rbac.seed --skip-reporting
"""

import argparse
import logging
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from config.settings import RBACSettings, get_settings
from database.models import User
from database.repositories import RBACRepository, ReportingRepository
from database.transaction import transaction

from .catalog import RBACCatalog, get_rbac_catalog
from .errors import ConflictError
from .models import Permission, Role, RolePermission, UserRoleAssignment
from .permissions import select_highest_role
from .reporting import ReportingGraphService

logger = logging.getLogger(__name__)

ADMIN_ROLE_NAME = "Admin"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (12 rounds)."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


@dataclass
class SeedSummary:
    """Counts of what a seed run changed."""
    permissions_created: int = 0
    permissions_updated: int = 0
    roles_created: int = 0
    roles_updated: int = 0
    grants_created: int = 0
    admin_created: bool = False
    admin_role_assigned: bool = False
    reporting_created: int = 0
    reporting_skipped: int = 0
    problems: List[str] = field(default_factory=list)


# =============================================================================
# CATALOG SEEDING
# =============================================================================

def seed_rbac(
    session: Session,
    catalog: Optional[RBACCatalog] = None,
    rbac_settings: Optional[RBACSettings] = None,
) -> SeedSummary:
    """
    Upsert permissions, roles, parents and grants, then ensure the admin user.

    Existing grants are never removed, so edits made through the management
    API survive a re-seed.
    """
    catalog = catalog or get_rbac_catalog()
    rbac_settings = rbac_settings or get_settings().rbac
    summary = SeedSummary(problems=catalog.validate())
    if summary.problems:
        for problem in summary.problems:
            logger.error(f"Catalog problem: {problem}")
        raise ValueError("RBAC catalog is inconsistent")

    repo = RBACRepository(session)

    with transaction(session):
        permissions: Dict[str, Permission] = {}
        for definition in catalog.permissions:
            permission = repo.get_permission_by_name(definition.name)
            if permission is None:
                permission = repo.add(Permission(
                    name=definition.name,
                    resource=definition.resource,
                    action=definition.action,
                    description=definition.description,
                ))
                summary.permissions_created += 1
            elif permission.description != definition.description:
                permission.description = definition.description
                summary.permissions_updated += 1
            permissions[definition.name] = permission

        roles: Dict[str, Role] = {}
        for definition in catalog.roles:
            department = definition.department.value if definition.department else None
            role = repo.get_role_by_name(definition.name)
            if role is None:
                role = repo.add(Role(
                    name=definition.name,
                    description=definition.description,
                    hierarchy_level=int(definition.hierarchy_level),
                    department=department,
                ))
                summary.roles_created += 1
            elif (
                role.description != definition.description
                or role.hierarchy_level != int(definition.hierarchy_level)
                or role.department != department
            ):
                role.description = definition.description
                role.hierarchy_level = int(definition.hierarchy_level)
                role.department = department
                summary.roles_updated += 1
            roles[definition.name] = role

        # Parents are set after every role exists; catalog order is parents-first.
        for definition in catalog.roles:
            role = roles[definition.name]
            parent_id = roles[definition.parent_role].role_id if definition.parent_role else None
            if role.parent_role_id != parent_id:
                role.parent_role_id = parent_id

        for definition in catalog.roles:
            role = roles[definition.name]
            for name in definition.permissions:
                permission = permissions[name]
                if repo.get_role_permission(role.role_id, permission.permission_id) is None:
                    repo.add(RolePermission(role_id=role.role_id, permission_id=permission.permission_id))
                    summary.grants_created += 1

        _ensure_admin(session, repo, roles[ADMIN_ROLE_NAME], rbac_settings, summary)

    logger.info(
        f"Seeded RBAC catalog: {summary.permissions_created} permissions and "
        f"{summary.roles_created} roles created, {summary.grants_created} grants added"
    )
    return summary


def _ensure_admin(
    session: Session,
    repo: RBACRepository,
    admin_role: Role,
    rbac_settings: RBACSettings,
    summary: SeedSummary,
) -> None:
    email = rbac_settings.seed_admin_email.lower()
    admin = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if admin is None:
        admin = repo.add(User(
            email=email,
            first_name=rbac_settings.seed_admin_first_name,
            last_name=rbac_settings.seed_admin_last_name,
            password_hash=hash_password(rbac_settings.seed_admin_password),
            is_active=True,
        ))
        summary.admin_created = True
        logger.info(f"Created admin user {email}")

    if repo.get_user_role_assignment(admin.user_id, admin_role.role_id) is None:
        repo.add(UserRoleAssignment(user_id=admin.user_id, role_id=admin_role.role_id))
        summary.admin_role_assigned = True


# =============================================================================
# REPORTING SEEDING
# =============================================================================

@dataclass(frozen=True)
class SeedMember:
    """A user placed by the reporting plan."""
    user_id: UUID
    hierarchy_level: int
    department: Optional[str]


def build_reporting_plan(members: Sequence[SeedMember]) -> List[Tuple[UUID, UUID]]:
    """
    Compute default ``(user_id, manager_id)`` pairs.

    Members are grouped by level, then by department, in input order. Each
    member reports to the first member one level up in the same department.
    When nobody one level up carries a department (VP and Admin), the first
    member of that level is the manager regardless of department. Members
    with no matching manager are left out.
    """
    by_level: Dict[int, List[SeedMember]] = defaultdict(list)
    for member in members:
        by_level[member.hierarchy_level].append(member)

    plan: List[Tuple[UUID, UUID]] = []
    for level in sorted(by_level):
        upper = by_level.get(level - 1)
        if not upper:
            continue

        upper_by_department: Dict[Optional[str], SeedMember] = OrderedDict()
        for candidate in upper:
            upper_by_department.setdefault(candidate.department, candidate)

        departmentless = all(candidate.department is None for candidate in upper)
        for member in by_level[level]:
            if departmentless:
                manager = upper[0]
            else:
                manager = upper_by_department.get(member.department)
            if manager is not None and manager.user_id != member.user_id:
                plan.append((member.user_id, manager.user_id))

    return plan


def seed_user_reporting(session: Session) -> SeedSummary:
    """
    Create the default reporting edges for users that have no manager yet.

    Users who already report to someone are left alone. Edges the reporting
    graph rejects (cycles against manually created lines) are skipped.
    """
    summary = SeedSummary()
    repo = ReportingRepository(session)
    service = ReportingGraphService(repo)

    users = sorted(repo.list_users(active_only=True), key=lambda u: u.email)
    roles_by_user = repo.get_active_roles_for_users(u.user_id for u in users)

    members = []
    for user in users:
        highest = select_highest_role(roles_by_user.get(user.user_id, []))
        if highest is not None:
            members.append(SeedMember(user.user_id, highest.hierarchy_level, highest.department))

    for user_id, manager_id in build_reporting_plan(members):
        if repo.get_active_edge(user_id) is not None:
            summary.reporting_skipped += 1
            continue
        try:
            service.assign_manager(user_id, manager_id)
            summary.reporting_created += 1
        except ConflictError as exc:
            logger.warning(f"Skipped reporting line {user_id} -> {manager_id}: {exc.message}")
            summary.reporting_skipped += 1

    logger.info(
        f"Seeded reporting lines: {summary.reporting_created} created, "
        f"{summary.reporting_skipped} skipped"
    )
    return summary


# =============================================================================
# COMMAND LINE
# =============================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    from database.connection import get_db_session, init_schema
    from services.logging_config import configure_logging

    parser = argparse.ArgumentParser(description="Seed the RBAC catalog and default reporting lines")
    parser.add_argument("--skip-reporting", action="store_true", help="Only seed roles and permissions")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    init_schema()
    with get_db_session() as session:
        seed_rbac(session, rbac_settings=settings.rbac)
        if not args.skip_reporting:
            seed_user_reporting(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
