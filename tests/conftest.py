"""Pytest configuration and fixtures for the authorization engine."""

import os
from datetime import timedelta

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite")
os.environ.setdefault("RBAC_CACHE_ENABLED", "false")

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from config.settings import RBACSettings
from core.rbac.assignments import UserRoleService
from core.rbac.management import RBACManagementService
from core.rbac.models import UserRoleAssignment
from core.rbac.reporting import ReportingGraphService
from database.connection import create_session_factory, enable_sqlite_foreign_keys, init_schema
from database.models import User, utcnow
from database.repositories import RBACRepository, ReportingRepository


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test, foreign keys enforced."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def rbac_repo(session):
    return RBACRepository(session)


@pytest.fixture
def reporting_repo(session):
    return ReportingRepository(session)


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def management(rbac_repo):
    return RBACManagementService(rbac_repo)


@pytest.fixture
def user_roles(rbac_repo):
    return UserRoleService(rbac_repo)


@pytest.fixture
def reporting(reporting_repo):
    return ReportingGraphService(reporting_repo)


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture
def make_user(session):
    """
    Create and commit a user.

    Usage:
        alice = make_user("alice")
        bob = make_user("bob", is_active=False)
    """
    def _make(name: str, is_active: bool = True) -> User:
        user = User(
            email=f"{name.lower()}@example.com",
            first_name=name.capitalize(),
            last_name="Tester",
            is_active=is_active,
        )
        session.add(user)
        session.commit()
        return user

    return _make


@pytest.fixture
def grant_role(session):
    """Attach a role to a user directly, optionally already expired."""
    def _grant(user: User, role, expired: bool = False) -> UserRoleAssignment:
        assignment = UserRoleAssignment(
            user_id=user.user_id,
            role_id=role.role_id,
            expires_at=utcnow() - timedelta(days=1) if expired else None,
        )
        session.add(assignment)
        session.commit()
        return assignment

    return _grant


@pytest.fixture
def rbac_settings():
    return RBACSettings(seed_admin_email="root@example.com", seed_admin_password="Secret#123")


@pytest.fixture
def seeded(session, rbac_settings):
    """Standard catalog loaded; returns the seed summary."""
    from core.rbac.seed import seed_rbac
    return seed_rbac(session, rbac_settings=rbac_settings)
