"""
Access Guard Tests

Guards run against a hand-written in-memory store injected through the
decision engine's constructor, so no database is involved.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError

from core.rbac.access import AccessDecisionEngine
from core.rbac.errors import ErrorKind, ForbiddenError, InternalError, UnauthenticatedError
from core.rbac.guards import AccessDecision, AccessGuard, parse_caller_id
from domain.repositories import IAccessReadStore


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

@dataclass
class FakeUser:
    user_id: UUID
    is_active: bool = True


@dataclass
class FakeRole:
    name: str
    hierarchy_level: int
    role_id: UUID = field(default_factory=uuid4)
    permissions: Set[str] = field(default_factory=set)


class InMemoryAccessStore(IAccessReadStore):
    """Dict-backed store answering the four access questions."""

    def __init__(self):
        self.users: Dict[UUID, FakeUser] = {}
        self.roles: Dict[str, FakeRole] = {}
        self.assignments: Dict[UUID, List[str]] = {}
        self.fail = False
        self.failure: Exception = OperationalError("SELECT 1", {}, Exception("database is locked"))

    def add_user(self, is_active: bool = True, roles: Optional[List[str]] = None) -> UUID:
        user = FakeUser(uuid4(), is_active)
        self.users[user.user_id] = user
        self.assignments[user.user_id] = list(roles or [])
        return user.user_id

    def add_role(self, name: str, level: int, *permissions: str) -> FakeRole:
        role = FakeRole(name, level, permissions=set(permissions))
        self.roles[name] = role
        return role

    def _check(self):
        if self.fail:
            raise self.failure

    def get_user(self, user_id):
        self._check()
        return self.users.get(user_id)

    def get_active_roles_for_user(self, user_id):
        self._check()
        user = self.users.get(user_id)
        if user is None or not user.is_active:
            return []
        return [self.roles[name] for name in self.assignments.get(user_id, [])]

    def get_active_permission_names(self, role_ids):
        self._check()
        wanted = set(role_ids)
        return {p for role in self.roles.values() if role.role_id in wanted for p in role.permissions}

    def get_role_by_name(self, name):
        self._check()
        return self.roles.get(name)


@pytest.fixture
def store():
    store = InMemoryAccessStore()
    store.add_role("Admin", 0, "role.manage", "candidate.update")
    store.add_role("RA Manager", 3, "candidate.update")
    store.add_role("RA Lead", 4, "candidate.read")
    return store


@pytest.fixture
def guard(store):
    return AccessGuard(AccessDecisionEngine(store))


# =============================================================================
# IDENTITY
# =============================================================================

class TestCallerIdentity:
    """Missing or unusable identities are unauthenticated"""

    @pytest.mark.parametrize("raw", [None, "", "not-a-uuid", "123", object()])
    def test_unparseable_ids(self, raw):
        assert parse_caller_id(raw) is None

    def test_parse_accepts_uuid_and_string(self):
        user_id = uuid4()

        assert parse_caller_id(user_id) == user_id
        assert parse_caller_id(f" {user_id} ") == user_id

    def test_missing_identity(self, guard):
        decision = guard.require_permission(None, "candidate.read")

        assert decision.allowed is False
        assert decision.error_kind == ErrorKind.UNAUTHENTICATED

    def test_malformed_identity(self, guard):
        decision = guard.require_role("garbage", "Admin")

        assert decision.error_kind == ErrorKind.UNAUTHENTICATED

    def test_unknown_user(self, guard):
        decision = guard.require_permission(str(uuid4()), "candidate.read")

        assert decision.error_kind == ErrorKind.UNAUTHENTICATED

    def test_inactive_user(self, guard, store):
        user_id = store.add_user(is_active=False, roles=["Admin"])

        decision = guard.require_permission(user_id, "candidate.update")

        assert decision.error_kind == ErrorKind.UNAUTHENTICATED


# =============================================================================
# DECISIONS
# =============================================================================

class TestGuardDecisions:
    """Allowed and forbidden outcomes of each guard"""

    def test_require_permission(self, guard, store):
        lead = store.add_user(roles=["RA Lead"])
        manager = store.add_user(roles=["RA Manager"])

        assert guard.require_permission(manager, "candidate.update") == AccessDecision.allow(manager)
        denied = guard.require_permission(str(lead), "candidate.update")
        assert denied.error_kind == ErrorKind.FORBIDDEN
        assert denied.user_id == lead

    def test_require_role(self, guard, store):
        lead = store.add_user(roles=["RA Lead"])

        assert guard.require_role(lead, "RA Lead").allowed is True
        assert guard.require_role(lead, "Admin").error_kind == ErrorKind.FORBIDDEN

    def test_require_minimum_role(self, guard, store):
        admin = store.add_user(roles=["Admin"])
        lead = store.add_user(roles=["RA Lead"])

        assert guard.require_minimum_role(admin, "RA Manager").allowed is True
        assert guard.require_minimum_role(lead, "RA Manager").error_kind == ErrorKind.FORBIDDEN

    def test_require_minimum_role_without_roles(self, guard, store):
        nobody = store.add_user()

        assert guard.require_minimum_role(nobody, "RA Lead").error_kind == ErrorKind.FORBIDDEN

    def test_require_any_role(self, guard, store):
        lead = store.add_user(roles=["RA Lead"])

        assert guard.require_any_role(lead, ["Admin", "RA Lead"]).allowed is True
        assert guard.require_any_role(lead, ["Admin"]).error_kind == ErrorKind.FORBIDDEN

    def test_require_authenticated(self, guard, store):
        nobody = store.add_user()

        assert guard.require_authenticated(nobody).allowed is True


# =============================================================================
# FAILURES
# =============================================================================

class TestStoreFailures:
    """A store that cannot answer produces INTERNAL, never a silent allow"""

    def test_store_failure_is_internal(self, guard, store, caplog):
        user_id = store.add_user(roles=["Admin"])
        store.fail = True

        with caplog.at_level(logging.ERROR, logger="rbac.access"):
            decision = guard.require_permission(user_id, "candidate.update")

        assert decision.allowed is False
        assert decision.error_kind == ErrorKind.INTERNAL
        assert any(record.exc_info for record in caplog.records)

    def test_non_sql_store_failure_is_internal(self, guard, store, caplog):
        user_id = store.add_user(roles=["Admin"])
        store.failure = ConnectionError("replica unreachable")
        store.fail = True

        with caplog.at_level(logging.ERROR, logger="rbac.access"):
            decision = guard.require_role(user_id, "Admin")

        assert decision.allowed is False
        assert decision.error_kind == ErrorKind.INTERNAL
        assert any("ConnectionError" in record.getMessage() for record in caplog.records)

    def test_denial_log_omits_requirement(self, guard, store, caplog):
        lead = store.add_user(roles=["RA Lead"])

        with caplog.at_level(logging.INFO, logger="rbac.access"):
            guard.require_permission(lead, "role.manage")

        assert caplog.records
        assert all("role.manage" not in record.getMessage() for record in caplog.records)
        assert all("role.manage" not in str(getattr(r, "extra_data", "")) for r in caplog.records)


class TestRaiseForDenial:
    """Denials map to exceptions with generic messages"""

    def test_allowed_does_not_raise(self):
        AccessDecision.allow(uuid4()).raise_for_denial()

    @pytest.mark.parametrize("kind, error, message", [
        (ErrorKind.UNAUTHENTICATED, UnauthenticatedError, "Authentication required"),
        (ErrorKind.FORBIDDEN, ForbiddenError, "Insufficient permissions"),
        (ErrorKind.INTERNAL, InternalError, "Internal error"),
    ])
    def test_denials_raise(self, kind, error, message):
        with pytest.raises(error) as excinfo:
            AccessDecision.deny(kind).raise_for_denial()

        assert excinfo.value.message == message
