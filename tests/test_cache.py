"""
Permission Cache Tests

The cache is optional; when enabled, mutations must drop stale entries so
a decision never outlives the change that invalidated it.
"""

import time

import pytest

from core.rbac.access import AccessDecisionEngine
from core.rbac.assignments import UserRoleService
from core.rbac.cache import CacheConfig, CacheEntry, PermissionCache, TTLCache, get_permission_cache
from core.rbac.management import RBACManagementService


def _entry(ttl: float = 60) -> CacheEntry:
    now = time.time()
    return CacheEntry(
        permissions=frozenset({"x.read"}),
        roles=["Lead"],
        highest_role="Lead",
        hierarchy_level=4,
        cached_at=now,
        expires_at=now + ttl,
    )


class TestTTLCache:
    """LRU with TTL"""

    def test_set_and_get(self):
        cache = TTLCache(maxsize=2)
        cache.set("a", _entry())

        assert cache.get("a").roles == ["Lead"]
        assert cache.get("missing") is None

    def test_expired_entry_is_dropped(self):
        cache = TTLCache()
        cache.set("a", _entry(ttl=-1))

        assert cache.get("a") is None
        assert len(cache) == 0

    def test_evicts_least_recently_used(self):
        cache = TTLCache(maxsize=2)
        cache.set("a", _entry())
        cache.set("b", _entry())
        cache.get("a")
        cache.set("c", _entry())

        assert cache.get("b") is None
        assert cache.get("a") is not None
        assert cache.get("c") is not None

    def test_invalidate_prefix_and_clear(self):
        cache = TTLCache()
        cache.set("user:1", _entry())
        cache.set("user:2", _entry())
        cache.set("other", _entry())

        assert cache.invalidate_prefix("user:") == 2
        assert cache.clear() == 1


class TestPermissionCacheConfig:

    def test_disabled_cache_stores_nothing(self, make_user):
        cache = PermissionCache()
        user = make_user("ann")
        cache.set(user.user_id, frozenset({"x.read"}), ["Lead"], "Lead", 4)

        assert cache.enabled is False
        assert cache.get(user.user_id) is None

    def test_process_cache_follows_settings(self, monkeypatch):
        monkeypatch.setenv("RBAC_CACHE_ENABLED", "true")
        monkeypatch.setenv("RBAC_CACHE_TTL_SECONDS", "30")

        cache = get_permission_cache()

        assert cache.enabled is True
        assert cache.stats()["process_cache"]["ttl_seconds"] == 30
        assert get_permission_cache() is cache


# =============================================================================
# INVALIDATION THROUGH MUTATIONS
# =============================================================================

@pytest.fixture
def cache():
    return PermissionCache(CacheConfig(enabled=True))


@pytest.fixture
def cached_engine(rbac_repo, cache):
    return AccessDecisionEngine(rbac_repo, cache)


@pytest.fixture
def cached_management(rbac_repo, cache):
    return RBACManagementService(rbac_repo, cache)


@pytest.fixture
def cached_user_roles(rbac_repo, cache):
    return UserRoleService(rbac_repo, cache)


@pytest.fixture
def lead_setup(cached_management):
    read = cached_management.create_permission("x", "read")
    write = cached_management.create_permission("x", "update")
    lead = cached_management.create_role("Lead", 4, permission_ids=[read.permission_id])
    return {"read": read, "write": write, "lead": lead}


class TestCacheInvalidation:

    def test_second_resolve_is_cached(self, cached_engine, cached_user_roles, lead_setup, make_user):
        user = make_user("ann")
        cached_user_roles.assign_role(user.user_id, lead_setup["lead"].role_id)

        assert cached_engine.resolve(user.user_id).from_cache is False
        assert cached_engine.resolve(user.user_id).from_cache is True

    def test_role_assignment_invalidates_user(self, cached_engine, cached_user_roles, lead_setup, make_user):
        user = make_user("ann")
        assert cached_engine.has_permission(user.user_id, "x.read") is False

        cached_user_roles.assign_role(user.user_id, lead_setup["lead"].role_id)
        assert cached_engine.has_permission(user.user_id, "x.read") is True

        cached_user_roles.remove_role(user.user_id, lead_setup["lead"].role_id)
        assert cached_engine.has_permission(user.user_id, "x.read") is False

    def test_grant_change_invalidates_everyone(
        self, cached_engine, cached_user_roles, cached_management, lead_setup, make_user
    ):
        ann, bob = make_user("ann"), make_user("bob")
        for user in (ann, bob):
            cached_user_roles.assign_role(user.user_id, lead_setup["lead"].role_id)
            assert cached_engine.has_permission(user.user_id, "x.update") is False

        cached_management.assign_permission_to_role(
            lead_setup["lead"].role_id, lead_setup["write"].permission_id
        )

        assert cached_engine.has_permission(ann.user_id, "x.update") is True
        assert cached_engine.has_permission(bob.user_id, "x.update") is True

    def test_permission_deactivation_invalidates(
        self, cached_engine, cached_user_roles, cached_management, lead_setup, make_user
    ):
        user = make_user("ann")
        cached_user_roles.assign_role(user.user_id, lead_setup["lead"].role_id)
        assert cached_engine.has_permission(user.user_id, "x.read") is True

        cached_management.set_permission_active(lead_setup["read"].permission_id, False)

        assert cached_engine.has_permission(user.user_id, "x.read") is False


class TestStaleWrites:
    """An aggregate read before an invalidation must not be cached after it"""

    def test_set_with_old_generation_is_dropped(self, cache, make_user):
        user = make_user("ann")
        generation = cache.generation

        cache.invalidate_global()
        stored = cache.set(user.user_id, frozenset({"x.read"}), ["Lead"], "Lead", 4, generation=generation)

        assert stored is False
        assert cache.get(user.user_id) is None

    def test_user_invalidation_also_moves_generation(self, cache, make_user):
        ann, bob = make_user("ann"), make_user("bob")
        generation = cache.generation

        cache.invalidate_user(bob.user_id)

        assert cache.set(ann.user_id, frozenset(), [], None, None, generation=generation) is False
        assert cache.set(ann.user_id, frozenset(), [], None, None, generation=cache.generation) is True

    def test_revocation_during_resolve_is_not_cached(
        self, cached_engine, cached_user_roles, cached_management, rbac_repo, lead_setup, monkeypatch, make_user
    ):
        user = make_user("ann")
        cached_user_roles.assign_role(user.user_id, lead_setup["lead"].role_id)
        read_permissions = rbac_repo.get_active_permission_names

        def read_then_revoke(role_ids):
            names = read_permissions(role_ids)
            monkeypatch.setattr(rbac_repo, "get_active_permission_names", read_permissions)
            cached_management.remove_permission_from_role(
                lead_setup["lead"].role_id, lead_setup["read"].permission_id
            )
            return names

        monkeypatch.setattr(rbac_repo, "get_active_permission_names", read_then_revoke)

        # This answer predates the revocation
        assert cached_engine.has_permission(user.user_id, "x.read") is True
        assert cached_engine.has_permission(user.user_id, "x.read") is False
