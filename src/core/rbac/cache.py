"""
Permission Cache - optional per-user memo of resolved permissions.

Off by default: every access decision then reads the store. When enabled,
the mutating services drop entries as they commit:

- user-role changes drop that user's entry
- role, permission and grant changes drop every entry

Entries also age out after a TTL, and the least recently used entry is
evicted when the cache is full.

Every invalidation bumps a generation counter. A resolver captures the
generation before reading the store and hands it to ``set``; the write is
dropped if an invalidation happened in between, so a revoked permission is
never put back.

The cache lives in one process. With several workers, a change made through
one worker reaches the others only once their entries expire.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

class CacheScope(str, PyEnum):
    """Key namespaces."""
    USER = "user"


@dataclass
class CacheConfig:
    enabled: bool = False
    process_cache_size: int = 1000
    process_cache_ttl_seconds: int = 300


# =============================================================================
# ENTRY
# =============================================================================

@dataclass
class CacheEntry:
    """A user's resolved aggregate as of ``cached_at``."""
    permissions: FrozenSet[str]
    roles: List[str]
    highest_role: Optional[str]
    hierarchy_level: Optional[int]
    cached_at: float
    expires_at: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permissions": sorted(self.permissions),
            "roles": list(self.roles),
            "highest_role": self.highest_role,
            "hierarchy_level": self.hierarchy_level,
            "cached_at": self.cached_at,
            "expires_at": self.expires_at,
        }


# =============================================================================
# STORAGE
# =============================================================================

class TTLCache:
    """
    Bounded LRU map whose entries expire.

    Safe to share between the worker threads that serve sync routes.
    """

    def __init__(self, maxsize: int = 1000, ttl_seconds: int = 300):
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries.pop(key, None)
            while self._entries and len(self._entries) >= self.maxsize:
                self._entries.popitem(last=False)
            self._entries[key] = entry

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "maxsize": self.maxsize,
                "ttl_seconds": self.ttl_seconds,
            }


# =============================================================================
# PERMISSION CACHE
# =============================================================================

class PermissionCache:
    """
    Per-user cache of resolved permissions, keyed ``user:{user_id}``.

    When disabled, reads miss and writes are ignored, so callers never
    need to branch on ``enabled``.
    """

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or CacheConfig()
        self._store = TTLCache(
            maxsize=self.config.process_cache_size,
            ttl_seconds=self.config.process_cache_ttl_seconds,
        )
        self._generation = 0
        self._generation_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def generation(self) -> int:
        """Capture before a store read; pass to ``set`` with the result."""
        with self._generation_lock:
            return self._generation

    def _bump(self) -> None:
        with self._generation_lock:
            self._generation += 1

    @staticmethod
    def get_cache_key(user_id: UUID) -> str:
        return f"{CacheScope.USER.value}:{user_id}"

    def get(self, user_id: UUID) -> Optional[CacheEntry]:
        if not self.enabled:
            return None
        return self._store.get(self.get_cache_key(user_id))

    def set(
        self,
        user_id: UUID,
        permissions: FrozenSet[str],
        roles: List[str],
        highest_role: Optional[str],
        hierarchy_level: Optional[int],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Store a resolved aggregate.

        Returns False, storing nothing, when the cache is disabled or when
        ``generation`` is given and an invalidation has happened since.
        """
        if not self.enabled:
            return False

        cached_at = time.time()
        entry = CacheEntry(
            permissions=frozenset(permissions),
            roles=list(roles),
            highest_role=highest_role,
            hierarchy_level=hierarchy_level,
            cached_at=cached_at,
            expires_at=cached_at + self.config.process_cache_ttl_seconds,
        )
        with self._generation_lock:
            if generation is not None and generation != self._generation:
                logger.debug(f"Skipped stale permission aggregate for user {user_id}")
                return False
            self._store.set(self.get_cache_key(user_id), entry)
        return True

    def invalidate_user(self, user_id: UUID) -> int:
        self._bump()
        dropped = int(self._store.invalidate(self.get_cache_key(user_id)))
        logger.debug(f"Dropped {dropped} cached aggregate(s) for user {user_id}")
        return dropped

    def invalidate_global(self) -> int:
        self._bump()
        dropped = self._store.clear()
        logger.info(f"Dropped all {dropped} cached permission aggregate(s)")
        return dropped

    def stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "generation": self.generation,
            "process_cache": self._store.stats(),
        }


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_permission_cache: Optional[PermissionCache] = None
_cache_lock = threading.Lock()


def get_permission_cache() -> PermissionCache:
    """Process-wide cache, built from ``RBACSettings`` on first use."""
    global _permission_cache

    with _cache_lock:
        if _permission_cache is None:
            from config.settings import get_settings

            rbac_settings = get_settings().rbac
            _permission_cache = PermissionCache(CacheConfig(
                enabled=rbac_settings.cache_enabled,
                process_cache_size=rbac_settings.cache_size,
                process_cache_ttl_seconds=rbac_settings.cache_ttl_seconds,
            ))
        return _permission_cache


def reset_permission_cache() -> None:
    """Forget the process-wide cache so the next call re-reads settings."""
    global _permission_cache
    with _cache_lock:
        _permission_cache = None
