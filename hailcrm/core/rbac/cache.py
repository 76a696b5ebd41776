"""Per-user TTL cache for resolved roles and permissions.

Entries older than the TTL are treated as absent and dropped when read; there
is no background sweep. The cache is process-local: another instance of the
service keeps serving its own entries until they expire.

Invalidation always wins over a re-population raced from a read that started
before it. Readers take a generation token before querying the store and pass
it back to ``set``; ``invalidate`` and ``clear`` move the generation so the
late write is discarded.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from hailcrm.core.config import get_settings

T = TypeVar("T")

Generation = Tuple[int, int]


@dataclass
class CacheEntry(Generic[T]):
    data: T
    stored_at: float


class TTLCache(Generic[T]):
    """Time-bounded memoization keyed by user id."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError(f"TTL must be positive, got {ttl_seconds}")
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._generations: Dict[Hashable, int] = {}
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._entries)

    def generation(self, key: Hashable) -> Generation:
        """Token identifying the current invalidation state of ``key``."""
        return (self._epoch, self._generations.get(key, 0))

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.stored_at >= self.ttl:
            # Only drop the entry we looked at; a concurrent set may have replaced it
            if self._entries.get(key) is entry:
                del self._entries[key]
            return None

        return entry.data

    def set(self, key: Hashable, data: T, generation: Optional[Generation] = None) -> bool:
        """Store ``data`` for ``key``.

        Returns False without storing when ``generation`` was taken before an
        invalidation of this key (or a full clear).
        """
        if generation is not None and generation != self.generation(key):
            return False
        self._entries[key] = CacheEntry(data=data, stored_at=self._clock())
        return True

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        # The epoch bump already outdates every earlier token
        self._entries.clear()
        self._generations.clear()
        self._epoch += 1


class PermissionCache:
    """Two independent caches per user: role names and effective permission names."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.roles: TTLCache[List[str]] = TTLCache(ttl_seconds, clock)
        self.permissions: TTLCache[List[str]] = TTLCache(ttl_seconds, clock)

    @property
    def ttl(self) -> float:
        return self.roles.ttl

    def invalidate(self, user_id: int) -> None:
        """Drop both cached entries for a user (call after any grant change)."""
        self.roles.invalidate(user_id)
        self.permissions.invalidate(user_id)

    def invalidate_all(self) -> None:
        """Drop every entry (call after changes that touch many users, e.g. re-seeding)."""
        self.roles.clear()
        self.permissions.clear()


_default_cache: Optional[PermissionCache] = None


def get_permission_cache() -> PermissionCache:
    """Return the process-wide cache, creating it from settings on first use."""
    global _default_cache
    if _default_cache is None:
        _default_cache = PermissionCache(ttl_seconds=get_settings().rbac_cache_ttl_seconds)
    return _default_cache


def reset_permission_cache() -> None:
    """Forget the process-wide cache so the next access rebuilds it from settings."""
    global _default_cache
    _default_cache = None


def clear_user_cache(user_id: int) -> None:
    get_permission_cache().invalidate(user_id)


def clear_all_caches() -> None:
    get_permission_cache().invalidate_all()
