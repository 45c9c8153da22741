"""Interface for the persistent TTL cache.

Defines the contract for storing, retrieving and expiring cached data.
Reads return expired entries too, flagged as such, so callers can fall back
to stale data when the backend is unavailable.
"""

import abc
from dataclasses import dataclass
from typing import Any, Optional

from ..models.common import CacheKey

@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read. `is_expired` is True once now > expiry."""
    value: Any
    is_expired: bool
    stored_at: float

class CacheStore(abc.ABC):
    """Abstract Base Class for cache operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[CacheLookup]:
        """Retrieves an entry, expired or not.

        Args:
            key: The cache key to retrieve.

        Returns:
            The entry with its freshness flag, or None if absent or unreadable.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores a value, overwriting any previous entry. Best effort.

        Args:
            key: The cache key to store the value under.
            value: A JSON-serialisable value.
            ttl: Time-to-live in seconds (store default if None).
        """
        pass

    @abc.abstractmethod
    async def remove(self, key: CacheKey) -> None:
        """Deletes one entry; no-op if absent."""
        pass

    @abc.abstractmethod
    async def clear_all(self) -> int:
        """Deletes every entry owned by this store. Returns the count removed."""
        pass

    @abc.abstractmethod
    async def clear_expired(self) -> int:
        """Deletes expired entries to reclaim space. Returns the count removed."""
        pass
