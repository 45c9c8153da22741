"""Persistent TTL cache backed by `diskcache`.

Entries live under a private key namespace inside a disk cache directory and
are stored as JSON documents `{"value", "timestamp", "expiry"}`. Expiry is
tracked here rather than by diskcache so that expired entries stay readable:
`get` returns them flagged as expired, which lets the fetch orchestrator
serve last known good data while the backend is down.
"""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import diskcache as dc

from stockcast.domain.errors import StorageFailure
from stockcast.domain.interfaces.cache import CacheLookup, CacheStore
from stockcast.domain.models.common import CacheKey, CacheNamespace

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".stockcast" / "cache"
DEFAULT_NAMESPACE = CacheNamespace("stockcast_cache_")
DEFAULT_TTL_SECONDS = 24 * 60 * 60 # 24 hours

# Errors diskcache can raise on write (disk full, locked database, I/O)
WRITE_ERRORS = (OSError, sqlite3.Error, dc.Timeout)


class PersistentCacheStore(CacheStore):
    """Namespaced TTL cache on disk. Writes are best effort."""

    def __init__(
        self,
        cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR,
        namespace: str = DEFAULT_NAMESPACE,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Opens (or creates) the disk cache.

        Args:
            cache_dir: Directory holding the diskcache database.
            namespace: Key prefix owned by this store.
            default_ttl: TTL in seconds used when `set` gets none.
            clock: Returns the current time in seconds; injectable for tests.
        """
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self.cache_dir = Path(cache_dir)
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._clock = clock
        self._disk = dc.Cache(str(self.cache_dir), timeout=1)
        logger.info(f"PersistentCacheStore initialized at {self.cache_dir} (namespace='{namespace}', ttl={default_ttl}s)")

    def _full_key(self, key: CacheKey) -> str:
        return f"{self.namespace}{key}"

    def _owned_keys(self):
        # Snapshot first: entries are deleted while walking
        return [k for k in list(self._disk) if isinstance(k, str) and k.startswith(self.namespace)]

    @staticmethod
    def _decode(raw: Any) -> Dict[str, Any]:
        """Parses a stored document. Raises ValueError when unreadable."""
        if not isinstance(raw, (str, bytes)):
            raise ValueError(f"unexpected stored type {type(raw).__name__}")
        item = json.loads(raw)
        if not isinstance(item, dict) or "value" not in item:
            raise ValueError("entry is missing its value")
        return {
            "value": item["value"],
            "timestamp": float(item["timestamp"]),
            "expiry": float(item["expiry"]),
        }

    def _write(self, full_key: str, value: Any, ttl: float) -> None:
        now = self._clock()
        item = {"value": value, "timestamp": now, "expiry": now + ttl}
        try:
            self._disk.set(full_key, json.dumps(item))
        except (TypeError, ValueError) as e:
            raise StorageFailure(f"Value for '{full_key}' is not JSON serialisable: {e}") from e
        except WRITE_ERRORS as e:
            raise StorageFailure(f"Failed to persist '{full_key}': {e}") from e

    # --- CacheStore Interface Implementation ---

    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores a value with expiry `now + ttl`, overwriting any prior entry."""
        effective_ttl = self.default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            raise ValueError(f"ttl must be positive, got {effective_ttl}")
        try:
            self._write(self._full_key(key), value, effective_ttl)
            logger.debug(f"Cache SET key={key} ttl={effective_ttl}s")
        except StorageFailure as e:
            logger.warning(f"Cache write failed, reclaiming expired entries: {e}")
            await self.clear_expired()

    async def get(self, key: CacheKey) -> Optional[CacheLookup]:
        """Returns the entry with its freshness flag; expired entries are kept."""
        try:
            raw = self._disk.get(self._full_key(key))
        except WRITE_ERRORS as e:
            logger.warning(f"Cache read failed for key={key}: {e}")
            return None
        if raw is None:
            logger.debug(f"Cache MISS key={key}")
            return None
        try:
            item = self._decode(raw)
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Failed to parse cache entry key={key}: {e}")
            return None
        is_expired = self._clock() > item["expiry"]
        logger.debug(f"Cache HIT key={key} expired={is_expired}")
        return CacheLookup(value=item["value"], is_expired=is_expired, stored_at=item["timestamp"])

    async def remove(self, key: CacheKey) -> None:
        try:
            self._disk.delete(self._full_key(key))
        except WRITE_ERRORS as e:
            logger.warning(f"Failed to remove cache key={key}: {e}")

    async def clear_all(self) -> int:
        """Deletes every entry in this store's namespace."""
        removed = 0
        try:
            for full_key in self._owned_keys():
                if self._disk.delete(full_key):
                    removed += 1
        except WRITE_ERRORS as e:
            logger.warning(f"Failed to clear cache entries: {e}")
        logger.info(f"Cleared {removed} cache entries in namespace '{self.namespace}'")
        return removed

    async def clear_expired(self) -> int:
        """Deletes expired (and unreadable) entries in this store's namespace."""
        now = self._clock()
        removed = 0
        try:
            for full_key in self._owned_keys():
                try:
                    item = self._decode(self._disk.get(full_key))
                    expired = now > item["expiry"]
                except (ValueError, TypeError, KeyError):
                    expired = True
                if expired and self._disk.delete(full_key):
                    removed += 1
        except WRITE_ERRORS as e:
            logger.warning(f"Failed to clear expired cache entries: {e}")
        logger.debug(f"Removed {removed} expired cache entries")
        return removed

    def close(self) -> None:
        """Releases the underlying diskcache handle."""
        self._disk.close()
