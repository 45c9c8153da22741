"""Domain Events emitted by the cache-aside fetch orchestrator.

One event per state a fetch passes through: fresh cache hit, queued,
succeeded, served stale after a failure, failed without a fallback. The
prefetch scheduler adds an event per refresh it launches.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Fetch lifecycle events ---

@dataclass
class CacheFreshHit(DomainEvent):
    """Served from a non-expired cache entry; no network call made."""
    key: str
    stored_at: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class FetchQueued(DomainEvent):
    """Fetch submitted to the concurrency queue."""
    key: str
    force_refresh: bool = False
    joined_in_flight: bool = False # True when sharing an already running fetch
    timestamp: float = field(default_factory=time.time)

@dataclass
class FetchSucceeded(DomainEvent):
    """Fetch completed and the result was written to the cache."""
    key: str
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class StaleFallbackServed(DomainEvent):
    """Fetch failed and the last known cache entry was returned instead."""
    key: str
    error_type: str
    stored_at: float
    was_expired: bool
    timestamp: float = field(default_factory=time.time)

@dataclass
class FetchFailed(DomainEvent):
    """Fetch failed and no cache entry existed to fall back to."""
    key: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

# --- Prefetch events ---

@dataclass
class PrefetchLaunched(DomainEvent):
    """A background refresh was started for one stock and data kind."""
    code: str
    kind: str
    key: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
