"""Persistent cache implementation.

Provides the diskcache-backed `CacheStore` with per-entry TTL that keeps
expired entries readable for stale fallback.
"""
