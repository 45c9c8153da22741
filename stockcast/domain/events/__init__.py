"""Domain Event definitions.

Fetch outcomes (fresh hit, success, stale fallback, failure) and prefetch
launches, emitted for logging and for observers such as tests.
"""
