"""Request admission control.

Contains the FIFO bounded-concurrency queue and single-flight de-duplication
of concurrent fetches for the same key.
Bounded Context: API Resilience
"""
