"""stockcast: cached, concurrency-limited client for stock price predictions."""

__version__ = "0.1.0"
