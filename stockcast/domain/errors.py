"""Error taxonomy for the stockcast data layer.

`NetworkFailure` and `ParseFailure` are raised by the backend client and are
absorbed by sub-request defaults or the stale-cache fallback. `ApiError` is
the only error the presentation layer is expected to see.
"""

from typing import Any, Dict, Optional


class StockcastError(Exception):
    """Base class for all stockcast errors."""


class NetworkFailure(StockcastError):
    """Request was rejected, could not be sent, or returned a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DeadlineExceeded(NetworkFailure):
    """A queued operation did not finish within its deadline."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Operation exceeded its deadline of {timeout:.2f}s")


class ParseFailure(StockcastError):
    """Response body was not in the expected shape."""


class NotFound(StockcastError):
    """Requested entity is absent from the backend's answer."""


class StorageFailure(StockcastError):
    """Persisting to the cache failed. Never surfaces to callers."""


class ApiError(StockcastError):
    """Standardized error object for the presentation layer."""

    def __init__(self, code: str, message: str, details: Any = None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        details = self.details
        if isinstance(details, BaseException):
            details = f"{type(details).__name__}: {details}"
        return {"code": self.code, "message": self.message, "details": details}
