"""Interface for the remote prediction backend.

The backend is a read-only JSON API. Implementations raise `NetworkFailure`
for transport errors and non-2xx answers and `ParseFailure` for bodies that
are not JSON.
"""

import abc
from typing import Any, Dict, Optional

class PredictionBackend(abc.ABC):
    """Abstract Base Class for GET access to the backend."""

    @abc.abstractmethod
    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Performs a GET request and returns the decoded JSON body.

        Args:
            path: Path relative to the backend base URL, e.g. '/api/v1/stocks'.
            params: Optional query parameters.
        """
        pass

    async def aclose(self) -> None:
        """Releases connections. Default implementation does nothing."""
        return None
