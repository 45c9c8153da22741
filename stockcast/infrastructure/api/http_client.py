"""HTTP adapter for the prediction backend, built on `httpx`.

Translates transport errors and non-2xx answers into `NetworkFailure` and
undecodable bodies into `ParseFailure`, so the layers above only deal with
the domain error taxonomy.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from stockcast.domain.errors import NetworkFailure, ParseFailure
from stockcast.domain.interfaces.backend import PredictionBackend

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpBackendClient(PredictionBackend):
    """GET-only JSON client for the backend."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the client.

        Args:
            base_url: Backend root, e.g. 'https://predict.example.com'.
            timeout: Per-request timeout in seconds.
            client: Preconfigured `httpx.AsyncClient` (tests pass one with a
                mock transport). Created from `base_url` if None.
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        logger.info(f"HttpBackendClient initialized for {self.base_url or '<relative>'} (timeout={timeout}s)")

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"Backend timeout for GET {path}: {e}")
            raise NetworkFailure(f"Timeout calling {path}") from e
        except httpx.RequestError as e:
            logger.warning(f"Backend request error for GET {path}: {e}")
            raise NetworkFailure(f"Request to {path} failed: {e}") from e

        if not response.is_success:
            logger.warning(f"Backend returned {response.status_code} for GET {path}")
            raise NetworkFailure(f"API Error: {response.status_code}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ParseFailure(f"Response from {path} is not valid JSON: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
