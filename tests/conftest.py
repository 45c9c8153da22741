import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
from typer.testing import CliRunner

from stockcast.domain.errors import NetworkFailure
from stockcast.domain.interfaces.backend import PredictionBackend
from stockcast.infrastructure.cache.persistent_store import PersistentCacheStore
from stockcast.infrastructure.config.settings import clear_test_config


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend(PredictionBackend):
    """In-memory backend answering registered (path, params) routes.

    Unregistered routes answer like a 404. Setting `fail_with` makes every
    request raise that error, simulating an outage. Paths starting with a key
    of `slow_prefixes` answer after that many seconds.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, Tuple], Any] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_with: Optional[Exception] = None
        self.slow_prefixes: Dict[str, float] = {}
        self.closed = False

    @staticmethod
    def _route_key(path: str, params: Optional[Dict[str, Any]]) -> Tuple[str, Tuple]:
        return path, tuple(sorted((params or {}).items()))

    def route(self, path: str, response: Any, **params: Any) -> None:
        self.routes[self._route_key(path, params)] = response

    def calls_to(self, path: str) -> int:
        return sum(1 for called_path, _ in self.calls if called_path == path)

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        self.calls.append((path, dict(params or {})))
        for prefix, delay in self.slow_prefixes.items():
            if path.startswith(prefix):
                await asyncio.sleep(delay)
        if self.fail_with is not None:
            raise self.fail_with
        key = self._route_key(path, params)
        if key not in self.routes:
            raise NetworkFailure("API Error: 404", status_code=404)
        response = self.routes[key]
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


def seed_market(backend: FakeBackend) -> FakeBackend:
    """Two stocks: 2330 (100 now, 110 / 90 predicted) and 2317 (50 now, 55 / 60 predicted)."""
    backend.route("/api/v1/stocks", [
        {"symbol": "2330", "stock_name": "TSMC", "keywords": ["Semiconductors"]},
        {"symbol": "2317", "stock_name": "Hon Hai"},
    ])
    backend.route("/api/v1/stocks/2330", {"symbol": "2330", "stock_name": "TSMC", "keywords": ["Semiconductors"]})
    backend.route("/api/v1/stocks/2317", [{"symbol": "2317", "stock_name": "Hon Hai"}])

    backend.route("/api/v1/stocks/2330/prices", [{"trade_date": "2024-05-02", "close_price": 100.0}], limit=1)
    backend.route("/api/v1/stocks/2330/prediction",
                  {"neuralprophet": [{"next_day": "2024-05-03", "price": 110.0}]}, method="neuralprophet")
    # Some backend versions double-encode the body
    backend.route("/api/v1/stocks/2330/prediction",
                  json.dumps({"llm": [{"next_day": "2024-05-03", "price": 90.0}]}), method="llm")

    backend.route("/api/v1/stocks/2317/prices", [{"trade_date": "2024-05-02", "close_price": 50.0}], limit=1)
    backend.route("/api/v1/stocks/2317/prediction",
                  {"neuralprophet": {"next_day": "2024-05-03", "price": 55.0}}, method="neuralprophet")
    backend.route("/api/v1/stocks/2317/prediction",
                  {"llm": [{"next_day": "2024-05-03", "price": 60.0}]}, method="llm")

    backend.route("/api/v1/stocks/2330/prices", [
        {"trade_date": "2024-05-01", "close_price": 98.0},
        {"trade_date": "2024-05-02", "close_price": 100.0},
    ], limit=30)
    backend.route("/api/v1/stocks/2330/prediction", {"neuralprophet": [
        {"next_day": "2024-05-02", "price": 101.0},
        {"next_day": "2024-05-03", "price": 110.0},
    ]}, method="neuralprophet", limit=20)
    backend.route("/api/v1/stocks/2330/prediction", {"llm": [
        {"next_day": "2024-05-03", "price": 90.0},
    ]}, method="llm", limit=20)
    return backend


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()

@pytest.fixture
def clock():
    return FakeClock(1_000.0)

@pytest.fixture
def fake_backend():
    """Backend seeded with a small two-stock market."""
    return seed_market(FakeBackend())

@pytest.fixture
def cache_store(tmp_path: Path, clock: FakeClock):
    """Disk cache in a temporary directory driven by the fake clock."""
    store = PersistentCacheStore(cache_dir=tmp_path / "cache", default_ttl=60, clock=clock)
    yield store
    store.close()

@pytest.fixture(autouse=True)
def reset_test_config():
    """Ensure configuration overrides never leak between tests."""
    yield
    clear_test_config()
