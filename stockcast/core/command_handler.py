"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), calls the stock
service, and hands results to the user interface. `ApiError`s are shown to
the user; anything else is logged with its traceback and reported.
"""

import logging
from typing import Awaitable, Callable

from stockcast.core.services.stock_service import StockService
from stockcast.domain.errors import ApiError
from stockcast.domain.interfaces.cache import CacheStore
from stockcast.domain.interfaces.user_interface import UserInterface
from stockcast.domain.models.common import StockCode
from stockcast.domain.models.stock import ApiResponse, StockFilterParams

logger = logging.getLogger(__name__)

class CommandHandler:
    """Handles incoming commands and delegates to the stock service."""

    def __init__(
        self,
        stock_service: StockService,
        cache_store: CacheStore, # For clear-cache
        ui: UserInterface,
    ):
        self.stock_service = stock_service
        self.cache_store = cache_store
        self.ui = ui

    async def _run(self, description: str, fetch: Callable[[], Awaitable[ApiResponse]], render: Callable[[ApiResponse], None]) -> bool:
        """Runs one fetch and renders it. Returns False when it failed."""
        logger.info(f"Handling '{description}'")
        try:
            response = await fetch()
        except ApiError as e:
            logger.error(f"{description} failed: {e}")
            self.ui.display_error(f"{e.message} ({e.code})")
            return False
        except Exception as e:
            logger.error(f"Unexpected error during {description}: {e}", exc_info=True)
            self.ui.display_error(f"{description} failed: {e}")
            return False
        render(response)
        return True

    async def handle_list(self, force_refresh: bool = False, prefetch: bool = True) -> bool:
        """Handles the 'stocks' command."""
        succeeded = await self._run(
            "list stocks",
            lambda: self.stock_service.fetch_stocks(force_refresh=force_refresh, prefetch=prefetch),
            lambda r: self.ui.display_stocks(r.data, stale=r.is_stale),
        )
        prefetcher = self.stock_service.prefetcher
        if succeeded and prefetch and prefetcher is not None and prefetcher.pending:
            self.ui.display_info("Warming detail, history and prediction caches in the background...")
        return succeeded

    async def handle_refresh(self) -> bool:
        """Handles the 'refresh' command: list fetch that bypasses fresh cache."""
        return await self.handle_list(force_refresh=True)

    async def handle_filter(self, filters: StockFilterParams) -> bool:
        return await self._run(
            "filter stocks",
            lambda: self.stock_service.fetch_filtered_stocks(filters),
            lambda r: self.ui.display_stocks(r.data, stale=r.is_stale, title="Filtered Stocks"),
        )

    async def handle_detail(self, code: str) -> bool:
        return await self._run(
            f"detail {code}",
            lambda: self.stock_service.fetch_stock_detail(StockCode(code)),
            lambda r: self.ui.display_stock_detail(r.data, stale=r.is_stale),
        )

    async def handle_predictions(self, code: str) -> bool:
        return await self._run(
            f"predictions {code}",
            lambda: self.stock_service.fetch_stock_prediction(StockCode(code)),
            lambda r: self.ui.display_prediction_series(r.data, stale=r.is_stale),
        )

    async def handle_history(self, code: str, days: int) -> bool:
        return await self._run(
            f"history {code}",
            lambda: self.stock_service.fetch_historical_data(StockCode(code), days=days),
            lambda r: self.ui.display_historical_prices(code, r.data, stale=r.is_stale),
        )

    async def handle_prediction_history(self, code: str, days: int) -> bool:
        return await self._run(
            f"prediction history {code}",
            lambda: self.stock_service.fetch_historical_predictions(StockCode(code), days=days),
            lambda r: self.ui.display_historical_predictions(code, r.data, stale=r.is_stale),
        )

    async def handle_clear_cache(self, expired_only: bool = False) -> bool:
        """Handles the 'clear-cache' command."""
        logger.info(f"Handling 'clear-cache' (expired_only={expired_only})")
        try:
            if expired_only:
                removed = await self.cache_store.clear_expired()
                self.ui.display_info(f"Removed {removed} expired cache entries.")
            else:
                removed = await self.cache_store.clear_all()
                self.ui.display_info(f"Removed {removed} cache entries.")
        except Exception as e:
            logger.error(f"Failed to clear cache: {e}", exc_info=True)
            self.ui.display_error(f"Failed to clear cache: {e}")
            return False
        return True

    async def shutdown(self, drain_prefetch: bool = True) -> None:
        """Lets background prefetches finish (or cancels them) and closes connections."""
        await self.stock_service.shutdown(drain_prefetch=drain_prefetch)
