import pytest
from unittest.mock import AsyncMock, MagicMock

from stockcast.core.command_handler import CommandHandler
from stockcast.core.services.stock_service import StockService
from stockcast.domain.errors import ApiError
from stockcast.domain.interfaces.cache import CacheStore
from stockcast.domain.interfaces.user_interface import UserInterface
from stockcast.domain.models.stock import ApiResponse, Stock, StockFilterParams

STOCKS = [Stock(code="2330", name="TSMC")]

@pytest.fixture
def mock_stock_service():
    service = MagicMock(spec=StockService)
    service.prefetcher = None
    service.fetch_stocks = AsyncMock(return_value=ApiResponse(success=True, data=STOCKS))
    return service

@pytest.fixture
def mock_cache_store():
    return MagicMock(spec=CacheStore)

@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)

@pytest.fixture
def command_handler(mock_stock_service, mock_cache_store, mock_ui):
    """Fixture to create CommandHandler with mocked collaborators."""
    return CommandHandler(
        stock_service=mock_stock_service,
        cache_store=mock_cache_store,
        ui=mock_ui,
    )

@pytest.mark.asyncio
async def test_handle_list_displays_stocks(command_handler, mock_stock_service, mock_ui):
    assert await command_handler.handle_list() is True
    mock_stock_service.fetch_stocks.assert_awaited_once_with(force_refresh=False, prefetch=True)
    mock_ui.display_stocks.assert_called_once_with(STOCKS, stale=False)
    mock_ui.display_error.assert_not_called()

@pytest.mark.asyncio
async def test_handle_list_flags_stale_data(command_handler, mock_stock_service, mock_ui):
    mock_stock_service.fetch_stocks.return_value = ApiResponse(
        success=True, data=STOCKS, from_cache=True, is_stale=True
    )
    await command_handler.handle_list()
    mock_ui.display_stocks.assert_called_once_with(STOCKS, stale=True)

@pytest.mark.asyncio
async def test_handle_list_mentions_background_prefetch(command_handler, mock_stock_service, mock_ui):
    mock_stock_service.prefetcher = MagicMock(pending=3)
    await command_handler.handle_list()
    mock_ui.display_info.assert_called_once()

@pytest.mark.asyncio
async def test_handle_refresh_forces_refetch(command_handler, mock_stock_service):
    await command_handler.handle_refresh()
    mock_stock_service.fetch_stocks.assert_awaited_once_with(force_refresh=True, prefetch=True)

@pytest.mark.asyncio
async def test_api_error_is_displayed(command_handler, mock_stock_service, mock_ui):
    mock_stock_service.fetch_stocks.side_effect = ApiError("FETCH_STOCKS_ERROR", "API Error: 502")

    assert await command_handler.handle_list() is False

    mock_ui.display_error.assert_called_once_with("API Error: 502 (FETCH_STOCKS_ERROR)")
    mock_ui.display_stocks.assert_not_called()

@pytest.mark.asyncio
async def test_unexpected_error_is_displayed(command_handler, mock_stock_service, mock_ui):
    mock_stock_service.fetch_stock_detail = AsyncMock(side_effect=RuntimeError("boom"))

    assert await command_handler.handle_detail("2330") is False

    mock_ui.display_error.assert_called_once_with("detail 2330 failed: boom")

@pytest.mark.asyncio
async def test_handle_filter(command_handler, mock_stock_service, mock_ui):
    filters = StockFilterParams(up_trend_enabled=True, up_trend_threshold=5.0)
    mock_stock_service.fetch_filtered_stocks = AsyncMock(return_value=ApiResponse(success=True, data=[]))

    await command_handler.handle_filter(filters)

    mock_stock_service.fetch_filtered_stocks.assert_awaited_once_with(filters)
    mock_ui.display_stocks.assert_called_once_with([], stale=False, title="Filtered Stocks")

@pytest.mark.asyncio
async def test_handle_history_passes_days(command_handler, mock_stock_service, mock_ui):
    mock_stock_service.fetch_historical_data = AsyncMock(return_value=ApiResponse(success=True, data=[]))

    await command_handler.handle_history("2330", 7)

    mock_stock_service.fetch_historical_data.assert_awaited_once_with("2330", days=7)
    mock_ui.display_historical_prices.assert_called_once_with("2330", [], stale=False)

@pytest.mark.asyncio
async def test_handle_clear_cache(command_handler, mock_cache_store, mock_ui):
    mock_cache_store.clear_all = AsyncMock(return_value=4)
    assert await command_handler.handle_clear_cache() is True
    mock_ui.display_info.assert_called_once_with("Removed 4 cache entries.")

@pytest.mark.asyncio
async def test_handle_clear_cache_expired_only(command_handler, mock_cache_store, mock_ui):
    mock_cache_store.clear_expired = AsyncMock(return_value=1)
    await command_handler.handle_clear_cache(expired_only=True)
    mock_ui.display_info.assert_called_once_with("Removed 1 expired cache entries.")

@pytest.mark.asyncio
async def test_shutdown_delegates_to_service(command_handler, mock_stock_service):
    mock_stock_service.shutdown = AsyncMock()
    await command_handler.shutdown(drain_prefetch=False)
    mock_stock_service.shutdown.assert_awaited_once_with(drain_prefetch=False)
