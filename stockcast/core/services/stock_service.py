"""Stock data service: the top-level fetches used by the dashboard.

Every public fetch is one call through the cache-aside orchestrator and
returns an `ApiResponse` envelope, or raises `ApiError` when the backend
failed and nothing was cached. Composite fetches fan out sub-requests
concurrently; a failed sub-request degrades to a neutral default instead of
failing the whole record.
"""

import asyncio
import functools
import logging
from typing import Any, Dict, List, Optional, Tuple

from stockcast.core.services.fetch_orchestrator import CacheAsideFetcher, FetchResult
from stockcast.core.services.prefetch_scheduler import PrefetchScheduler, PrefetchTarget
from stockcast.core.services.pricing import with_prices
from stockcast.domain.errors import ApiError, NetworkFailure, NotFound, ParseFailure
from stockcast.domain.interfaces.backend import PredictionBackend
from stockcast.domain.models.common import (
    METHOD_LLM,
    METHOD_NEURALPROPHET,
    MODEL_LLM,
    MODEL_NEURALPROPHET,
    MODEL_UNKNOWN,
    PredictionMethod,
    StockCode,
    historical_data_key,
    historical_predictions_key,
    stock_detail_key,
    stock_prediction_key,
    stocks_key,
)
from stockcast.domain.models.payload import Payload, unwrap_json
from stockcast.domain.models.stock import (
    UNKNOWN_INDUSTRY,
    ApiResponse,
    HistoricalPrediction,
    HistoricalPrice,
    PredictionPoint,
    PredictionSeries,
    Stock,
    StockDetail,
    StockFilterParams,
)

logger = logging.getLogger(__name__)

STOCKS_PATH = "/api/v1/stocks"
DEFAULT_HISTORY_DAYS = 30
DEFAULT_PREDICTION_HISTORY_DAYS = 20

# Stable error codes for the presentation layer
FETCH_STOCKS_ERROR = "FETCH_STOCKS_ERROR"
FETCH_STOCK_DETAIL_ERROR = "FETCH_STOCK_DETAIL_ERROR"
FETCH_FILTERED_STOCKS_ERROR = "FETCH_FILTERED_STOCKS_ERROR"
FETCH_PREDICTION_ERROR = "FETCH_PREDICTION_ERROR"
FETCH_HISTORICAL_DATA_ERROR = "FETCH_HISTORICAL_DATA_ERROR"
FETCH_HISTORICAL_PREDICTIONS_ERROR = "FETCH_HISTORICAL_PREDICTIONS_ERROR"

SUB_REQUEST_ERRORS = (NetworkFailure, ParseFailure)


def _number(record: Dict[str, Any], field: str) -> float:
    try:
        return float(record[field])
    except (KeyError, TypeError, ValueError) as e:
        raise ParseFailure(f"Field '{field}' missing or not numeric in {record!r}") from e


class StockService:
    """Fetches stocks, details, predictions and history with caching."""

    def __init__(
        self,
        backend: PredictionBackend,
        fetcher: CacheAsideFetcher,
        ttl: Optional[float] = None,
        prefetch_enabled: bool = True,
    ):
        """Initializes the service.

        Args:
            backend: Backend adapter for raw GET requests.
            fetcher: Cache-aside orchestrator; its queue bounds all requests.
            ttl: Expiry in seconds for cached results (store default if None).
            prefetch_enabled: Warm per-stock caches after list fetches.
        """
        self.backend = backend
        self.fetcher = fetcher
        self.queue = fetcher.queue
        self.ttl = ttl
        self.prefetcher: Optional[PrefetchScheduler] = None
        if prefetch_enabled:
            self.prefetcher = PrefetchScheduler(
                fetcher.cache_store,
                self.prefetch_targets(),
                event_listener=fetcher.event_listener,
            )

    def prefetch_targets(self) -> List[PrefetchTarget]:
        """Per-stock data kinds warmed in the background after a list fetch."""
        return [
            PrefetchTarget("detail", stock_detail_key, self.fetch_stock_detail),
            PrefetchTarget(
                "history",
                lambda code: historical_data_key(code, DEFAULT_HISTORY_DAYS),
                self.fetch_historical_data,
            ),
            PrefetchTarget("prediction", stock_prediction_key, self.fetch_stock_prediction),
        ]

    # --- Public fetches ---

    async def fetch_stocks(self, force_refresh: bool = False, prefetch: bool = True) -> ApiResponse:
        """Fetches the stock list with current and predicted prices."""
        try:
            result = await self.fetcher.fetch(
                stocks_key(),
                self._load_stock_list,
                ttl=self.ttl,
                force_refresh=force_refresh,
                # Each stock's enrichment is queued on its own
                queued=False,
            )
            stocks = [Stock.from_dict(item) for item in result.value]
        except Exception as e:
            raise self._api_error(FETCH_STOCKS_ERROR, "Failed to fetch stock list", e) from e

        if prefetch and self.prefetcher is not None:
            self.prefetcher.schedule([stock.code for stock in stocks])
        return self._envelope(stocks, result)

    async def refresh_stocks_data(self) -> ApiResponse:
        """Refetches the stock list, bypassing a fresh cache entry."""
        return await self.fetch_stocks(force_refresh=True)

    async def fetch_filtered_stocks(self, filters: StockFilterParams) -> ApiResponse:
        """Returns the stocks whose predicted change crosses an enabled threshold."""
        try:
            response = await self.fetch_stocks()
        except ApiError as e:
            raise self._api_error(FETCH_FILTERED_STOCKS_ERROR, "Failed to filter stocks", e) from e
        filtered = [stock for stock in response.data if filters.matches(stock)]
        logger.info(f"Filter kept {len(filtered)} of {len(response.data)} stocks")
        return ApiResponse(
            success=True,
            data=filtered,
            message=response.message,
            from_cache=response.from_cache,
            is_stale=response.is_stale,
        )

    async def fetch_stock_detail(self, code: StockCode, force_refresh: bool = False) -> ApiResponse:
        """Fetches one stock's record together with its prices."""
        try:
            result = await self.fetcher.fetch(
                stock_detail_key(code),
                functools.partial(self._load_stock_detail, code),
                ttl=self.ttl,
                force_refresh=force_refresh,
            )
            detail = StockDetail.from_dict(result.value)
        except Exception as e:
            raise self._api_error(FETCH_STOCK_DETAIL_ERROR, f"Failed to fetch detail for {code}", e) from e
        return self._envelope(detail, result)

    async def fetch_stock_prediction(self, code: StockCode, force_refresh: bool = False) -> ApiResponse:
        """Fetches the prediction series used for the stock's chart."""
        try:
            result = await self.fetcher.fetch(
                stock_prediction_key(code),
                functools.partial(self._load_prediction_series, code),
                ttl=self.ttl,
                force_refresh=force_refresh,
            )
            series = PredictionSeries.from_dict(result.value)
        except Exception as e:
            raise self._api_error(FETCH_PREDICTION_ERROR, f"Failed to fetch predictions for {code}", e) from e
        return self._envelope(series, result)

    async def fetch_historical_data(
        self, code: StockCode, days: int = DEFAULT_HISTORY_DAYS, force_refresh: bool = False
    ) -> ApiResponse:
        """Fetches up to `days` daily prices, newest first."""
        try:
            result = await self.fetcher.fetch(
                historical_data_key(code, days),
                functools.partial(self._load_historical_data, code, days),
                ttl=self.ttl,
                force_refresh=force_refresh,
            )
            prices = [HistoricalPrice.from_dict(item) for item in result.value]
        except Exception as e:
            raise self._api_error(FETCH_HISTORICAL_DATA_ERROR, f"Failed to fetch price history for {code}", e) from e
        return self._envelope(prices, result)

    async def fetch_historical_predictions(
        self, code: StockCode, days: int = DEFAULT_PREDICTION_HISTORY_DAYS, force_refresh: bool = False
    ) -> ApiResponse:
        """Fetches past predictions of both methods merged by date, newest first."""
        try:
            result = await self.fetcher.fetch(
                historical_predictions_key(code, days),
                functools.partial(self._load_historical_predictions, code, days),
                ttl=self.ttl,
                force_refresh=force_refresh,
            )
            predictions = [HistoricalPrediction.from_dict(item) for item in result.value]
        except Exception as e:
            raise self._api_error(
                FETCH_HISTORICAL_PREDICTIONS_ERROR, f"Failed to fetch prediction history for {code}", e
            ) from e
        return self._envelope(predictions, result)

    async def shutdown(self, drain_prefetch: bool = True) -> None:
        """Waits for (or cancels) background prefetches and closes the backend."""
        if self.prefetcher is not None:
            if drain_prefetch:
                await self.prefetcher.drain()
            else:
                await self.prefetcher.aclose()
        await self.queue.aclose()
        await self.backend.aclose()

    # --- Loaders (run on a cache miss; results are cached as JSON) ---

    async def _load_stock_list(self) -> List[Dict[str, Any]]:
        body = await self.queue.add(functools.partial(self.backend.get_json, STOCKS_PATH))
        stocks = [self._map_stock(record) for record in Payload.decode(body)]
        # A stock whose enrichment fails keeps its zero prices
        enriched = await asyncio.gather(*(
            self._degrade(
                self.queue.add(functools.partial(self._enrich_stock, stock)),
                stock,
                f"prices of {stock.code}",
            )
            for stock in stocks
        ))
        logger.info(f"Loaded {len(enriched)} stocks from backend")
        return [stock.to_dict() for stock in enriched]

    async def _enrich_stock(self, stock: Stock) -> Stock:
        current_price, price_1, price_2 = await self._fetch_prices(stock.code)
        return with_prices(stock, current_price, price_1, price_2)

    async def _load_stock_detail(self, code: StockCode) -> Dict[str, Any]:
        body = await self.backend.get_json(f"{STOCKS_PATH}/{code}")
        record = Payload.decode(body).first()
        if record is None:
            raise NotFound(f"Stock code not found: {code}")
        stock = self._map_stock(record)
        keywords = record.get("keywords")
        if not isinstance(keywords, list):
            keywords = []
        detail = StockDetail(
            code=stock.code,
            name=stock.name,
            industry=keywords[0] if keywords else UNKNOWN_INDUSTRY,
            description=f"{stock.name} ({stock.code})",
        )
        current_price, price_1, price_2 = await self._fetch_prices(code)
        return with_prices(detail, current_price, price_1, price_2).to_dict()

    async def _load_prediction_series(self, code: StockCode) -> Dict[str, Any]:
        raw_llm, raw_neural = await self._settle_all(
            f"predictions for {code}",
            self._prediction_body(code, METHOD_LLM),
            self._prediction_body(code, METHOD_NEURALPROPHET),
        )
        neural_items = self._decode_or_empty(raw_neural, METHOD_NEURALPROPHET)
        llm_items = self._decode_or_empty(raw_llm, METHOD_LLM)

        # NeuralProphet is preferred; the chart shows one series
        if not neural_items.is_empty:
            items, model = neural_items, MODEL_NEURALPROPHET
        elif not llm_items.is_empty:
            items, model = llm_items, MODEL_LLM
        else:
            items, model = Payload.empty(), MODEL_UNKNOWN

        points = [
            PredictionPoint(date=item.get("next_day"), predicted_price=_number(item, "price"))
            for item in items
            if item.get("price") is not None
        ]
        series = PredictionSeries(code=code, predictions=points, model=model, raw_llm=raw_llm, raw_neural=raw_neural)
        return series.to_dict()

    async def _load_historical_data(self, code: StockCode, days: int) -> List[Dict[str, Any]]:
        body = await self.backend.get_json(f"{STOCKS_PATH}/{code}/prices", params={"limit": days})
        prices = [
            HistoricalPrice.from_close(str(record["trade_date"]), _number(record, "close_price"))
            for record in Payload.decode(body)
            if record.get("trade_date")
        ]
        prices.sort(key=lambda p: p.date, reverse=True)
        return [p.to_dict() for p in prices]

    async def _load_historical_predictions(self, code: StockCode, days: int) -> List[Dict[str, Any]]:
        raw_llm, raw_neural = await self._settle_all(
            f"prediction history for {code}",
            self._prediction_body(code, METHOD_LLM, limit=days),
            self._prediction_body(code, METHOD_NEURALPROPHET, limit=days),
        )
        by_date: Dict[str, HistoricalPrediction] = {}
        for raw, method, attr in (
            (raw_neural, METHOD_NEURALPROPHET, "predicted_price_1"),
            (raw_llm, METHOD_LLM, "predicted_price_2"),
        ):
            for item in self._decode_or_empty(raw, method):
                date, price = item.get("next_day"), item.get("price")
                if not date or price is None:
                    continue
                entry = by_date.setdefault(date, HistoricalPrediction(date=date))
                setattr(entry, attr, _number(item, "price"))
        merged = sorted(by_date.values(), key=lambda p: p.date, reverse=True)
        return [p.to_dict() for p in merged]

    # --- Sub-requests ---

    async def _fetch_prices(self, code: StockCode) -> Tuple[float, float, float]:
        """Current price, NeuralProphet and LLM predictions; failures become 0."""
        current_price, price_1, price_2 = await asyncio.gather(
            self._degrade(self._current_price(code), 0.0, f"current price of {code}"),
            self._degrade(self._predicted_price(code, METHOD_NEURALPROPHET), 0.0, f"neuralprophet price of {code}"),
            self._degrade(self._predicted_price(code, METHOD_LLM), 0.0, f"llm price of {code}"),
        )
        return current_price, price_1, price_2

    async def _current_price(self, code: StockCode) -> float:
        body = await self.backend.get_json(f"{STOCKS_PATH}/{code}/prices", params={"limit": 1})
        latest = Payload.decode(body).first()
        return _number(latest, "close_price") if latest else 0.0

    async def _predicted_price(self, code: StockCode, method: PredictionMethod) -> float:
        body = await self._prediction_body(code, method)
        latest = Payload.decode(body, field=method).first()
        return _number(latest, "price") if latest else 0.0

    async def _prediction_body(self, code: StockCode, method: PredictionMethod, limit: Optional[int] = None) -> Any:
        params: Dict[str, Any] = {"method": method}
        if limit is not None:
            params["limit"] = limit
        body = await self.backend.get_json(f"{STOCKS_PATH}/{code}/prediction", params=params)
        return unwrap_json(body)

    @staticmethod
    async def _degrade(sub_request, default: Any, description: str) -> Any:
        try:
            return await sub_request
        except SUB_REQUEST_ERRORS as e:
            logger.warning(f"Failed to fetch {description}, using default: {type(e).__name__}: {e}")
            return default

    @staticmethod
    async def _settle_all(description: str, *sub_requests) -> List[Any]:
        """Runs sub-requests concurrently; failed ones yield None.

        Raises the first failure when every sub-request failed, so an outage
        falls back to the cache instead of caching an empty result.
        """
        results = await asyncio.gather(*sub_requests, return_exceptions=True)
        failures: List[BaseException] = []
        values: List[Any] = []
        for result in results:
            if isinstance(result, SUB_REQUEST_ERRORS):
                logger.warning(f"Sub-request for {description} failed: {type(result).__name__}: {result}")
                failures.append(result)
                values.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                values.append(result)
        if failures and len(failures) == len(results):
            raise failures[0]
        return values

    @staticmethod
    def _decode_or_empty(raw: Any, method: PredictionMethod) -> Payload:
        try:
            return Payload.decode(raw, field=method)
        except ParseFailure as e:
            logger.warning(f"Ignoring malformed {method} payload: {e}")
            return Payload.empty()

    # --- Mapping helpers ---

    @staticmethod
    def _map_stock(record: Dict[str, Any]) -> Stock:
        symbol = record.get("symbol")
        if symbol is None:
            raise ParseFailure(f"Stock record without symbol: {record!r}")
        return Stock(code=StockCode(str(symbol)), name=str(record.get("stock_name", "")))

    @staticmethod
    def _envelope(data: Any, result: FetchResult) -> ApiResponse:
        message = None
        if result.is_stale:
            message = "Backend unavailable; showing last known data"
        return ApiResponse(
            success=True,
            data=data,
            message=message,
            from_cache=result.from_cache,
            is_stale=result.is_stale,
        )

    @staticmethod
    def _api_error(code: str, default_message: str, error: Exception) -> ApiError:
        message = error.message if isinstance(error, ApiError) else (str(error) or default_message)
        return ApiError(code=code, message=message, details=error)
