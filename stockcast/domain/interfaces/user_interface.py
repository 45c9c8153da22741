"""Interface for presenting stock data to the user.

The presentation layer only renders what the data layer returns; it never
touches the cache. Allows different UI implementations (console, tests).
"""

import abc
from typing import Any, Sequence

from stockcast.domain.models.stock import (
    HistoricalPrediction,
    HistoricalPrice,
    PredictionSeries,
    Stock,
    StockDetail,
)

class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_stocks(self, stocks: Sequence[Stock], **kwargs: Any) -> None:
        """Displays the stock list with predicted changes.

        Args:
            stocks: Stocks to render, in backend order.
            **kwargs: Additional options, e.g. `stale=True` when the data
                came from an expired cache entry.
        """
        pass

    @abc.abstractmethod
    def display_stock_detail(self, detail: StockDetail, **kwargs: Any) -> None:
        """Displays one stock's detail view."""
        pass

    @abc.abstractmethod
    def display_prediction_series(self, series: PredictionSeries, **kwargs: Any) -> None:
        """Displays the prediction chart data of one stock."""
        pass

    @abc.abstractmethod
    def display_historical_prices(self, code: str, prices: Sequence[HistoricalPrice], **kwargs: Any) -> None:
        """Displays daily close prices, newest first."""
        pass

    @abc.abstractmethod
    def display_historical_predictions(self, code: str, predictions: Sequence[HistoricalPrediction], **kwargs: Any) -> None:
        """Displays past predictions of both methods, newest first."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
