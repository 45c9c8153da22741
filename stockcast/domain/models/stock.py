"""Domain models for stocks, price history and predictions.

Records are plain dataclasses. They are cached as JSON, so each one can be
turned into a dict with `to_dict()` and rebuilt with `from_dict()`.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from stockcast.domain.models.common import StockCode, MODEL_UNKNOWN

# Backend does not report a confidence for its predictions
DEFAULT_CONFIDENCE = 0.8
UNKNOWN_INDUSTRY = "Unknown"


def utc_now_iso() -> str:
    """ISO-8601 timestamp used in response envelopes."""
    return datetime.now(timezone.utc).isoformat()


class _Record:
    """Mixin giving dataclasses a JSON-friendly dict round trip."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        # Unknown keys are ignored so older cache entries still load
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Stock(_Record):
    """A stock with its current price and the two predicted prices.

    `predicted_price_1` comes from NeuralProphet, `predicted_price_2` from the
    LLM method. Change figures are derived, see `core.services.pricing`.
    """
    code: StockCode
    name: str
    current_price: float = 0.0
    predicted_price_1: float = 0.0
    predicted_price_2: float = 0.0
    change_1: float = 0.0
    change_percent_1: float = 0.0
    change_2: float = 0.0
    change_percent_2: float = 0.0
    average_change: float = 0.0
    average_change_percent: float = 0.0


@dataclass
class StockDetail(Stock):
    """Stock plus descriptive fields shown on the detail view."""
    volume: float = 0.0
    market_cap: float = 0.0
    pe: float = 0.0
    eps: float = 0.0
    dividend: float = 0.0
    industry: str = UNKNOWN_INDUSTRY
    description: str = ""


@dataclass
class HistoricalPrice(_Record):
    """One trading day. The backend only reports the close price."""
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    foreign_investors: float = 0.0
    investment_trust: float = 0.0
    dealers: float = 0.0

    @classmethod
    def from_close(cls, date: str, close_price: float) -> "HistoricalPrice":
        return cls(date=date, open=close_price, high=close_price, low=close_price, close=close_price)


@dataclass
class HistoricalPrediction(_Record):
    """Predicted prices of both methods for one target date."""
    date: str
    predicted_price_1: float = 0.0
    predicted_price_2: float = 0.0


@dataclass
class PredictionPoint(_Record):
    date: str
    predicted_price: float
    confidence: float = DEFAULT_CONFIDENCE


@dataclass
class PredictionSeries(_Record):
    """Chart series for one stock, taken from a single prediction method."""
    code: StockCode
    predictions: List[PredictionPoint] = field(default_factory=list)
    model: str = MODEL_UNKNOWN
    last_updated: str = field(default_factory=utc_now_iso)
    raw_llm: Optional[Any] = None
    raw_neural: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PredictionSeries":
        series = super().from_dict(data)
        series.predictions = [
            p if isinstance(p, PredictionPoint) else PredictionPoint.from_dict(p)
            for p in series.predictions
        ]
        return series


@dataclass
class StockFilterParams:
    """Thresholds (in percent) used by the filtered stock list."""
    up_trend_enabled: bool = False
    down_trend_enabled: bool = False
    up_trend_threshold: float = 0.0
    down_trend_threshold: float = 0.0

    def matches_percent(self, change_percent: float) -> bool:
        return (
            (self.up_trend_enabled and change_percent >= self.up_trend_threshold)
            or (self.down_trend_enabled and change_percent <= self.down_trend_threshold)
        )

    def matches(self, stock: Stock) -> bool:
        """A stock matches when either prediction method crosses a threshold."""
        if not (self.up_trend_enabled or self.down_trend_enabled):
            return True
        return self.matches_percent(stock.change_percent_1) or self.matches_percent(stock.change_percent_2)


@dataclass
class ApiResponse:
    """Envelope handed to the presentation layer."""
    success: bool
    data: Any
    timestamp: str = field(default_factory=utc_now_iso)
    message: Optional[str] = None
    from_cache: bool = False
    is_stale: bool = False
