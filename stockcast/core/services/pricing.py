"""Derived price metrics for stocks.

Each of the two predicted prices is compared with the observed current
price; percentages are rounded to two decimals and are exactly 0 when the
current price is 0.
"""

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

from stockcast.domain.models.stock import Stock

S = TypeVar("S", bound=Stock)


@dataclass(frozen=True)
class PriceDeltas:
    change_1: float
    change_percent_1: float
    change_2: float
    change_percent_2: float
    average_change: float
    average_change_percent: float


def round_half_up(value: float, places: int = 2) -> float:
    """Rounds exact halves away from zero (0.125 -> 0.13), unlike `round`."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def percent_of(change: float, current_price: float) -> float:
    if current_price == 0:
        return 0.0
    return round_half_up(change / current_price * 100)


def compute_deltas(current_price: float, predicted_price_1: float, predicted_price_2: float) -> PriceDeltas:
    change_1 = predicted_price_1 - current_price
    change_2 = predicted_price_2 - current_price
    average_change = (change_1 + change_2) / 2
    return PriceDeltas(
        change_1=change_1,
        change_percent_1=percent_of(change_1, current_price),
        change_2=change_2,
        change_percent_2=percent_of(change_2, current_price),
        average_change=average_change,
        average_change_percent=percent_of(average_change, current_price),
    )


def with_prices(stock: S, current_price: float, predicted_price_1: float, predicted_price_2: float) -> S:
    """Returns a copy of `stock` carrying the given prices and their deltas."""
    deltas = compute_deltas(current_price, predicted_price_1, predicted_price_2)
    return replace(
        stock,
        current_price=current_price,
        predicted_price_1=predicted_price_1,
        predicted_price_2=predicted_price_2,
        change_1=deltas.change_1,
        change_percent_1=deltas.change_percent_1,
        change_2=deltas.change_2,
        change_percent_2=deltas.change_percent_2,
        average_change=deltas.average_change,
        average_change_percent=deltas.average_change_percent,
    )
