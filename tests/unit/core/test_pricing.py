import pytest

from stockcast.core.services.pricing import compute_deltas, percent_of, round_half_up, with_prices
from stockcast.domain.models.stock import Stock, StockDetail


def test_deltas_against_current_price():
    deltas = compute_deltas(100.0, 110.0, 90.0)
    assert deltas.change_1 == 10.0
    assert deltas.change_percent_1 == 10.0
    assert deltas.change_2 == -10.0
    assert deltas.change_percent_2 == -10.0
    assert deltas.average_change == 0.0
    assert deltas.average_change_percent == 0.0

def test_percentages_are_rounded_to_two_decimals():
    deltas = compute_deltas(3.0, 4.0, 5.0)
    assert deltas.change_percent_1 == 33.33
    assert deltas.change_percent_2 == 66.67
    assert deltas.average_change == 1.5
    assert deltas.average_change_percent == 50.0

def test_zero_current_price_gives_zero_percentages():
    deltas = compute_deltas(0.0, 12.0, 8.0)
    assert deltas.change_1 == 12.0
    assert deltas.change_percent_1 == 0.0
    assert deltas.change_percent_2 == 0.0
    assert deltas.average_change == 10.0
    assert deltas.average_change_percent == 0.0

@pytest.mark.parametrize("change, current, expected", [
    (5.0, 50.0, 10.0),
    (-1.0, 3.0, -33.33),
    (1.0, 0.0, 0.0),
])
def test_percent_of(change, current, expected):
    assert percent_of(change, current) == expected

def test_with_prices_keeps_other_fields():
    detail = StockDetail(code="2330", name="TSMC", industry="Semiconductors")
    priced = with_prices(detail, 100.0, 110.0, 90.0)

    assert isinstance(priced, StockDetail)
    assert priced.industry == "Semiconductors"
    assert priced.predicted_price_1 == 110.0
    assert priced.change_percent_1 == 10.0
    assert detail.current_price == 0.0  # original untouched

def test_with_prices_on_plain_stock():
    priced = with_prices(Stock(code="2317", name="Hon Hai"), 50.0, 55.0, 60.0)
    assert priced.average_change == 7.5
    assert priced.average_change_percent == 15.0

@pytest.mark.parametrize("value, expected", [
    (0.125, 0.13),
    (-0.125, -0.13),
    (0.375, 0.38),
    (12.5, 12.5),
    (33.333333, 33.33),
])
def test_exact_halves_round_away_from_zero(value, expected):
    assert round_half_up(value) == expected
