import pytest
from rich.console import Console

from stockcast.domain.models.stock import (
    HistoricalPrediction,
    HistoricalPrice,
    PredictionPoint,
    PredictionSeries,
    Stock,
    StockDetail,
)
from stockcast.infrastructure.cli.display import STALE_NOTICE, ConsoleDisplay


@pytest.fixture
def console():
    """Recording console wide enough to keep rows on one line."""
    return Console(record=True, width=160, color_system=None)

@pytest.fixture
def console_display(console: Console):
    return ConsoleDisplay(console=console)

def test_display_stocks_renders_rows(console_display, console):
    stocks = [
        Stock(code="2330", name="TSMC", current_price=100.0, predicted_price_1=110.0,
              change_percent_1=10.0, predicted_price_2=90.0, change_percent_2=-10.0),
    ]
    console_display.display_stocks(stocks)
    output = console.export_text()
    assert "2330" in output
    assert "TSMC" in output
    assert "+10.00%" in output
    assert "-10.00%" in output
    assert STALE_NOTICE not in output

def test_stale_data_gets_a_warning(console_display, console):
    console_display.display_stocks([], stale=True)
    assert STALE_NOTICE in console.export_text()

def test_display_stock_detail(console_display, console):
    detail = StockDetail(code="2330", name="TSMC", current_price=100.0, industry="Semiconductors",
                         description="TSMC (2330)")
    console_display.display_stock_detail(detail)
    output = console.export_text()
    assert "2330 TSMC" in output
    assert "Semiconductors" in output

def test_empty_prediction_series_shows_info(console_display, console):
    console_display.display_prediction_series(PredictionSeries(code="2330"))
    assert "No predictions available for 2330." in console.export_text()

def test_prediction_series_lists_points(console_display, console):
    series = PredictionSeries(code="2330", model="NeuralProphet",
                              predictions=[PredictionPoint(date="2024-05-03", predicted_price=110.0)])
    console_display.display_prediction_series(series)
    output = console.export_text()
    assert "NeuralProphet" in output
    assert "2024-05-03" in output
    assert "80%" in output

def test_historical_tables(console_display, console):
    console_display.display_historical_prices("2330", [HistoricalPrice.from_close("2024-05-02", 100.0)])
    console_display.display_historical_predictions("2330", [HistoricalPrediction(date="2024-05-03", predicted_price_1=110.0)])
    output = console.export_text()
    assert "2330 price history" in output
    assert "2330 prediction history" in output
    assert "110.00" in output

def test_display_error(console_display, console):
    console_display.display_error("Something went wrong")
    output = console.export_text()
    assert "Error" in output
    assert "Something went wrong" in output
