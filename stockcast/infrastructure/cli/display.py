import logging
from typing import Any, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stockcast.domain.interfaces.user_interface import UserInterface
from stockcast.domain.models.stock import (
    HistoricalPrediction,
    HistoricalPrice,
    PredictionSeries,
    Stock,
    StockDetail,
)

logger = logging.getLogger(__name__)

STALE_NOTICE = "Backend unavailable; showing last known data."


def _signed(value: float, suffix: str = "") -> Text:
    """Green for gains, red for losses."""
    style = "green" if value > 0 else "red" if value < 0 else "dim"
    return Text(f"{value:+,.2f}{suffix}", style=style)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self.console = console or Console()

    def _stale_banner(self, kwargs: dict) -> None:
        if kwargs.get("stale"):
            self.display_warning(STALE_NOTICE)

    def display_stocks(self, stocks: Sequence[Stock], **kwargs: Any) -> None:
        """Renders the stock list as a table, one row per stock."""
        self._stale_banner(kwargs)
        table = Table(title=kwargs.get("title", "Stock Predictions"), box=ROUNDED, header_style="bold cyan")
        table.add_column("Code", style="bold")
        table.add_column("Name")
        table.add_column("Price", justify="right")
        table.add_column("NeuralProphet", justify="right")
        table.add_column("Δ %", justify="right")
        table.add_column("LLM", justify="right")
        table.add_column("Δ %", justify="right")
        table.add_column("Avg Δ %", justify="right")
        for stock in stocks:
            table.add_row(
                stock.code,
                stock.name,
                f"{stock.current_price:,.2f}",
                f"{stock.predicted_price_1:,.2f}",
                _signed(stock.change_percent_1, "%"),
                f"{stock.predicted_price_2:,.2f}",
                _signed(stock.change_percent_2, "%"),
                _signed(stock.average_change_percent, "%"),
            )
        logger.debug(f"Rendering {len(stocks)} stocks")
        self.console.print(table)

    def display_stock_detail(self, detail: StockDetail, **kwargs: Any) -> None:
        self._stale_banner(kwargs)
        table = Table(box=SIMPLE, show_header=False)
        table.add_column("Field", style="bold cyan")
        table.add_column("Value", justify="right")
        table.add_row("Current price", f"{detail.current_price:,.2f}")
        table.add_row("NeuralProphet", f"{detail.predicted_price_1:,.2f}")
        table.add_row("  change", _signed(detail.change_1))
        table.add_row("  change %", _signed(detail.change_percent_1, "%"))
        table.add_row("LLM", f"{detail.predicted_price_2:,.2f}")
        table.add_row("  change", _signed(detail.change_2))
        table.add_row("  change %", _signed(detail.change_percent_2, "%"))
        table.add_row("Average change", _signed(detail.average_change))
        table.add_row("Average change %", _signed(detail.average_change_percent, "%"))
        table.add_row("Industry", detail.industry)
        self.console.print(Panel(
            table,
            title=f"[bold white]{detail.code} {detail.name}[/bold white]",
            subtitle=detail.description or None,
            border_style="blue",
            box=ROUNDED,
        ))

    def display_prediction_series(self, series: PredictionSeries, **kwargs: Any) -> None:
        self._stale_banner(kwargs)
        if not series.predictions:
            self.display_info(f"No predictions available for {series.code}.")
            return
        table = Table(title=f"{series.code} predictions ({series.model})", box=ROUNDED, header_style="bold cyan")
        table.add_column("Date")
        table.add_column("Predicted price", justify="right")
        table.add_column("Confidence", justify="right")
        for point in series.predictions:
            table.add_row(str(point.date), f"{point.predicted_price:,.2f}", f"{point.confidence:.0%}")
        self.console.print(table)

    def display_historical_prices(self, code: str, prices: Sequence[HistoricalPrice], **kwargs: Any) -> None:
        self._stale_banner(kwargs)
        table = Table(title=f"{code} price history", box=ROUNDED, header_style="bold cyan")
        table.add_column("Date")
        table.add_column("Close", justify="right")
        for price in prices:
            table.add_row(price.date, f"{price.close:,.2f}")
        self.console.print(table)

    def display_historical_predictions(self, code: str, predictions: Sequence[HistoricalPrediction], **kwargs: Any) -> None:
        self._stale_banner(kwargs)
        table = Table(title=f"{code} prediction history", box=ROUNDED, header_style="bold cyan")
        table.add_column("Date")
        table.add_column("NeuralProphet", justify="right")
        table.add_column("LLM", justify="right")
        for prediction in predictions:
            table.add_row(prediction.date, f"{prediction.predicted_price_1:,.2f}", f"{prediction.predicted_price_2:,.2f}")
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message.

        Args:
            info_message: The informational message to display.
        """
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message.

        Args:
            warning_message: The warning message to display.
        """
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
