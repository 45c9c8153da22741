"""Main entry point for the stockcast application.

Sets up the Typer CLI application, performs dependency injection (Composition
Root), defines CLI commands, and delegates execution to the CommandHandler.
Every command builds its own set of instances: one cache store, one
concurrency queue, one backend client, shared by all fetches of that run.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import typer
from typing_extensions import Annotated

from stockcast.core.command_handler import CommandHandler
from stockcast.core.services.fetch_orchestrator import CacheAsideFetcher
from stockcast.core.services.stock_service import (
    DEFAULT_HISTORY_DAYS,
    DEFAULT_PREDICTION_HISTORY_DAYS,
    StockService,
)
from stockcast.domain.models.stock import StockFilterParams
from stockcast.infrastructure.api.http_client import HttpBackendClient
from stockcast.infrastructure.cache.persistent_store import PersistentCacheStore
from stockcast.infrastructure.cli.display import ConsoleDisplay
from stockcast.infrastructure.config.settings import (
    get_api_base_url,
    get_api_timeout,
    get_cache_dir,
    get_cache_namespace,
    get_cache_ttl,
    get_config,
    get_queue_concurrency,
    get_task_timeout,
    is_prefetch_enabled,
    load_configuration,
)
from stockcast.infrastructure.monitoring.logger_setup import resolve_level, setup_logging
from stockcast.infrastructure.resilience.concurrency_queue import ConcurrencyQueue

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies(verbose: bool = False) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command run.

    This acts as the Composition Root.
    """
    load_configuration()
    log_level = logging.DEBUG if verbose else resolve_level(get_config('logging.level'))
    setup_logging(
        log_level=log_level,
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        log_file=get_config('logging.file'),
    )

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['cache_store'] = PersistentCacheStore(
        cache_dir=get_cache_dir(),
        namespace=get_cache_namespace(),
        default_ttl=get_cache_ttl(),
    )
    dependencies['queue'] = ConcurrencyQueue(
        capacity=get_queue_concurrency(),
        default_timeout=get_task_timeout(),
    )
    dependencies['backend'] = HttpBackendClient(
        base_url=get_api_base_url(),
        timeout=get_api_timeout(),
    )
    dependencies['fetcher'] = CacheAsideFetcher(
        cache_store=dependencies['cache_store'],
        queue=dependencies['queue'],
    )
    dependencies['stock_service'] = StockService(
        backend=dependencies['backend'],
        fetcher=dependencies['fetcher'],
        prefetch_enabled=is_prefetch_enabled(),
    )
    dependencies['command_handler'] = CommandHandler(
        stock_service=dependencies['stock_service'],
        cache_store=dependencies['cache_store'],
        ui=dependencies['ui'],
    )
    logger.debug("All dependencies initialized.")
    return dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="stockcast",
    help="stockcast: cached, rate-limited access to stock price predictions.",
    add_completion=False,
)

_state: Dict[str, Any] = {"verbose": False}

def run_command(action: Callable[[CommandHandler], Awaitable[bool]], drain_prefetch: bool = True) -> None:
    """Builds dependencies, runs one async command and shuts down cleanly."""
    dependencies = create_dependencies(verbose=_state["verbose"])
    handler: CommandHandler = dependencies['command_handler']

    async def runner() -> bool:
        try:
            return await action(handler)
        finally:
            await handler.shutdown(drain_prefetch=drain_prefetch)

    try:
        succeeded = asyncio.run(runner())
    finally:
        dependencies['cache_store'].close()
    if not succeeded:
        raise typer.Exit(code=1)

# --- CLI Commands ---

CodeArgument = Annotated[str, typer.Argument(help="Stock code, e.g. 2330.")]

@app.command()
def stocks(
    refresh: Annotated[bool, typer.Option("--refresh", "-r", help="Bypass a fresh cache entry.")] = False,
    prefetch: Annotated[bool, typer.Option("--prefetch/--no-prefetch", help="Warm per-stock caches afterwards.")] = True,
):
    """List stocks with predicted price changes."""
    run_command(lambda h: h.handle_list(force_refresh=refresh, prefetch=prefetch))

@app.command()
def refresh():
    """Refetch the stock list from the backend."""
    run_command(lambda h: h.handle_refresh())

@app.command()
def detail(code: CodeArgument):
    """Show one stock with both predictions."""
    run_command(lambda h: h.handle_detail(code))

@app.command()
def predictions(code: CodeArgument):
    """Show the prediction series of a stock."""
    run_command(lambda h: h.handle_predictions(code))

@app.command()
def history(
    code: CodeArgument,
    days: Annotated[int, typer.Option("--days", "-d", min=1, help="Number of trading days.")] = DEFAULT_HISTORY_DAYS,
):
    """Show recent close prices of a stock."""
    run_command(lambda h: h.handle_history(code, days))

@app.command(name="prediction-history")
def prediction_history(
    code: CodeArgument,
    days: Annotated[int, typer.Option("--days", "-d", min=1, help="Number of predictions.")] = DEFAULT_PREDICTION_HISTORY_DAYS,
):
    """Show past predictions of both methods."""
    run_command(lambda h: h.handle_prediction_history(code, days))

@app.command(name="filter")
def filter_command(
    up: Annotated[Optional[float], typer.Option("--up", help="Keep stocks predicted to rise at least this many percent.")] = None,
    down: Annotated[Optional[float], typer.Option("--down", help="Keep stocks predicted to fall to at most this percent (e.g. -3).")] = None,
):
    """List stocks whose predicted change crosses a threshold."""
    filters = StockFilterParams(
        up_trend_enabled=up is not None,
        down_trend_enabled=down is not None,
        up_trend_threshold=up if up is not None else 0.0,
        down_trend_threshold=down if down is not None else 0.0,
    )
    run_command(lambda h: h.handle_filter(filters))

@app.command(name="clear-cache")
def clear_cache_command(
    expired_only: Annotated[bool, typer.Option("--expired-only", help="Only remove expired entries.")] = False,
):
    """Clear the local data cache."""
    run_command(lambda h: h.handle_clear_cache(expired_only), drain_prefetch=False)

@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """stockcast command line interface."""
    _state["verbose"] = verbose

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
