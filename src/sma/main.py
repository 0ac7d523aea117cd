"""Entry points for the SMA service.

Three processes share the same component wiring:

- ``main``: FastAPI query API. When BACKFILL_ENABLED (default) the backfill
  worker runs in the same asyncio event loop, started and stopped by the
  FastAPI lifespan.
- ``worker_main``: the scheduled backfill worker alone.
- ``initial_load_main``: one-shot load of the trailing year for every
  configured pair, failing fast on the first error.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. SMADatabase + SQLiteSMAStore (persistence)
4. MercadoBitcoinClient (candle source)
5. SMAService (query + backfill unit + completeness)
6. AlertMonitor (alert sink)
7. BackfillOrchestrator (scheduled worker)
"""

import asyncio
import signal
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import uvicorn
from fastapi import FastAPI

from sma.api.app import create_app
from sma.config import AppSettings
from sma.data.database import SMADatabase
from sma.data.store import SQLiteSMAStore
from sma.exceptions import FetchError, SMAError
from sma.exchange.mercado_client import MercadoBitcoinClient
from sma.logging import get_logger, setup_logging
from sma.models import Pair, utc_today
from sma.monitoring.alerts import AlertMonitor
from sma.orchestrator import BackfillOrchestrator
from sma.service import SMAService


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Does NOT open the database or the exchange session -- that happens in
    the lifespan (API mode) or in the worker/initial-load runners.
    """
    database = SMADatabase(settings.database.path)
    store = SQLiteSMAStore(database)
    candle_source = MercadoBitcoinClient(settings.exchange)

    service = SMAService(
        repository=store,
        candle_source=candle_source,
        lookback_days=settings.backfill.lookback_days,
        completeness_days=settings.backfill.completeness_days,
        max_query_age_days=settings.api.max_query_age_days,
    )
    alert_monitor = AlertMonitor(settings.alert)
    orchestrator = BackfillOrchestrator(
        service=service,
        alert_sink=alert_monitor,
        settings=settings.backfill,
    )

    return {
        "database": database,
        "store": store,
        "candle_source": candle_source,
        "service": service,
        "alert_monitor": alert_monitor,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: BackfillOrchestrator) -> None:
    """SIGINT/SIGTERM request a graceful worker stop.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("sma.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def _connect_candle_source(candle_source: MercadoBitcoinClient) -> None:
    """Load exchange markets; an unreachable exchange is retried by the worker later."""
    try:
        await candle_source.connect()
    except FetchError as e:
        get_logger("sma.main").warning("candle_source_unavailable_at_startup", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage and the exchange session; optionally run the worker.

    On shutdown: stops the worker, waits for its task, closes the
    exchange session and the database.
    """
    logger = get_logger("sma.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.sma_service = components["service"]

    await components["database"].connect()
    await _connect_candle_source(components["candle_source"])

    worker_task: asyncio.Task | None = None
    if settings.backfill.enabled:
        worker_task = asyncio.create_task(components["orchestrator"].start())

    logger.info("lifespan_started", worker_enabled=settings.backfill.enabled)

    yield

    if worker_task is not None:
        await components["orchestrator"].stop()
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass

    await components["candle_source"].close()
    await components["database"].close()
    logger.info("sma_api_stopped")


async def run() -> None:
    """Run the query API (and the embedded worker when enabled)."""
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("sma.main")

    components = await _build_components(settings)

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info("starting_api", host=settings.api.host, port=settings.api.port)

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    server = uvicorn.Server(config)
    await server.serve()


async def run_worker() -> None:
    """Run the scheduled backfill worker without the HTTP server."""
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("sma.main")

    components = await _build_components(settings)
    orchestrator: BackfillOrchestrator = components["orchestrator"]
    _setup_signal_handlers(orchestrator)

    logger.info(
        "starting_worker",
        pairs=settings.backfill.pairs,
        test_mode=settings.backfill.test_mode,
    )

    try:
        await components["database"].connect()
        await _connect_candle_source(components["candle_source"])
        await orchestrator.start()
    finally:
        await components["candle_source"].close()
        await components["database"].close()
        logger.info("sma_worker_stopped")


async def run_initial_load() -> int:
    """Load the trailing year for every configured pair. Returns an exit code."""
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("sma.main")

    components = await _build_components(settings)
    service: SMAService = components["service"]

    today = utc_today()
    from_day = today - timedelta(days=settings.backfill.completeness_days)
    to_day = today - timedelta(days=1)

    try:
        await components["database"].connect()
        await _connect_candle_source(components["candle_source"])
        for name in settings.backfill.pairs:
            pair = Pair.parse(name)
            logger.info(
                "initial_load_starting",
                pair=pair.value,
                from_day=from_day.isoformat(),
                to_day=to_day.isoformat(),
            )
            written = await service.calculate_and_save(pair, from_day, to_day)
            logger.info("initial_load_complete", pair=pair.value, records=written)
    except SMAError as e:
        logger.error("initial_load_failed", error_type=type(e).__name__, error=str(e))
        return 1
    finally:
        await components["candle_source"].close()
        await components["database"].close()
    return 0


def main() -> None:
    """Synchronous entry point for the API server."""
    asyncio.run(run())


def worker_main() -> None:
    """Synchronous entry point for the standalone worker."""
    asyncio.run(run_worker())


def initial_load_main() -> None:
    """Synchronous entry point for the initial load."""
    sys.exit(asyncio.run(run_initial_load()))


if __name__ == "__main__":
    main()
