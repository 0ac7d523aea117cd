"""Tests for process wiring: initial load and the API lifespan."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from sma.api.app import create_app
from sma.config import AppSettings, BackfillSettings
from sma.exceptions import FetchError
from sma.main import lifespan, run_initial_load
from sma.models import Pair


def _components(service=None) -> dict:
    database = MagicMock()
    database.connect = AsyncMock()
    database.close = AsyncMock()
    candle_source = MagicMock()
    candle_source.connect = AsyncMock()
    candle_source.close = AsyncMock()
    orchestrator = MagicMock()
    orchestrator.start = AsyncMock()
    orchestrator.stop = AsyncMock()
    return {
        "database": database,
        "store": MagicMock(),
        "candle_source": candle_source,
        "service": service or MagicMock(),
        "alert_monitor": MagicMock(),
        "orchestrator": orchestrator,
    }


class TestInitialLoad:
    """One-shot trailing-year load."""

    @pytest.mark.asyncio
    async def test_loads_each_pair_over_trailing_year(self, today) -> None:
        service = MagicMock()
        service.calculate_and_save = AsyncMock(return_value=365)
        components = _components(service)

        with (
            patch("sma.main.setup_logging"),
            patch("sma.main.utc_today", return_value=today),
            patch("sma.main._build_components", AsyncMock(return_value=components)),
        ):
            code = await run_initial_load()

        assert code == 0
        from_day, to_day = today - timedelta(days=365), today - timedelta(days=1)
        assert [c.args for c in service.calculate_and_save.await_args_list] == [
            (Pair.BRLBTC, from_day, to_day),
            (Pair.BRLETH, from_day, to_day),
        ]
        components["database"].close.assert_awaited_once()
        components["candle_source"].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_first_failure_aborts_with_exit_code(self, today) -> None:
        service = MagicMock()
        service.calculate_and_save = AsyncMock(side_effect=FetchError("unreachable"))
        components = _components(service)

        with (
            patch("sma.main.setup_logging"),
            patch("sma.main.utc_today", return_value=today),
            patch("sma.main._build_components", AsyncMock(return_value=components)),
        ):
            code = await run_initial_load()

        assert code == 1
        assert service.calculate_and_save.await_count == 1
        components["database"].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_exchange_at_startup_is_not_fatal(self, today) -> None:
        service = MagicMock()
        service.calculate_and_save = AsyncMock(return_value=0)
        components = _components(service)
        components["candle_source"].connect.side_effect = FetchError("markets")

        with (
            patch("sma.main.setup_logging"),
            patch("sma.main.utc_today", return_value=today),
            patch("sma.main._build_components", AsyncMock(return_value=components)),
        ):
            code = await run_initial_load()

        assert code == 0
        assert service.calculate_and_save.await_count == 2


class TestLifespan:
    """FastAPI lifespan opens and closes resources."""

    def _app(self, components, worker_enabled: bool):
        app = create_app(lifespan=lifespan)
        app.state.settings = AppSettings(backfill=BackfillSettings(enabled=worker_enabled))
        app.state.components = components
        return app

    def test_opens_and_closes_without_worker(self) -> None:
        components = _components()
        app = self._app(components, worker_enabled=False)

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert app.state.sma_service is components["service"]

        components["database"].connect.assert_awaited_once()
        components["database"].close.assert_awaited_once()
        components["candle_source"].close.assert_awaited_once()
        components["orchestrator"].start.assert_not_called()

    def test_worker_started_and_stopped(self) -> None:
        components = _components()
        app = self._app(components, worker_enabled=True)

        with TestClient(app):
            pass

        components["orchestrator"].start.assert_called_once()
        components["orchestrator"].stop.assert_awaited_once()
