"""FastAPI application factory with structured error responses."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sma.api.routes import router
from sma.exceptions import SMAError, ValidationError
from sma.logging import get_logger

log = get_logger(__name__)


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    log.info("request_rejected", path=request.url.path, reason=exc.reason, detail=str(exc))
    return JSONResponse(status_code=400, content={"reason": exc.reason, "message": str(exc)})


async def _internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("request_failed", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"reason": "internal_error", "message": "Error processing the request"},
    )


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
                  Used by main.py to open the database and start the worker.
                  Tests set ``app.state.sma_service`` directly instead.

    Returns:
        Configured FastAPI application with the health and SMA routes.
    """
    app = FastAPI(
        title="SMA API",
        description="Simple moving averages of BRL crypto pairs",
        lifespan=lifespan,
    )

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(SMAError, _internal_error_handler)
    app.add_exception_handler(Exception, _internal_error_handler)

    app.include_router(router)

    return app
