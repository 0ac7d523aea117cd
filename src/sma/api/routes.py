"""HTTP endpoints: health probe and SMA series query."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from sma.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> JSONResponse:
    """Liveness probe."""
    return JSONResponse(content={"status": "healthy"})


@router.get("/api/v1/{pair}/mms")
async def get_mms(
    request: Request,
    pair: str,
    from_ts: str | None = Query(default=None, alias="from"),
    to_ts: str | None = Query(default=None, alias="to"),
    window: str | None = Query(default=None, alias="range"),
) -> JSONResponse:
    """SMA series for one pair and window, ascending by day.

    Query params are taken as raw strings so malformed values surface as
    the service's validation errors instead of framework 422 responses.
    """
    service = request.app.state.sma_service
    points = await service.get_sma_series(pair, from_ts, to_ts, window)
    log.debug("mms_query_served", pair=pair, window=window, points=len(points))
    return JSONResponse(
        content=[{"timestamp": p.timestamp, "value": p.value} for p in points]
    )
