"""Dashboard data endpoint — the one route the display layer calls.

Always answers 200.  When live data is unavailable the body is a synthetic
snapshot with ``isMock: true`` and the reason in ``debugError``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from src.dependencies import Gateway

router = APIRouter(tags=["dashboard"])
logger = logging.getLogger("heartline.dashboard")

_REFRESH_VALUES = {"1", "true", "yes"}


@router.get("/api")
@router.get("/api/index", include_in_schema=False)
async def get_dashboard_data(
    gateway: Gateway,
    refresh: str | None = Query(None, description="1, true or yes bypasses the cache"),
) -> JSONResponse:
    """Today's heart rate (and secondary metrics) for the dashboard.

    Unrecognised ``refresh`` values and any other query parameter (e.g. a
    ``t=`` cache-buster) are ignored.
    """
    force_refresh = (refresh or "").strip().lower() in _REFRESH_VALUES
    try:
        snapshot = await gateway.get_snapshot(force_refresh=force_refresh)
    except Exception as exc:
        logger.exception("Gateway failed outside its own error handling")
        snapshot = gateway.synthetic(f"Internal error: {exc}")
    return JSONResponse(status_code=200, content=gateway.payload(snapshot))
