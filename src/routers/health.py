"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings, Gateway
from src.models.system import HealthStatus

router = APIRouter(tags=["system"])
logger = logging.getLogger("heartline.health")


@router.get("/health", response_model=HealthStatus)
async def health_check(gateway: Gateway, settings: AppSettings) -> HealthStatus:
    """Liveness probe. Returns 200 if the API process is up.

    Reports the gateway's session and cache state without touching Garmin.
    """
    status = gateway.status()
    healthy = status["credentials_configured"] and status["session"] != "expired"
    return HealthStatus(
        status="healthy" if healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc),
        **status,
    )
