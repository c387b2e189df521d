"""Heartline API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import get_settings
from src.dependencies import get_gateway
from src.middleware.security import SecurityHeadersMiddleware
from src.routers import dashboard, health

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("heartline")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting Heartline API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    # Build the gateway eagerly so a broken metric catalogue fails at boot
    gateway = get_gateway()
    logger.info(
        "Gateway ready: metrics=%s ttl=%.0fs policy=%s",
        ",".join(gateway.config.metric_names),
        settings.cache_ttl_seconds,
        settings.stale_policy,
    )
    yield
    logger.info("Heartline API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Heartline API",
        description=(
            "Cached, failure-tolerant gateway between a Garmin Connect account "
            "and a single-user biometric dashboard."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ---------- Middleware (order matters, outermost first) ----------

    # Security headers on every response
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS: must be the innermost middleware so it can handle preflight
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # ---------- Routes ----------
    app.include_router(health.router)
    app.include_router(dashboard.router)

    return app


app = create_app()
