"""Schemas for operational endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from src.models.base import HeartlineBase, utc_now


class HealthStatus(HeartlineBase):
    status: Literal["healthy", "degraded"]
    version: str
    environment: str
    timestamp: datetime = Field(default_factory=utc_now)

    credentials_configured: bool
    session: Literal["uninitialized", "valid", "expired"]
    login_attempts: int = Field(ge=0)
    cache_age_seconds: float | None = None
    cache_ttl_seconds: float
    metrics: list[str] = Field(default_factory=list)
