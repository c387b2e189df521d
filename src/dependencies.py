"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.gateway.service import DashboardGateway


@lru_cache
def get_gateway() -> DashboardGateway:
    """Return the process-wide gateway, building it on first use.

    Session and cache state live on this object, so every request in the
    process shares one login and one cache entry.
    """
    return DashboardGateway.from_settings(get_settings())


# Annotated shortcuts for route signatures
Gateway = Annotated[DashboardGateway, Depends(get_gateway)]
AppSettings = Annotated[Settings, Depends(get_settings)]
