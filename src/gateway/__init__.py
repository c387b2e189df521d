"""Heartline resilient data-fetching gateway.

Sits between the Garmin Connect account and the dashboard: one shared login,
a TTL cache, retry on session expiry, per-metric degradation, synthetic
fallback data and timeline alignment across metrics.

Core modules:
    base          — canonical data models and the UpstreamClient ABC
    errors        — exception taxonomy
    config_loader — load/validate/hot-reload gateway_config.yaml
    session       — single-flight session manager
    retry         — bounded retry-on-expiry policy
    orchestrator  — concurrent per-metric fetch
    cache         — single-entry TTL cache and failure policy
    fallback      — synthetic snapshot generator
    joiner        — nearest-point series alignment
    service       — the process-wide DashboardGateway
"""

from src.gateway.base import (
    CacheEntry,
    Credentials,
    MetricPoint,
    MetricSeries,
    Session,
    SessionState,
    Snapshot,
    UpstreamClient,
)
from src.gateway.config_loader import GatewayConfig, get_gateway_config
from src.gateway.errors import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    MetricFetchError,
    SessionExpiredError,
    UpstreamTimeoutError,
)

__all__ = [
    "CacheEntry",
    "Credentials",
    "MetricPoint",
    "MetricSeries",
    "Session",
    "SessionState",
    "Snapshot",
    "UpstreamClient",
    "GatewayConfig",
    "get_gateway_config",
    "GatewayError",
    "ConfigurationError",
    "AuthenticationError",
    "SessionExpiredError",
    "MetricFetchError",
    "UpstreamTimeoutError",
]
