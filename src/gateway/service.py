"""The process-wide gateway object.

Wires the session manager, orchestrator, fallback generator and cache
together.  One instance lives for the warm lifetime of the process; a
recycled process simply starts cold (no session, empty cache).
"""

from __future__ import annotations

import logging
from typing import Any

from src.config import Settings
from src.gateway.adapters import GarthUpstreamClient
from src.gateway.base import Credentials, SessionState, Snapshot, UpstreamClient
from src.gateway.cache import SnapshotCache
from src.gateway.config_loader import GatewayConfig, get_gateway_config
from src.gateway.fallback import FallbackGenerator
from src.gateway.orchestrator import FetchOrchestrator
from src.gateway.session import SessionManager

logger = logging.getLogger("heartline.gateway.service")


class DashboardGateway:
    """Facade over the session, cache and fallback machinery.

    Usage::

        gateway = DashboardGateway.from_settings(get_settings())
        snapshot = await gateway.get_snapshot()
        body = gateway.payload(snapshot)
    """

    def __init__(
        self,
        client: UpstreamClient,
        credentials: Credentials | None,
        config: GatewayConfig,
        *,
        cache_ttl_seconds: float = 600.0,
        fetch_timeout_seconds: float = 15.0,
        login_timeout_seconds: float = 30.0,
        stale_policy: str = "synthetic",
    ) -> None:
        self.config = config
        self.sessions = SessionManager(
            client, credentials, login_timeout_seconds=login_timeout_seconds
        )
        self.fallback = FallbackGenerator(config)
        self.orchestrator = FetchOrchestrator(
            client, self.sessions, config, fetch_timeout_seconds=fetch_timeout_seconds
        )
        self.cache = SnapshotCache(
            self.orchestrator,
            self.fallback,
            ttl_seconds=cache_ttl_seconds,
            stale_policy=stale_policy,  # type: ignore[arg-type]
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: UpstreamClient | None = None,
        config: GatewayConfig | None = None,
    ) -> "DashboardGateway":
        credentials = None
        if settings.has_credentials:
            credentials = Credentials(
                identifier=settings.garmin_email or "",
                secret=settings.garmin_password or "",
            )
        else:
            logger.warning(
                "GARMIN_EMAIL / GARMIN_PASSWORD not configured; serving synthetic data only"
            )
        return cls(
            client or GarthUpstreamClient(
                domain=settings.garmin_domain, token_dir=settings.garth_token_dir
            ),
            credentials,
            config or get_gateway_config(),
            cache_ttl_seconds=settings.cache_ttl_seconds,
            fetch_timeout_seconds=settings.fetch_timeout_seconds,
            login_timeout_seconds=settings.login_timeout_seconds,
            stale_policy=settings.stale_policy,
        )

    async def get_snapshot(self, force_refresh: bool = False) -> Snapshot:
        return await self.cache.get_snapshot(force_refresh=force_refresh)

    def synthetic(self, diagnostic: str) -> Snapshot:
        return self.fallback.generate(diagnostic)

    def payload(self, snapshot: Snapshot) -> dict[str, Any]:
        return snapshot.to_payload(self.config)

    @property
    def session_state(self) -> SessionState:
        return self.sessions.state

    def status(self) -> dict[str, Any]:
        """Operational summary for the health endpoint.  No secrets."""
        age = self.cache.age_seconds()
        return {
            "credentials_configured": self.sessions.has_credentials,
            "session": self.sessions.state.value,
            "login_attempts": self.sessions.login_attempts,
            "cache_age_seconds": round(age, 1) if age is not None else None,
            "cache_ttl_seconds": self.cache.ttl_seconds,
            "metrics": self.config.metric_names,
        }
