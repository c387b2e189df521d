"""Shared fixtures for gateway tests."""

from __future__ import annotations

import random
from datetime import date

import pytest

from src.gateway.base import Credentials
from src.gateway.cache import SnapshotCache
from src.gateway.config_loader import GatewayConfig, load_gateway_config
from src.gateway.fallback import FallbackGenerator
from src.gateway.orchestrator import FetchOrchestrator
from src.gateway.session import SessionManager
from src.gateway.tests.fakes import T0, FakeClock, FakeUpstream

TEST_DAY = date(2026, 2, 23)
TEST_CREDENTIALS = Credentials(identifier="runner@example.com", secret="hunter2")


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway_config() -> GatewayConfig:
    """Load the bundled metric catalogue."""
    return load_gateway_config()


# ---------------------------------------------------------------------------
# Upstream / clocks
# ---------------------------------------------------------------------------


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Gateway components wired to the fake upstream
# ---------------------------------------------------------------------------


@pytest.fixture
def sessions(upstream: FakeUpstream) -> SessionManager:
    return SessionManager(upstream, TEST_CREDENTIALS, login_timeout_seconds=1.0)


@pytest.fixture
def orchestrator(
    upstream: FakeUpstream, sessions: SessionManager, gateway_config: GatewayConfig
) -> FetchOrchestrator:
    return FetchOrchestrator(
        upstream,
        sessions,
        gateway_config,
        fetch_timeout_seconds=0.5,
        clock_ms=lambda: T0 + 400_000,
        today=lambda: TEST_DAY,
    )


@pytest.fixture
def fallback(gateway_config: GatewayConfig) -> FallbackGenerator:
    return FallbackGenerator(
        gateway_config, rng=random.Random(42), clock=lambda: T0 + 3_000_000
    )


@pytest.fixture
def cache(
    orchestrator: FetchOrchestrator, fallback: FallbackGenerator, clock: FakeClock
) -> SnapshotCache:
    return SnapshotCache(orchestrator, fallback, ttl_seconds=600.0, clock=clock)
