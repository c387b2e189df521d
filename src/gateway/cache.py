"""TTL cache in front of the fetch orchestrator.

Holds exactly one entry (the "today" snapshot).  Requests inside the TTL never
touch the provider.  On a miss, concurrent callers share a single refresh.  If
the refresh fails, the configured policy picks the response:

    synthetic  Fresh synthetic snapshot, tagged and NOT cached, so the next
               request retries the provider.  Default.
    stale      The cached entry, tagged ``is_stale`` once past its TTL;
               otherwise synthetic as above.

This is the boundary where every gateway error turns into a response.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Callable, Literal

from src.gateway.base import CacheEntry, Snapshot
from src.gateway.fallback import FallbackGenerator
from src.gateway.orchestrator import (
    FetchFailure,
    FetchOrchestrator,
    FetchResult,
    FetchSuccess,
)

logger = logging.getLogger("heartline.gateway.cache")

StalePolicy = Literal["synthetic", "stale"]


class SnapshotCache:
    """Single-entry, single-flight TTL cache.

    Args:
        orchestrator: Source of live snapshots.
        fallback:     Source of synthetic snapshots.
        ttl_seconds:  Maximum age at which an entry is served as fresh.
        stale_policy: What to serve when a refresh fails (see module docs).
        clock:        Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        fallback: FallbackGenerator,
        ttl_seconds: float = 600.0,
        stale_policy: StalePolicy = "synthetic",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orchestrator = orchestrator
        self._fallback = fallback
        self._ttl = ttl_seconds
        self._policy = stale_policy
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._stores = 0
        self._refresh_lock = asyncio.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def age_seconds(self) -> float | None:
        """Age of the cached entry, or None when empty."""
        if self._entry is None:
            return None
        return self._entry.age(self._clock())

    def clear(self) -> None:
        self._entry = None

    def _fresh(self) -> Snapshot | None:
        entry = self._entry
        if entry is not None and entry.is_fresh(self._clock(), self._ttl):
            return entry.snapshot
        return None

    async def get_snapshot(self, force_refresh: bool = False) -> Snapshot:
        """Return the current snapshot.  Never raises for upstream failures.

        Args:
            force_refresh: Skip a fresh entry and go to the provider.
        """
        if not force_refresh:
            cached = self._fresh()
            if cached is not None:
                logger.debug("Cache hit (age %.1fs)", self.age_seconds() or 0.0)
                return cached

        stores_seen = self._stores
        async with self._refresh_lock:
            # Another caller may have refreshed while this one waited
            entry = self._entry
            if entry is not None and self._stores != stores_seen:
                logger.debug("Cache filled by concurrent refresh")
                return entry.snapshot
            if not force_refresh:
                cached = self._fresh()
                if cached is not None:
                    return cached

            logger.info("Cache %s, fetching from upstream", "bypass" if force_refresh else "miss")
            return self._resolve(await self._refresh())

    async def _refresh(self) -> FetchResult:
        try:
            return await self._orchestrator.fetch_snapshot()
        except Exception as exc:
            logger.exception("Orchestrator raised unexpectedly")
            return FetchFailure(error=exc)

    def _resolve(self, result: FetchResult) -> Snapshot:
        match result:
            case FetchSuccess(snapshot=snapshot):
                self._entry = CacheEntry(snapshot=snapshot, created_at=self._clock())
                self._stores += 1
                return snapshot
            case FetchFailure() as failure:
                return self._degrade(failure.diagnostic)
        raise TypeError(f"Unexpected fetch result: {result!r}")

    def _degrade(self, diagnostic: str) -> Snapshot:
        entry = self._entry
        if self._policy == "stale" and entry is not None:
            now = self._clock()
            # A forced refresh can fail while the entry is still inside its TTL
            expired = not entry.is_fresh(now, self._ttl)
            logger.warning(
                "Refresh failed, serving %s snapshot (age %.0fs): %s",
                "stale" if expired else "cached", entry.age(now), diagnostic,
            )
            return dataclasses.replace(entry.snapshot, is_stale=expired, diagnostic=diagnostic)
        return self._fallback.generate(diagnostic)
