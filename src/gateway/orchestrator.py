"""Fetch orchestrator — one concurrent round of per-metric upstream calls.

Each catalogue metric is fetched through ``SessionManager.with_session`` and
bounded by a timeout.  Secondary metrics degrade to None on failure; the
primary metric (heart rate) failing fails the whole round.  The result is an
explicit ``FetchSuccess | FetchFailure``; substituting synthetic data is the
cache layer's decision, not this module's.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Union

from src.gateway.base import MetricSeries, Snapshot, UpstreamClient, normalize_series
from src.gateway.config_loader import GatewayConfig
from src.gateway.errors import UpstreamTimeoutError
from src.gateway.joiner import join
from src.gateway.session import SessionManager

logger = logging.getLogger("heartline.gateway.orchestrator")


@dataclass(frozen=True)
class FetchSuccess:
    snapshot: Snapshot


@dataclass(frozen=True)
class FetchFailure:
    """The primary metric could not be fetched.

    Attributes:
        error: The exception that failed the primary metric.
    """

    error: BaseException

    @property
    def diagnostic(self) -> str:
        return str(self.error) or type(self.error).__name__


FetchResult = Union[FetchSuccess, FetchFailure]


def _now_ms() -> int:
    return int(time.time() * 1000)


class FetchOrchestrator:
    """Fetch every catalogue metric for a day and assemble a Snapshot.

    Args:
        client:                Upstream provider client.
        sessions:              Session manager wrapping every call.
        config:                Metric catalogue.
        fetch_timeout_seconds: Upper bound for each upstream metric call.
        clock_ms:              Returns "now" in epoch millis.
        today:                 Returns the date to fetch when none is given.
    """

    def __init__(
        self,
        client: UpstreamClient,
        sessions: SessionManager,
        config: GatewayConfig,
        fetch_timeout_seconds: float = 15.0,
        clock_ms: Callable[[], int] = _now_ms,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._sessions = sessions
        self._config = config
        self._timeout = fetch_timeout_seconds
        self._clock_ms = clock_ms
        self._today = today

    async def _fetch_metric(self, metric: str, day: date) -> MetricSeries:
        async def op(handle: object) -> MetricSeries:
            try:
                raw = await asyncio.wait_for(
                    self._client.fetch_metric(handle, metric, day), timeout=self._timeout
                )
            except asyncio.TimeoutError:
                raise UpstreamTimeoutError(
                    metric, f"timed out after {self._timeout:.0f}s"
                ) from None
            return normalize_series(raw)

        return await self._sessions.with_session(op, label=f"fetch {metric}")

    async def fetch_snapshot(self, day: date | None = None) -> FetchResult:
        """Fetch all metrics for ``day`` (default: today) concurrently.

        Waits for every metric, or its failure, before building the snapshot.

        Returns:
            FetchSuccess with a live snapshot, or FetchFailure carrying the
            primary metric's error.
        """
        target = day or self._today()
        specs = self._config.metrics
        results = await asyncio.gather(
            *(self._fetch_metric(spec.name, target) for spec in specs),
            return_exceptions=True,
        )

        metrics: dict[str, MetricSeries | None] = {}
        for spec, result in zip(specs, results):
            if isinstance(result, BaseException):
                if spec.primary:
                    logger.error(
                        "Primary metric '%s' failed for %s: %s", spec.name, target, result
                    )
                    return FetchFailure(error=result)
                logger.warning(
                    "Metric '%s' unavailable for %s, degrading to null: %s",
                    spec.name, target, result,
                )
                metrics[spec.name] = None
            else:
                metrics[spec.name] = result

        primary = self._config.primary.name
        if not metrics[primary]:
            logger.info("Primary metric '%s' returned no points for %s", primary, target)

        snapshot = Snapshot(
            metrics=metrics,
            is_synthetic=False,
            timeline=join(metrics, primary, self._config.join_tolerance_ms),
            generated_at_ms=self._clock_ms(),
        )
        logger.info(
            "Fetched snapshot for %s: %s",
            target,
            ", ".join(
                f"{name}={len(series) if series is not None else 'null'}"
                for name, series in metrics.items()
            ),
        )
        return FetchSuccess(snapshot)
