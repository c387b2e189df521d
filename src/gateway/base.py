"""Canonical data models and the upstream client contract for the gateway.

Every provider client must subclass UpstreamClient and return raw
``[[timestamp_ms, value], ...]`` lists.  ``normalize_series`` turns those into
the canonical MetricSeries consumed by the joiner, the cache and the API layer.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping

if TYPE_CHECKING:
    from src.gateway.config_loader import GatewayConfig

logger = logging.getLogger("heartline.gateway")

#: (timestamp in epoch millis, value)
MetricPoint = tuple[int, float]

#: Points ordered by timestamp ascending, no duplicate timestamps.
MetricSeries = tuple[MetricPoint, ...]


# ---------------------------------------------------------------------------
# Credentials / session
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credentials:
    """The single account this deployment reads from.

    Attributes:
        identifier: Account login (e-mail for Garmin Connect).
        secret:     Account password.  Excluded from repr.
    """

    identifier: str
    secret: str = field(repr=False)


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    VALID = "valid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Session:
    """Authenticated upstream handle owned by the SessionManager.

    Attributes:
        handle:     Opaque object returned by UpstreamClient.login().
        generation: Increments with every successful login.  Lets the manager
                    ignore expiry signals raised against an older session.
        created_at: Monotonic clock reading at login.
    """

    handle: Any
    generation: int
    created_at: float


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Snapshot:
    """One consistent bundle of metric series plus provenance.

    Attributes:
        metrics:         Metric name -> series, or None if that metric failed.
        is_synthetic:    True when produced by the fallback generator.
        diagnostic:      The failure that caused synthetic or stale data.
        timeline:        Display rows from the series joiner.
        generated_at_ms: Epoch millis when this snapshot was built.
        is_stale:        True when an expired cache entry was served as a
                         last resort.
    """

    metrics: Mapping[str, MetricSeries | None]
    is_synthetic: bool = False
    diagnostic: str | None = None
    timeline: tuple[dict[str, Any], ...] = ()
    generated_at_ms: int = 0
    is_stale: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def series(self, metric: str) -> MetricSeries | None:
        return self.metrics.get(metric)

    def to_payload(self, config: GatewayConfig) -> dict[str, Any]:
        """Serialize to the JSON shape the dashboard expects.

        ``{hr: {heartRateValues: [[ts, v], ...]} | null, ..., isMock, debugError?}``
        """
        payload: dict[str, Any] = {}
        for spec in config.metrics:
            series = self.metrics.get(spec.name)
            if series is None:
                payload[spec.name] = None
            else:
                payload[spec.name] = {spec.values_key: [[ts, v] for ts, v in series]}
        payload["timeline"] = [dict(row) for row in self.timeline]
        payload["isMock"] = self.is_synthetic
        payload["isStale"] = self.is_stale
        payload["generatedAt"] = self.generated_at_ms
        if self.diagnostic:
            payload["debugError"] = self.diagnostic
        return payload


@dataclass(frozen=True)
class CacheEntry:
    """The single cached snapshot and when it was stored (monotonic seconds)."""

    snapshot: Snapshot
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return self.age(now) < ttl_seconds


# ---------------------------------------------------------------------------
# Series normalization
# ---------------------------------------------------------------------------


def normalize_series(raw: Iterable[Any] | None) -> MetricSeries:
    """Convert provider ``[[ts, value], ...]`` pairs into a canonical series.

    Pairs with a null or non-numeric value are dropped (the provider reports
    gaps as ``[ts, null]``).  Duplicate timestamps resolve last-write-wins.
    Output is sorted by timestamp ascending.

    Args:
        raw: Iterable of 2-item sequences.  None is treated as empty.

    Returns:
        Tuple of (timestamp_ms, value) pairs.
    """
    if raw is None:
        return ()
    by_ts: dict[int, float] = {}
    for item in raw:
        try:
            ts, value = item[0], item[1]
        except (TypeError, IndexError, KeyError):
            logger.debug("Skipping malformed point: %r", item)
            continue
        if value is None or isinstance(value, bool) or ts is None:
            continue
        try:
            by_ts[int(ts)] = value if isinstance(value, (int, float)) else float(value)
        except (TypeError, ValueError):
            logger.debug("Skipping non-numeric point: %r", item)
    return tuple(sorted(by_ts.items()))


# ---------------------------------------------------------------------------
# Upstream client contract
# ---------------------------------------------------------------------------


class UpstreamClient(ABC):
    """Opaque capability over the wellness-data provider.

    Implementations must raise:
        - AuthenticationError from login() when the login does not succeed.
        - SessionExpiredError from fetch_metric() on a 401-class response.
        - MetricFetchError from fetch_metric() for anything else.
    """

    #: Provider slug used in logs.
    SOURCE_ID: str = "unknown"

    @abstractmethod
    async def login(self, credentials: Credentials) -> Any:
        """Authenticate and return an opaque session handle."""

    @abstractmethod
    async def fetch_metric(self, handle: Any, metric: str, day: date) -> list[Any]:
        """Return the raw ``[[timestamp_ms, value], ...]`` list for one metric.

        Args:
            handle: Handle returned by login().
            metric: Catalogue metric name (e.g. 'hr', 'spo2', 'resp').
            day:    Calendar date to fetch (the user's local date).
        """
