"""Synthetic snapshot generator — the last line of defense.

When no real data is available the dashboard still gets a plausible,
clearly-tagged snapshot: evenly spaced points ending at "now", with values
drawn uniformly from each metric's physiological range in the catalogue.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from src.gateway.base import MetricSeries, Snapshot
from src.gateway.config_loader import FallbackRange, GatewayConfig
from src.gateway.joiner import join

logger = logging.getLogger("heartline.gateway.fallback")


def _now_ms() -> int:
    return int(time.time() * 1000)


class FallbackGenerator:
    """Build synthetic snapshots from the metric catalogue.

    Args:
        config: Validated catalogue (ranges, point count, interval).
        rng:    Random source; pass a seeded ``random.Random`` in tests.
        clock:  Returns "now" in epoch millis.
    """

    def __init__(
        self,
        config: GatewayConfig,
        rng: random.Random | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._config = config
        self._rng = rng or random.Random()
        self._clock = clock

    def _series(self, fb: FallbackRange, end_ms: int) -> MetricSeries:
        n = self._config.fallback_points
        step = self._config.fallback_interval_ms
        points = []
        for i in range(n):
            value = round(self._rng.uniform(fb.min, fb.max), fb.decimals)
            points.append((end_ms - (n - 1 - i) * step, int(value) if fb.decimals == 0 else value))
        return tuple(points)

    def generate(self, diagnostic: str | None = None) -> Snapshot:
        """Return a synthetic snapshot tagged ``is_synthetic=True``.

        Every catalogue metric with a fallback range gets a series; metrics
        without one are None.  The last point of each series is "now".

        Args:
            diagnostic: The failure that triggered the substitution.
        """
        end_ms = self._clock()
        metrics: dict[str, MetricSeries | None] = {}
        for spec in self._config.metrics:
            fb = spec.fallback
            metrics[spec.name] = self._series(fb, end_ms) if fb is not None else None

        logger.warning("Serving synthetic data. Reason: %s", diagnostic or "unspecified")
        return Snapshot(
            metrics=metrics,
            is_synthetic=True,
            diagnostic=diagnostic,
            timeline=join(metrics, self._config.primary.name, self._config.join_tolerance_ms),
            generated_at_ms=end_ms,
        )
