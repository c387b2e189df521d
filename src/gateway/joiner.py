"""Series joiner — align independently-sampled metric series onto one timeline.

The reference (primary) series defines the rows.  For each reference
timestamp, every other series contributes the value of its nearest point
within ``tolerance_ms``, or None.  Equidistant candidates resolve to the
earlier point so the output is deterministic.

Pure functions only: no I/O, no clock.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from typing import Any, Mapping, Sequence

from src.gateway.base import MetricPoint, MetricSeries

logger = logging.getLogger("heartline.gateway.joiner")


def _dedupe(series: Sequence[Sequence[Any]]) -> MetricSeries:
    """Sort by timestamp; on duplicate timestamps the last point wins."""
    by_ts: dict[int, Any] = {}
    for point in series:
        by_ts[int(point[0])] = point[1]
    return tuple(sorted(by_ts.items()))


def nearest_point(
    series: Sequence[MetricPoint],
    timestamps: Sequence[int],
    target: int,
    tolerance_ms: int,
) -> MetricPoint | None:
    """Return the point of ``series`` closest to ``target`` within tolerance.

    Args:
        series:       Sorted, de-duplicated points.
        timestamps:   The timestamps of ``series`` (precomputed for bisect).
        target:       Reference timestamp in epoch millis.
        tolerance_ms: Inclusive maximum distance.

    Returns:
        The nearest qualifying point, the earlier one on a tie, or None.
    """
    if not series:
        return None
    idx = bisect_left(timestamps, target)
    best: MetricPoint | None = None
    best_dist = tolerance_ms + 1
    # Candidates are the neighbours around the insertion point; checking the
    # earlier one first makes ties keep it
    for i in (idx - 1, idx):
        if 0 <= i < len(series):
            dist = abs(timestamps[i] - target)
            if dist <= tolerance_ms and dist < best_dist:
                best, best_dist = series[i], dist
    return best


def join(
    series_by_metric: Mapping[str, Sequence[Sequence[Any]] | None],
    reference: str,
    tolerance_ms: int = 60_000,
) -> tuple[dict[str, Any], ...]:
    """Join N metric series onto the reference series' timestamps.

    Args:
        series_by_metric: Metric name -> series (``[[ts, value], ...]``) or
                          None when that metric is unavailable.
        reference:        Metric whose timestamps define the rows.
        tolerance_ms:     Inclusive pairing distance in milliseconds.

    Returns:
        One dict per reference timestamp, in ascending order::

            {"timestamp": 0, "hr": 61, "spo2": 97.0, "resp": None}

        Empty when the reference series is missing or empty.
    """
    ref_series = series_by_metric.get(reference)
    if not ref_series:
        return ()

    ref = _dedupe(ref_series)
    others: dict[str, tuple[MetricSeries, list[int]] | None] = {}
    for name, series in series_by_metric.items():
        if name == reference:
            continue
        if series is None:
            others[name] = None
        else:
            clean = _dedupe(series)
            others[name] = (clean, [ts for ts, _ in clean])

    rows: list[dict[str, Any]] = []
    for ts, value in ref:
        row: dict[str, Any] = {"timestamp": ts, reference: value}
        for name, indexed in others.items():
            if indexed is None:
                row[name] = None
                continue
            point = nearest_point(indexed[0], indexed[1], ts, tolerance_ms)
            row[name] = point[1] if point is not None else None
        rows.append(row)

    logger.debug(
        "Joined %d rows on '%s' across %d other series", len(rows), reference, len(others)
    )
    return tuple(rows)
