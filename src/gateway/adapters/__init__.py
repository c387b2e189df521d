"""Upstream provider clients for Heartline.

Each client implements the UpstreamClient ABC: an opaque ``login`` plus a
per-metric ``fetch_metric`` returning raw ``[[timestamp_ms, value], ...]``.

Available clients:
    GarthUpstreamClient — Garmin Connect via the garth library
"""

from src.gateway.adapters.garmin_garth import GarthUpstreamClient

__all__ = ["GarthUpstreamClient"]
