"""Load, validate, and hot-reload the Heartline metric catalogue.

The catalogue lives in ``gateway_config.yaml`` alongside this module.  At
startup it is loaded once and cached.  Call ``reload_gateway_config()`` to
re-read from disk.

Usage::

    from src.gateway.config_loader import get_gateway_config

    config = get_gateway_config()
    config.primary.name             # 'hr'
    config.metric("spo2").values_key  # 'spo2Values'
    config.join_tolerance_ms        # 60000
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger("heartline.gateway.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "gateway_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FallbackRange:
    """Plausible physiological range used for synthetic values."""

    min: float
    max: float
    decimals: int = 0


@dataclass(frozen=True)
class MetricSpec:
    """One metric the gateway fetches and serves.

    Attributes:
        name:       Catalogue key, also the key in the API payload.
        values_key: Key of the point list inside the metric's payload object.
        label:      Human-readable name for logs and the health endpoint.
        unit:       Display unit.
        primary:    True for the one metric that must succeed.
        fallback:   Synthetic value range, or None to emit no synthetic series.
    """

    name: str
    values_key: str
    label: str = ""
    unit: str = ""
    primary: bool = False
    fallback: FallbackRange | None = None


@dataclass
class GatewayConfig:
    """Complete, validated metric catalogue.

    Attributes:
        version:              Catalogue schema version string.
        metrics:              All metrics, primary first.
        join_tolerance_ms:    Max distance for pairing secondary points.
        fallback_points:      Number of synthetic points per series.
        fallback_interval_ms: Spacing between synthetic points.
    """

    version: str
    metrics: list[MetricSpec]
    join_tolerance_ms: int = 60_000
    fallback_points: int = 50
    fallback_interval_ms: int = 60_000

    @property
    def primary(self) -> MetricSpec:
        return next(m for m in self.metrics if m.primary)

    @property
    def metric_names(self) -> list[str]:
        return [m.name for m in self.metrics]

    def metric(self, name: str) -> MetricSpec:
        """Return the spec for ``name``.

        Raises:
            KeyError: If the metric is not in the catalogue.
        """
        for m in self.metrics:
            if m.name == name:
                return m
        raise KeyError(f"Unknown metric '{name}'. Available: {self.metric_names}")


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when gateway_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml

    if not path.exists():
        raise FileNotFoundError(f"Gateway config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _build_fallback(name: str, raw: Any, errors: list[str]) -> FallbackRange | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors.append(f"metrics.{name}.fallback must be a mapping")
        return None
    try:
        lo = float(raw["min"])
        hi = float(raw["max"])
        decimals = int(raw.get("decimals", 0))
    except KeyError as exc:
        errors.append(f"metrics.{name}.fallback is missing {exc.args[0]!r}")
        return None
    except (TypeError, ValueError):
        errors.append(f"metrics.{name}.fallback min/max/decimals must be numbers")
        return None
    if lo >= hi:
        errors.append(f"metrics.{name}.fallback min ({lo}) must be below max ({hi})")
        return None
    if decimals < 0:
        errors.append(f"metrics.{name}.fallback.decimals must be >= 0")
        return None
    return FallbackRange(min=lo, max=hi, decimals=decimals)


def _validate_and_build(raw: dict) -> GatewayConfig:
    """Validate the raw YAML dict and construct a GatewayConfig.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))
    primary_name = raw.get("primary_metric")

    # ── Metrics ──
    metrics_raw = raw.get("metrics") or {}
    if not isinstance(metrics_raw, dict) or not metrics_raw:
        errors.append("'metrics' section is missing or empty")
        metrics_raw = {}

    metrics: list[MetricSpec] = []
    for name, cfg in metrics_raw.items():
        if not isinstance(cfg, dict):
            errors.append(f"metrics.{name} must be a mapping")
            continue
        values_key = cfg.get("values_key")
        if not values_key:
            errors.append(f"Missing required key 'values_key' in section 'metrics.{name}'")
            continue
        metrics.append(
            MetricSpec(
                name=str(name),
                values_key=str(values_key),
                label=str(cfg.get("label", name)),
                unit=str(cfg.get("unit", "")),
                primary=(name == primary_name),
                fallback=_build_fallback(name, cfg.get("fallback"), errors),
            )
        )

    if not primary_name:
        errors.append("'primary_metric' is required")
    elif primary_name not in metrics_raw:
        errors.append(f"primary_metric '{primary_name}' is not listed under 'metrics'")
    else:
        primary = next((m for m in metrics if m.primary), None)
        if primary is not None and primary.fallback is None:
            errors.append(f"primary metric '{primary_name}' needs a fallback range")

    # Primary first; the rest keep file order
    metrics.sort(key=lambda m: not m.primary)

    # ── Join ──
    join_raw = raw.get("join") or {}
    try:
        tolerance_ms = int(join_raw.get("tolerance_ms", 60_000))
        if tolerance_ms < 0:
            errors.append("join.tolerance_ms must be >= 0")
    except (TypeError, ValueError):
        errors.append(f"join.tolerance_ms must be an integer, got {join_raw.get('tolerance_ms')!r}")
        tolerance_ms = 60_000

    # ── Fallback shape ──
    fb_raw = raw.get("fallback") or {}
    try:
        points = int(fb_raw.get("points", 50))
        interval_ms = int(fb_raw.get("interval_ms", 60_000))
    except (TypeError, ValueError):
        errors.append("fallback.points and fallback.interval_ms must be integers")
        points, interval_ms = 50, 60_000
    if points < 1:
        errors.append("fallback.points must be >= 1")
    if interval_ms <= 0:
        errors.append("fallback.interval_ms must be > 0")

    if errors:
        raise ConfigValidationError(
            f"gateway_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return GatewayConfig(
        version=version,
        metrics=metrics,
        join_tolerance_ms=tolerance_ms,
        fallback_points=points,
        fallback_interval_ms=interval_ms,
    )


def load_gateway_config(path: Path | None = None) -> GatewayConfig:
    """Load and validate the metric catalogue from disk.

    Args:
        path: Override path to YAML. Uses the bundled gateway_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info(
        "Loaded gateway config v%s from %s (metrics: %s)",
        config.version,
        target,
        ", ".join(config.metric_names),
    )
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: GatewayConfig | None = None
_config_lock = threading.Lock()


def get_gateway_config() -> GatewayConfig:
    """Return the global GatewayConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_gateway_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_gateway_config()
    return _config


def reload_gateway_config(path: Path | None = None) -> GatewayConfig:
    """Reload the catalogue from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_gateway_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded gateway config: %s → %s", old_version, new_config.version)
    return new_config
