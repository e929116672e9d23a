"""
Analysis settings and environment configuration.

Thresholds that shape scoring and the resource limits of a run. Every value
has a default; NETRISK_* environment variables (or .env) override them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from backend_netrisk.config.env import load_netrisk_env
from backend_netrisk.core.exceptions import ConfigurationError

DEFAULT_ACTIVITY_THRESHOLD = 3
DEFAULT_RAPID_EXPANSION_NEW_RELATIONSHIPS = 3
DEFAULT_FETCH_TIMEOUT_SEC = 30.0
DEFAULT_AUTHORITATIVE_TIMEOUT_SEC = 10.0
DEFAULT_CONCURRENCY = 8
DEFAULT_PARALLEL_THRESHOLD = 5000
DEFAULT_HOTSPOT_LIMIT = 15


@dataclass(frozen=True)
class AnalysisSettings:
    """Tunable thresholds and limits for one analysis run."""

    activity_threshold: int = DEFAULT_ACTIVITY_THRESHOLD
    """Recent (30d) activity count at or above which the activity bonus applies."""
    rapid_expansion_new_relationships: int = DEFAULT_RAPID_EXPANSION_NEW_RELATIONSHIPS
    """New relationships in 90 days at or above which an entity is rapidly expanding."""
    fetch_timeout_sec: float = DEFAULT_FETCH_TIMEOUT_SEC
    authoritative_timeout_sec: float = DEFAULT_AUTHORITATIVE_TIMEOUT_SEC
    concurrency: int = DEFAULT_CONCURRENCY
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD
    """Entity count above which per-entity scoring runs on a thread pool."""
    hotspot_limit: int = DEFAULT_HOTSPOT_LIMIT

    def __post_init__(self) -> None:
        if self.activity_threshold < 0:
            raise ConfigurationError("activity_threshold must be >= 0")
        if self.rapid_expansion_new_relationships < 1:
            raise ConfigurationError("rapid_expansion_new_relationships must be >= 1")
        if self.fetch_timeout_sec <= 0 or self.authoritative_timeout_sec <= 0:
            raise ConfigurationError("timeouts must be > 0")
        if self.concurrency < 1:
            raise ConfigurationError("concurrency must be >= 1")
        if self.hotspot_limit < 1:
            raise ConfigurationError("hotspot_limit must be >= 1")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def get_settings() -> AnalysisSettings:
    """Build AnalysisSettings from NETRISK_* env vars (after loading .env)."""
    load_netrisk_env()
    return AnalysisSettings(
        activity_threshold=_env_int("NETRISK_ACTIVITY_THRESHOLD", DEFAULT_ACTIVITY_THRESHOLD),
        rapid_expansion_new_relationships=_env_int(
            "NETRISK_RAPID_EXPANSION_NEW_RELATIONSHIPS",
            DEFAULT_RAPID_EXPANSION_NEW_RELATIONSHIPS,
        ),
        fetch_timeout_sec=_env_float("NETRISK_FETCH_TIMEOUT_SEC", DEFAULT_FETCH_TIMEOUT_SEC),
        authoritative_timeout_sec=_env_float(
            "NETRISK_AUTHORITATIVE_TIMEOUT_SEC", DEFAULT_AUTHORITATIVE_TIMEOUT_SEC
        ),
        concurrency=_env_int("NETRISK_CONCURRENCY", DEFAULT_CONCURRENCY),
        parallel_threshold=_env_int("NETRISK_PARALLEL_THRESHOLD", DEFAULT_PARALLEL_THRESHOLD),
        hotspot_limit=_env_int("NETRISK_HOTSPOT_LIMIT", DEFAULT_HOTSPOT_LIMIT),
    )
