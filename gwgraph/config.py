"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from gwgraph.models.config import APIConfig, GwGraphConfig, LogConfig, SnapshotConfig
from gwgraph.models.snapshot import DEFAULT_BACKEND_KINDS


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"GWGRAPH_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_list(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _env(key, ",".join(default))
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or default


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> GwGraphConfig:
    """Load configuration from GWGRAPH_* environment variables."""
    return GwGraphConfig(
        snapshot=SnapshotConfig(
            path=_env("SNAPSHOT_PATH", ""),
            refresh_seconds=_env_int("SNAPSHOT_REFRESH_SECONDS", 0, min_val=0, max_val=3600),
            backend_kinds=_env_list("BACKEND_KINDS", DEFAULT_BACKEND_KINDS),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
