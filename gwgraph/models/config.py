"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from gwgraph.models.snapshot import DEFAULT_BACKEND_KINDS


@dataclass
class SnapshotConfig:
    """Where the resource snapshot comes from and how often to reload it."""

    path: str = ""
    refresh_seconds: int = 0  # 0 disables periodic reload
    backend_kinds: tuple[str, ...] = DEFAULT_BACKEND_KINDS


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class GwGraphConfig:
    """Top-level gwgraph configuration."""

    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
