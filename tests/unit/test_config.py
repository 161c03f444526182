"""Tests for environment-based configuration loading."""

from __future__ import annotations

import pytest

from gwgraph.config import load_config


class TestLoadConfig:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("SNAPSHOT_PATH", "SNAPSHOT_REFRESH_SECONDS", "BACKEND_KINDS", "API_PORT", "LOG_LEVEL"):
            monkeypatch.delenv(f"GWGRAPH_{key}", raising=False)
        config = load_config()
        assert config.snapshot.path == ""
        assert config.snapshot.refresh_seconds == 0
        assert config.snapshot.backend_kinds == ("Service", "ServiceImport")
        assert config.api.port == 8080
        assert config.log.level == "info"

    def test_values_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GWGRAPH_SNAPSHOT_PATH", "/tmp/cluster.json")
        monkeypatch.setenv("GWGRAPH_SNAPSHOT_REFRESH_SECONDS", "30")
        monkeypatch.setenv("GWGRAPH_BACKEND_KINDS", "Service, Bucket ,")
        monkeypatch.setenv("GWGRAPH_LOG_LEVEL", "DEBUG")
        config = load_config()
        assert config.snapshot.path == "/tmp/cluster.json"
        assert config.snapshot.refresh_seconds == 30
        assert config.snapshot.backend_kinds == ("Service", "Bucket")
        assert config.log.level == "debug"

    def test_numeric_values_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GWGRAPH_API_PORT", "80")
        monkeypatch.setenv("GWGRAPH_SNAPSHOT_REFRESH_SECONDS", "99999")
        config = load_config()
        assert config.api.port == 1024
        assert config.snapshot.refresh_seconds == 3600

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GWGRAPH_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="Invalid log level"):
            load_config()
