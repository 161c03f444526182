"""Holds the currently published graph.

Each publish builds an entirely new ResourceGraph and swaps it in with a
single reference assignment. Readers keep whatever graph they fetched; a
published graph is never modified again.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from gwgraph.graph.builder import build_graph
from gwgraph.graph.model import ResourceGraph
from gwgraph.models.issues import GraphError
from gwgraph.models.snapshot import DEFAULT_BACKEND_KINDS, ClusterSnapshot
from gwgraph.observability.metrics import graph_nodes

_log = structlog.get_logger(component="graph.store")


class SnapshotLoadError(GraphError):
    """The snapshot file could not be read or parsed."""


def load_snapshot(path: str | Path, backend_kinds: Iterable[str] = DEFAULT_BACKEND_KINDS) -> ClusterSnapshot:
    """Read a JSON snapshot: a Kubernetes ``List`` or a bare list of objects."""
    try:
        data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SnapshotLoadError(f"cannot load snapshot {path}: {exc}") from exc

    items = data.get("items") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise SnapshotLoadError(f"snapshot {path} holds neither a List nor an array of objects")
    return ClusterSnapshot.from_objects(items, backend_kinds=backend_kinds)


class GraphStore:
    """Publication point for graphs built from successive snapshots."""

    def __init__(self) -> None:
        self._graph: ResourceGraph | None = None
        self._published_at: datetime | None = None
        self._generation = 0
        # Serialises publishers only; readers never take the lock.
        self._publish_lock = threading.Lock()

    @property
    def graph(self) -> ResourceGraph | None:
        return self._graph

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def published_at(self) -> datetime | None:
        return self._published_at

    def publish(self, snapshot: ClusterSnapshot) -> ResourceGraph:
        """Build a graph from *snapshot* and make it the current one.

        If the build raises, the previously published graph stays current.
        """
        with self._publish_lock:
            graph = build_graph(snapshot)
            self._graph = graph
            self._generation += 1
            self._published_at = datetime.now(tz=UTC)

        for kind, count in graph.summary().items():
            if kind != "issues":
                graph_nodes.labels(kind=kind).set(count)
        _log.info("graph_published", generation=self._generation, nodes=graph.node_count)
        return graph
