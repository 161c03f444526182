"""Prometheus metrics for graph builds and resolution."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

graph_builds_total = Counter(
    "gwgraph_graph_builds_total",
    "Graph builds attempted, by outcome.",
    ["outcome"],  # success | failed
)

graph_build_duration_seconds = Histogram(
    "gwgraph_graph_build_duration_seconds",
    "Wall-clock time spent building and resolving one graph.",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)

graph_issues_total = Counter(
    "gwgraph_graph_issues_total",
    "Per-node issues recorded while building graphs, by issue kind.",
    ["kind"],
)

graph_nodes = Gauge(
    "gwgraph_graph_nodes",
    "Nodes in the currently published graph, by resource kind.",
    ["kind"],
)
