"""Shared fixtures for gwgraph integration tests.

Wires factories into complete snapshots so tests exercise full
snapshot -> graph -> resolution pipelines without a cluster.
"""

from __future__ import annotations

import pytest

from gwgraph.graph.store import GraphStore
from gwgraph.models.snapshot import ClusterSnapshot
from tests.factories import (
    make_gateway,
    make_gateway_class,
    make_namespace,
    make_policy,
    make_route,
    make_service,
)


@pytest.fixture()
def rate_limit_snapshot() -> ClusterSnapshot:
    """C1 carries RateLimit 100; G1 uses C1; R1 attaches to G1 and routes to svc-1."""
    return ClusterSnapshot(
        gateway_classes=[make_gateway_class("c1")],
        namespaces=[make_namespace("default")],
        gateways=[make_gateway("g1", class_name="c1")],
        routes=[make_route("r1", parents=["g1"], backends=["svc-1"])],
        backends=[make_service("svc-1")],
        policies=[make_policy("class-limit", "GatewayClass", "c1", value=100)],
    )


@pytest.fixture()
def store() -> GraphStore:
    return GraphStore()
