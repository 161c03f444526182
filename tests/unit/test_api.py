"""Tests for the gwgraph REST API.

Every response must be JSON, and every failure must carry the
``error`` + ``detail`` envelope.
"""

from __future__ import annotations

import re

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from gwgraph.api.app import create_app
from gwgraph.graph.store import GraphStore
from gwgraph.models.snapshot import ClusterSnapshot
from tests.factories import (
    make_gateway,
    make_gateway_class,
    make_policy,
    make_route,
    make_service,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _snapshot() -> ClusterSnapshot:
    shadow = make_service("svc")
    shadow["apiVersion"] = "example.com/v1"
    return ClusterSnapshot(
        gateway_classes=[make_gateway_class("class-1")],
        gateways=[make_gateway("g1"), make_gateway("g2")],
        routes=[make_route("r", parents=["g1", "g2", "ghost"], backends=["svc"])],
        backends=[make_service("svc"), shadow],
        policies=[make_policy("g1-limit", "Gateway", "g1")],
    )


def _make_client(published: bool = True) -> TestClient:
    store = GraphStore()
    if published:
        store.publish(_snapshot())
    return TestClient(create_app(store=store), raise_server_exceptions=False)


def _assert_error(resp, status_code: int, error: str) -> None:
    assert resp.status_code == status_code
    assert resp.headers.get("content-type", "").startswith("application/json")
    body = resp.json()
    assert body["error"] == error
    assert body["detail"]


# ---------------------------------------------------------------------------
# Health and summary
# ---------------------------------------------------------------------------


class TestHealth:
    def test_warming_before_first_publish(self) -> None:
        resp = _make_client(published=False).get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "warming"

    def test_ok_after_publish(self) -> None:
        body = _make_client().get("/api/v1/health").json()
        assert body["status"] == "ok"
        assert body["generation"] == 1
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", body["published_at"])


class TestGraphSummary:
    def test_unavailable_before_publish(self) -> None:
        resp = _make_client(published=False).get("/api/v1/graph")
        _assert_error(resp, 503, "GRAPH_UNAVAILABLE")

    def test_counts(self) -> None:
        body = _make_client().get("/api/v1/graph").json()
        assert body["generation"] == 1
        assert body["counts"]["gateways"] == 2
        assert body["counts"]["backends"] == 2


# ---------------------------------------------------------------------------
# Resource queries
# ---------------------------------------------------------------------------


class TestResources:
    def test_gateway_view(self) -> None:
        resp = _make_client().get("/api/v1/resources/Gateway/g1", params={"namespace": "default"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["node_type"] == "GatewayNode"
        assert body["kind"] == "gateway"
        assert body["links"]["routes"] == ["gateway.networking.k8s.io|httproute|default|r"]

    def test_missing_resource(self) -> None:
        resp = _make_client().get("/api/v1/resources/Gateway/nope")
        _assert_error(resp, 404, "RESOURCE_NOT_FOUND")

    def test_ambiguous_group(self) -> None:
        resp = _make_client().get("/api/v1/resources/Service/svc")
        _assert_error(resp, 400, "INVALID_QUERY")

    def test_group_disambiguates(self) -> None:
        resp = _make_client().get("/api/v1/resources/Service/svc", params={"group": "example.com"})
        assert resp.status_code == 200
        assert resp.json()["group"] == "example.com"

    def test_unknown_path(self) -> None:
        _assert_error(_make_client().get("/api/v1/nothing-here"), 404, "NOT_FOUND")


class TestEffectivePolicies:
    def test_gateway_context_required(self) -> None:
        resp = _make_client().get("/api/v1/effective-policies/HTTPRoute/r")
        _assert_error(resp, 409, "GATEWAY_CONTEXT_REQUIRED")

    def test_with_gateway_context(self) -> None:
        resp = _make_client().get("/api/v1/effective-policies/HTTPRoute/r", params={"gateway_name": "g1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["context"] == "gateway.networking.k8s.io|gateway|default|g1"
        assert [p["name"] for p in body["policies"]] == ["g1-limit"]
        assert body["policies"][0]["policy_schema"] == "ratelimitpolicy.policies.example.com"

    def test_other_gateway_context_has_nothing(self) -> None:
        resp = _make_client().get("/api/v1/effective-policies/HTTPRoute/r", params={"gateway_name": "g2"})
        assert resp.json()["policies"] == []

    def test_unknown_gateway_context(self) -> None:
        resp = _make_client().get("/api/v1/effective-policies/HTTPRoute/r", params={"gateway_name": "ghost"})
        _assert_error(resp, 404, "RESOURCE_NOT_FOUND")

    def test_gateway_needs_no_context(self) -> None:
        resp = _make_client().get("/api/v1/effective-policies/Gateway/g1")
        assert resp.status_code == 200
        assert resp.json()["context"] is None


class TestErrors:
    def test_route_errors(self) -> None:
        resp = _make_client().get("/api/v1/errors/HTTPRoute/r")
        assert resp.status_code == 200
        errors = resp.json()["errors"]
        assert [e["kind"] for e in errors] == ["unresolved_reference"]
        assert errors[0]["reference"] == "gateway.networking.k8s.io|gateway|default|ghost"


class TestMetrics:
    def test_prometheus_exposition(self) -> None:
        resp = _make_client().get("/metrics")
        assert resp.status_code == 200
        assert "gwgraph_graph_builds_total" in resp.text


# ---------------------------------------------------------------------------
# Fuzzing
# ---------------------------------------------------------------------------

_segment = st.from_regex(r"[A-Za-z][A-Za-z0-9\-]{0,20}", fullmatch=True)


class TestQueryFuzz:
    @given(kind=_segment, name=_segment, namespace=_segment)
    @settings(max_examples=50, deadline=None)
    def test_random_lookups_never_500(self, kind: str, name: str, namespace: str) -> None:
        client = _make_client()
        for endpoint in ("resources", "effective-policies", "errors"):
            resp = client.get(f"/api/v1/{endpoint}/{kind}/{name}", params={"namespace": namespace})
            assert resp.headers.get("content-type", "").startswith("application/json")
            assert resp.status_code in {200, 400, 404, 409}
            if resp.status_code >= 400:
                body = resp.json()
                assert "error" in body
                assert "detail" in body
