"""Tests for snapshot partitioning, file loading and graph publication."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gwgraph.graph.store import GraphStore, SnapshotLoadError, load_snapshot
from gwgraph.models.issues import GraphError, MalformedResourceError
from gwgraph.models.resources import gateway_id
from gwgraph.models.snapshot import ClusterSnapshot
from tests.factories import (
    make_gateway,
    make_gateway_class,
    make_namespace,
    make_policy,
    make_reference_grant,
    make_route,
    make_service,
)


def _objects() -> list[dict]:
    return [
        make_gateway_class("c1"),
        make_namespace("default"),
        make_gateway("gw", class_name="c1"),
        make_route("r", parents=["gw"], backends=["svc"]),
        make_route("g", parents=["gw"], kind="GRPCRoute"),
        make_service("svc"),
        make_reference_grant(namespace="default"),
        make_policy("p", "Gateway", "gw"),
        {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"}},
    ]


class TestFromObjects:
    def test_partitions_by_kind(self) -> None:
        snapshot = ClusterSnapshot.from_objects(_objects())
        assert len(snapshot.gateway_classes) == 1
        assert len(snapshot.namespaces) == 1
        assert len(snapshot.gateways) == 1
        assert len(snapshot.routes) == 2
        assert len(snapshot.backends) == 1
        assert len(snapshot.reference_grants) == 1
        assert len(snapshot.policies) == 1
        assert snapshot.object_count == 8  # the ConfigMap is dropped

    def test_custom_backend_kinds(self) -> None:
        bucket = {"apiVersion": "storage.example.com/v1", "kind": "Bucket", "metadata": {"name": "b"}}
        assert ClusterSnapshot.from_objects([bucket]).backends == []
        assert ClusterSnapshot.from_objects([bucket], backend_kinds=["Bucket"]).backends == [bucket]

    def test_non_mapping_item_is_malformed(self) -> None:
        with pytest.raises(MalformedResourceError, match="item 1"):
            ClusterSnapshot.from_objects([make_service("svc"), "oops"])

    def test_non_mapping_spec_is_malformed(self) -> None:
        route = make_route("r")
        route["spec"] = ["not", "a", "mapping"]
        with pytest.raises(MalformedResourceError):
            ClusterSnapshot.from_objects([route])


class TestLoadSnapshot:
    def test_kubernetes_list(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.json"
        path.write_text(json.dumps({"apiVersion": "v1", "kind": "List", "items": _objects()}))
        assert load_snapshot(path).object_count == 8

    def test_bare_array(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.json"
        path.write_text(json.dumps(_objects()))
        assert len(load_snapshot(path).gateways) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SnapshotLoadError):
            load_snapshot(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.json"
        path.write_text("{not json")
        with pytest.raises(SnapshotLoadError):
            load_snapshot(path)

    def test_wrong_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.json"
        path.write_text(json.dumps({"items": "nope"}))
        with pytest.raises(SnapshotLoadError):
            load_snapshot(path)

    def test_malformed_item_is_a_graph_error(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.json"
        path.write_text(json.dumps({"items": ["oops"]}))
        with pytest.raises(GraphError):
            load_snapshot(path)


class TestGraphStore:
    def test_starts_empty(self) -> None:
        store = GraphStore()
        assert store.graph is None
        assert store.generation == 0

    def test_publish_swaps_in_new_graph(self) -> None:
        store = GraphStore()
        first = store.publish(ClusterSnapshot.from_objects(_objects()))
        held = store.graph
        second = store.publish(ClusterSnapshot.from_objects(_objects()))
        assert store.graph is second
        assert second is not first
        assert held is first
        assert store.generation == 2
        assert store.published_at is not None

    def test_previous_graph_untouched_by_later_publish(self) -> None:
        store = GraphStore()
        first = store.publish(ClusterSnapshot(gateways=[make_gateway("gw")]))
        store.publish(ClusterSnapshot())
        assert gateway_id("default", "gw") in first

    def test_failed_build_keeps_previous_graph(self) -> None:
        store = GraphStore()
        good = store.publish(ClusterSnapshot.from_objects(_objects()))
        bad = make_service("svc")
        del bad["metadata"]["name"]
        with pytest.raises(MalformedResourceError):
            store.publish(ClusterSnapshot(backends=[bad]))
        assert store.graph is good
        assert store.generation == 1
