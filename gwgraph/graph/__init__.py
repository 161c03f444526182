"""Gateway API resource graph.

Builds a linked graph from one snapshot of GatewayClasses, Namespaces,
Gateways, Routes, Backends, ReferenceGrants and Policies, and resolves the
effective policies of every node.
"""

from gwgraph.graph.builder import GraphBuilder, build_graph
from gwgraph.graph.grants import ReferenceGrant, is_permitted
from gwgraph.graph.model import ResourceGraph
from gwgraph.graph.nodes import (
    BackendNode,
    BackendType,
    GatewayClassNode,
    GatewayNode,
    NamespaceNode,
    Policy,
    PolicyNode,
    ReferenceGrantNode,
    RouteNode,
)
from gwgraph.graph.store import GraphStore, SnapshotLoadError, load_snapshot

__all__ = [
    "BackendNode",
    "BackendType",
    "GatewayClassNode",
    "GatewayNode",
    "GraphBuilder",
    "GraphStore",
    "NamespaceNode",
    "Policy",
    "PolicyNode",
    "ReferenceGrant",
    "ReferenceGrantNode",
    "ResourceGraph",
    "RouteNode",
    "SnapshotLoadError",
    "build_graph",
    "is_permitted",
    "load_snapshot",
]
