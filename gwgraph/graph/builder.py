"""Graph builder: turns one raw snapshot into a linked ResourceGraph.

Build steps, in order:
    1. one node per raw resource, duplicates recorded and dropped
    2. namespace membership (implicit namespaces are synthesised)
    3. gateway -> GatewayClass
    4. route -> parent Gateways
    5. route -> backends, cross-namespace refs gated by ReferenceGrants
    6. ReferenceGrant <-> backends it exposes
    7. policy -> its single target (see ``policies.attach_policies``)
    8. effective policy resolution (see ``policies.compute_effective_policies``)

Per-resource problems are recorded on the node and never abort the build.
Only input without identity fields raises ``MalformedResourceError``.
"""

from __future__ import annotations

import time
from collections import Counter
from typing import Any

import structlog

from gwgraph.graph.grants import ReferenceGrant, is_permitted
from gwgraph.graph.model import ResourceGraph
from gwgraph.graph.nodes import (
    BackendNode,
    GatewayClassNode,
    GatewayNode,
    NamespaceNode,
    Node,
    Policy,
    PolicyNode,
    ReferenceGrantNode,
    RouteNode,
)
from gwgraph.graph.policies import attach_policies, compute_effective_policies
from gwgraph.models.issues import IssueKind, MalformedResourceError
from gwgraph.models.resources import (
    GATEWAY_GROUP,
    ResourceID,
    backend_id,
    gateway_class_id,
    gateway_id,
    namespace_id,
    resource_id_of,
)
from gwgraph.models.snapshot import ClusterSnapshot
from gwgraph.observability.metrics import (
    graph_build_duration_seconds,
    graph_builds_total,
    graph_issues_total,
)

_log = structlog.get_logger(component="graph.builder")


class GraphBuilder:
    """Builds a single ResourceGraph from a single snapshot.

    All per-run state lives on the instance, so independent builds can run
    side by side. A builder is single-use.
    """

    def __init__(self, snapshot: ClusterSnapshot) -> None:
        self._snapshot = snapshot
        self._graph = ResourceGraph()
        self._grants: list[ReferenceGrant] = []
        self._copies: Counter[ResourceID] = Counter()
        self._built = False

    def build(self) -> ResourceGraph:
        if self._built:
            raise RuntimeError("GraphBuilder.build() may only be called once")
        self._built = True

        self._add_nodes()
        self._link_namespaces()
        self._link_gateway_classes()
        self._link_routes_to_gateways()
        self._link_routes_to_backends()
        self._link_grants_to_backends()
        attach_policies(self._graph, self._grants)
        compute_effective_policies(self._graph)
        return self._graph

    # ------------------------------------------------------------------
    # Step 1: nodes
    # ------------------------------------------------------------------

    def _add_nodes(self) -> None:
        snap = self._snapshot
        for raw in snap.gateway_classes:
            self._register(GatewayClassNode(id=resource_id_of(raw), raw=raw))
        for raw in snap.namespaces:
            self._register(NamespaceNode(id=resource_id_of(raw), raw=raw))
        for raw in snap.gateways:
            self._register(GatewayNode(id=resource_id_of(raw), raw=raw))
        for raw in snap.routes:
            self._register(RouteNode(id=resource_id_of(raw), raw=raw))
        for raw in snap.backends:
            self._register(BackendNode(id=resource_id_of(raw), raw=raw))
        for raw in snap.reference_grants:
            grant = ReferenceGrant.from_raw(raw)
            if self._register(ReferenceGrantNode(id=resource_id_of(raw), raw=raw, grant=grant)):
                self._grants.append(grant)
        for raw in snap.policies:
            policy = Policy.from_raw(raw)
            self._register(PolicyNode(id=policy.id, raw=raw, policy=policy))

    def _register(self, node: Node) -> bool:
        if self._graph.register(node):
            return True
        existing = self._graph.get(node.id)
        # One issue per rejected copy.
        self._copies[node.id] += 1
        existing.add_issue(
            IssueKind.DUPLICATE_RESOURCE,
            f"another {node.raw.get('kind')} resolves to the same ID {node.id}; "
            f"duplicate #{self._copies[node.id]} was ignored",
            reference=node.id,
        )
        return False

    # ------------------------------------------------------------------
    # Step 2: namespaces
    # ------------------------------------------------------------------

    def _ensure_namespace(self, name: str) -> ResourceID:
        ns_id = namespace_id(name)
        if ns_id not in self._graph.namespaces:
            raw: dict[str, Any] = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": ns_id.name}}
            self._graph.register(NamespaceNode(id=ns_id, raw=raw, implicit=True))
            _log.debug("implicit_namespace_added", namespace=ns_id.name)
        return ns_id

    def _link_namespaces(self) -> None:
        graph = self._graph
        for gw in graph.gateways.values():
            gw.namespace = self._ensure_namespace(gw.id.namespace)
            graph.namespaces[gw.namespace].gateways.add(gw.id)
        for route in graph.routes.values():
            route.namespace = self._ensure_namespace(route.id.namespace)
            graph.namespaces[route.namespace].routes.add(route.id)
        for backend in graph.backends.values():
            backend.namespace = self._ensure_namespace(backend.id.namespace)
            graph.namespaces[backend.namespace].backends.add(backend.id)
        for policy in graph.policies.values():
            if policy.id.namespace:
                ns_id = self._ensure_namespace(policy.id.namespace)
                graph.namespaces[ns_id].member_policies.add(policy.id)

    # ------------------------------------------------------------------
    # Step 3: gateway classes
    # ------------------------------------------------------------------

    def _link_gateway_classes(self) -> None:
        graph = self._graph
        for gw in graph.gateways.values():
            class_name = gw.gateway_class_name
            if not class_name:
                gw.add_issue(IssueKind.UNRESOLVED_REFERENCE, "gateway does not name a GatewayClass")
                continue
            class_id = gateway_class_id(class_name)
            gateway_class = graph.gateway_classes.get(class_id)
            if gateway_class is None:
                gw.add_issue(
                    IssueKind.UNRESOLVED_REFERENCE,
                    f"GatewayClass {class_name!r} not found",
                    reference=class_id,
                )
                continue
            gw.gateway_class = class_id
            gateway_class.gateways.add(gw.id)

    # ------------------------------------------------------------------
    # Step 4: route parents
    # ------------------------------------------------------------------

    def _link_routes_to_gateways(self) -> None:
        graph = self._graph
        for route in graph.routes.values():
            for ref in route.parent_refs():
                # Absent or null means the Gateway API group; "" is the core group.
                group = ref.get("group")
                if group is None:
                    group = GATEWAY_GROUP
                kind = ref.get("kind") or "Gateway"
                if kind.lower() != "gateway" or group.lower() != GATEWAY_GROUP:
                    # Mesh attachment (e.g. a Service parent) is outside the hierarchy.
                    _log.debug("parent_ref_skipped", route=str(route.id), kind=kind, group=group)
                    continue
                gw_id = gateway_id(ref.get("namespace") or route.id.namespace, ref.get("name") or "")
                gw = graph.gateways.get(gw_id)
                if gw is None:
                    route.add_issue(
                        IssueKind.UNRESOLVED_REFERENCE,
                        f"parent Gateway {gw_id.namespace}/{gw_id.name} not found",
                        reference=gw_id,
                    )
                    continue
                route.gateways.add(gw_id)
                gw.routes.add(route.id)

    # ------------------------------------------------------------------
    # Step 5: route backends
    # ------------------------------------------------------------------

    def _link_routes_to_backends(self) -> None:
        graph = self._graph
        for route in graph.routes.values():
            for ref in route.backend_refs():
                group = ref.get("group") or ""
                kind = ref.get("kind") or "Service"
                name = ref.get("name") or ""
                b_id = backend_id(group, kind, ref.get("namespace") or route.id.namespace, name)
                backend = graph.backends.get(b_id)
                if backend is None:
                    route.add_issue(
                        IssueKind.UNRESOLVED_REFERENCE,
                        f"backend {kind} {b_id.namespace}/{name} not found",
                        reference=b_id,
                    )
                    continue
                permitted = is_permitted(
                    route.id.namespace,
                    route.id.kind,
                    b_id.namespace,
                    kind,
                    name,
                    self._grants,
                    source_group=route.id.group,
                    target_group=group,
                )
                if not permitted:
                    route.add_issue(
                        IssueKind.REFERENCE_NOT_PERMITTED,
                        f"no ReferenceGrant in namespace {b_id.namespace!r} allows "
                        f"{route.raw.get('kind')} from {route.id.namespace!r} to reference {kind} {name!r}",
                        reference=b_id,
                    )
                    continue
                route.backends.add(b_id)
                backend.routes.add(route.id)

    # ------------------------------------------------------------------
    # Step 6: grants
    # ------------------------------------------------------------------

    def _link_grants_to_backends(self) -> None:
        graph = self._graph
        for grant_node in graph.reference_grants.values():
            grant = grant_node.grant
            if grant is None:
                continue
            ns_node = graph.namespaces.get(namespace_id(grant.namespace))
            if ns_node is None:
                continue
            for b_id in sorted(ns_node.backends):
                if grant.allows_to(b_id.kind, b_id.name, b_id.group):
                    grant_node.backends.add(b_id)
                    graph.backends[b_id].reference_grants.add(grant_node.id)


def build_graph(snapshot: ClusterSnapshot) -> ResourceGraph:
    """Build and resolve a fresh graph from *snapshot*.

    Raises:
        MalformedResourceError: a resource lacks kind or name.
    """
    t_start = time.monotonic()
    try:
        graph = GraphBuilder(snapshot).build()
    except MalformedResourceError as exc:
        graph_builds_total.labels(outcome="failed").inc()
        _log.error("graph_build_failed", error=str(exc))
        raise

    duration = time.monotonic() - t_start
    issue_counts: Counter[str] = Counter()
    for node in graph.nodes():
        issue_counts.update(str(issue.kind) for issue in node.errors)
    for kind, count in issue_counts.items():
        graph_issues_total.labels(kind=kind).inc(count)
    graph_builds_total.labels(outcome="success").inc()
    graph_build_duration_seconds.observe(duration)

    _log.info(
        "graph_built",
        nodes=graph.node_count,
        issues=sum(issue_counts.values()),
        duration_ms=round(duration * 1000.0, 2),
    )
    return graph
