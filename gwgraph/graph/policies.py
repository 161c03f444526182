"""Policy attachment and effective policy resolution.

Hierarchy, most general first::

    GatewayClass -> Namespaces -> Gateway -> Route -> Backend

The namespace tier holds the gateway's namespace, then the route's, then
the backend's; a namespace shared by several of them appears once, at its
most general position.

Each node is resolved along a chain of levels. At every level the directly
attached policies are grouped by schema (policy CRD group + kind): a
schema seen for the first time is inherited, a schema already present is
replaced wholesale by the more specific instance. Fields are never merged.
Two distinct policies of one schema at the same level conflict; neither is
applied and the slot is cleared for that level and below.

Routes and backends are resolved once per enclosing gateway so that
policies reaching them through different gateways never mix.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from gwgraph.graph.grants import ReferenceGrant, is_permitted
from gwgraph.graph.model import ResourceGraph
from gwgraph.graph.nodes import (
    BackendNode,
    EffectivePolicies,
    GatewayClassNode,
    GatewayNode,
    NamespaceNode,
    Node,
    Policy,
    PolicyNode,
    RouteNode,
)
from gwgraph.models.issues import IssueKind
from gwgraph.models.resources import (
    PolicySchemaID,
    ResourceID,
    compute_id,
    gateway_class_id,
    namespace_id,
)

_log = structlog.get_logger(component="graph.policies")

# One level of the hierarchy; the route level of a backend may hold several nodes.
Level = tuple[ResourceID, ...]

_ATTACHABLE = (GatewayClassNode, NamespaceNode, GatewayNode, RouteNode, BackendNode)


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------


def _target_id(policy_node: PolicyNode) -> ResourceID:
    assert policy_node.policy is not None
    ref = policy_node.policy.target_refs[0]
    kind = ref.kind.lower()
    if kind == "gatewayclass":
        return gateway_class_id(ref.name)
    if kind == "namespace":
        return namespace_id(ref.name)
    return compute_id(ref.group, ref.kind, ref.namespace or policy_node.id.namespace, ref.name)


def _target_namespace(target: ResourceID) -> str | None:
    """Namespace a reference to *target* reaches into; None if cluster-wide."""
    if target.kind == "gatewayclass":
        return None
    if target.kind == "namespace":
        return target.name
    return target.namespace


def attach_policies(graph: ResourceGraph, grants: Iterable[ReferenceGrant]) -> None:
    """Resolve every policy's target reference and record it as direct.

    A policy is left unattached, with an issue recorded on it, when it has
    zero or several target refs, when the target is missing or cannot carry
    policy, or when it crosses namespaces without a ReferenceGrant.
    """
    grants = list(grants)
    for policy_node in graph.policies.values():
        policy = policy_node.policy
        assert policy is not None
        if len(policy.target_refs) != 1:
            policy_node.add_issue(
                IssueKind.INVALID_POLICY_TARGET,
                f"policy must have exactly one target reference, found {len(policy.target_refs)}",
            )
            continue

        ref = policy.target_refs[0]
        target_id = _target_id(policy_node)
        target = graph.find(target_id)
        if target is not None and not isinstance(target, _ATTACHABLE):
            policy_node.add_issue(
                IssueKind.INVALID_POLICY_TARGET,
                f"{ref.kind} {ref.name!r} cannot carry policies",
                reference=target_id,
            )
            continue
        if target is None:
            policy_node.add_issue(
                IssueKind.UNRESOLVED_REFERENCE,
                f"target {ref.kind} {ref.name!r} not found",
                reference=target_id,
            )
            continue

        target_ns = _target_namespace(target_id)
        if target_ns is not None and not is_permitted(
            policy_node.id.namespace,
            policy_node.id.kind,
            target_ns,
            ref.kind,
            ref.name,
            grants,
            source_group=policy_node.id.group,
            target_group=ref.group,
        ):
            policy_node.add_issue(
                IssueKind.REFERENCE_NOT_PERMITTED,
                f"no ReferenceGrant in namespace {target_ns!r} allows {policy.schema} "
                f"from {policy_node.id.namespace!r} to target {ref.kind} {ref.name!r}",
                reference=target_id,
            )
            continue

        policy_node.attach(target_id)
        target.policies.add(policy_node.id)  # type: ignore[union-attr]
        _log.debug("policy_attached", policy=str(policy_node.id), target=str(target_id))


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _direct_policies(
    graph: ResourceGraph,
    level: Level,
) -> tuple[dict[PolicySchemaID, Policy], dict[PolicySchemaID, list[ResourceID]]]:
    """Group the policies attached at *level* by schema.

    Returns the single policy per schema, and the schemas that have more
    than one distinct policy at this level.
    """
    by_schema: dict[PolicySchemaID, dict[ResourceID, Policy]] = {}
    for node_id in level:
        node = graph.find(node_id)
        if node is None:
            continue
        for pid in sorted(node.policies):  # type: ignore[attr-defined]
            policy = graph.policies[pid].policy
            assert policy is not None
            by_schema.setdefault(policy.schema, {})[pid] = policy

    winners: dict[PolicySchemaID, Policy] = {}
    conflicts: dict[PolicySchemaID, list[ResourceID]] = {}
    for schema in sorted(by_schema):
        found = by_schema[schema]
        if len(found) == 1:
            winners[schema] = next(iter(found.values()))
        else:
            conflicts[schema] = sorted(found)
    return winners, conflicts


def _resolve_chain(
    graph: ResourceGraph,
    owner: Node,
    levels: Sequence[Level],
    context: ResourceID | None = None,
) -> tuple[EffectivePolicies, dict[ResourceID, Policy]]:
    """Walk *levels* from general to specific and return (effective, inherited).

    Conflicts at a level that is exactly the owner, or at a level made of
    several nodes, are recorded on the owner. A conflict at any other
    single-node level is recorded when that node is resolved itself.
    """
    effective: EffectivePolicies = {}
    inherited: dict[ResourceID, Policy] = {}
    for level in levels:
        if not level:
            continue
        winners, conflicts = _direct_policies(graph, level)
        is_own = level == (owner.id,)
        for schema, policy in winners.items():
            effective[schema] = policy
            if not is_own:
                inherited.setdefault(policy.id, policy)
        for schema, policy_ids in conflicts.items():
            effective.pop(schema, None)
            if is_own or len(level) > 1:
                names = ", ".join(f"{pid.namespace}/{pid.name}" if pid.namespace else pid.name for pid in policy_ids)
                where = f" via gateway {context.namespace}/{context.name}" if context is not None else ""
                owner.add_issue(
                    IssueKind.POLICY_CONFLICT,
                    f"{len(policy_ids)} {schema} policies apply at the same level{where} ({names}); none is applied",
                )
    return effective, inherited


def _level(*ids: ResourceID | None) -> Level:
    """Drop missing IDs and duplicates, keeping a stable order."""
    return tuple(sorted({i for i in ids if i is not None}))


def _chain(
    gateway: GatewayNode | None,
    routes: Sequence[RouteNode] = (),
    backend: BackendNode | None = None,
) -> list[Level]:
    """Levels from the GatewayClass down to the most specific node.

    A node already placed at a more general level is not repeated.
    """
    levels = [
        _level(gateway.gateway_class if gateway else None),
        _level(gateway.namespace if gateway else None),
        _level(*(r.namespace for r in routes)),
        _level(backend.namespace if backend else None),
        _level(gateway.id if gateway else None),
        _level(*(r.id for r in routes)),
        _level(backend.id if backend else None),
    ]
    seen: set[ResourceID] = set()
    chain: list[Level] = []
    for level in levels:
        level = tuple(i for i in level if i not in seen)
        seen.update(level)
        if level:
            chain.append(level)
    return chain


def _resolve_gateway_class(graph: ResourceGraph, node: GatewayClassNode) -> None:
    node.effective_policies, _ = _resolve_chain(graph, node, [_level(node.id)])


def _resolve_namespace(graph: ResourceGraph, node: NamespaceNode) -> None:
    node.effective_policies, _ = _resolve_chain(graph, node, [_level(node.id)])


def _resolve_gateway(graph: ResourceGraph, node: GatewayNode) -> None:
    node.effective_policies, node.inherited_policies = _resolve_chain(graph, node, _chain(node))


def _resolve_route(graph: ResourceGraph, node: RouteNode) -> None:
    node.effective_policies = {}
    node.inherited_policies = {}
    if not node.gateways:
        node.effective_policies[None], node.inherited_policies = _resolve_chain(graph, node, _chain(None, [node]))
        return
    for gw_id in sorted(node.gateways):
        levels = _chain(graph.gateways[gw_id], [node])
        effective, inherited = _resolve_chain(graph, node, levels, gw_id)
        node.effective_policies[gw_id] = effective
        for pid, policy in inherited.items():
            node.inherited_policies.setdefault(pid, policy)


def _resolve_backend(graph: ResourceGraph, node: BackendNode) -> None:
    routes_by_gateway: dict[ResourceID, list[RouteNode]] = {}
    for route_id in sorted(node.routes):
        route = graph.routes[route_id]
        for gw_id in route.gateways:
            routes_by_gateway.setdefault(gw_id, []).append(route)

    node.effective_policies = {}
    node.inherited_policies = {}
    if not routes_by_gateway:
        routes = [graph.routes[r] for r in sorted(node.routes)]
        levels = _chain(None, routes, node)
        node.effective_policies[None], node.inherited_policies = _resolve_chain(graph, node, levels)
        return
    for gw_id in sorted(routes_by_gateway):
        levels = _chain(graph.gateways[gw_id], routes_by_gateway[gw_id], node)
        effective, inherited = _resolve_chain(graph, node, levels, gw_id)
        node.effective_policies[gw_id] = effective
        for pid, policy in inherited.items():
            node.inherited_policies.setdefault(pid, policy)


def compute_effective_policies(graph: ResourceGraph) -> None:
    """Annotate every policy-carrying node with its effective policies.

    Every chain reads only directly attached policies, so nodes can be
    resolved in any order.
    """
    for gateway_class in graph.gateway_classes.values():
        _resolve_gateway_class(graph, gateway_class)
    for namespace in graph.namespaces.values():
        _resolve_namespace(graph, namespace)
    for gateway in graph.gateways.values():
        _resolve_gateway(graph, gateway)
    for route in graph.routes.values():
        _resolve_route(graph, route)
    for backend in graph.backends.values():
        _resolve_backend(graph, backend)
