"""The resource graph registry and its read-only query surface."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from gwgraph.graph.nodes import (
    BackendNode,
    EffectivePolicies,
    GatewayClassNode,
    GatewayNode,
    NamespaceNode,
    Node,
    PolicyNode,
    ReferenceGrantNode,
    RouteNode,
)
from gwgraph.models.issues import ContextRequiredError, GraphError, GraphIssue, NodeNotFoundError
from gwgraph.models.resources import (
    CLUSTER_SCOPED_KINDS,
    DEFAULT_NAMESPACE,
    ResourceID,
)


class ResourceGraph:
    """Arena of nodes keyed by ResourceID.

    Built once per snapshot by ``GraphBuilder`` and read-only afterwards;
    concurrent readers may share an instance without locking.
    """

    def __init__(self) -> None:
        self.gateway_classes: dict[ResourceID, GatewayClassNode] = {}
        self.namespaces: dict[ResourceID, NamespaceNode] = {}
        self.gateways: dict[ResourceID, GatewayNode] = {}
        self.routes: dict[ResourceID, RouteNode] = {}
        self.backends: dict[ResourceID, BackendNode] = {}
        self.reference_grants: dict[ResourceID, ReferenceGrantNode] = {}
        self.policies: dict[ResourceID, PolicyNode] = {}
        self._index: dict[ResourceID, Node] = {}
        # (kind, namespace, name) -> IDs across groups, for group-less lookups
        self._by_name: dict[tuple[str, str, str], list[ResourceID]] = {}

    # ------------------------------------------------------------------
    # Registration (builder only)
    # ------------------------------------------------------------------

    def _bucket(self, node: Node) -> dict[ResourceID, Any]:
        if isinstance(node, GatewayClassNode):
            return self.gateway_classes
        if isinstance(node, NamespaceNode):
            return self.namespaces
        if isinstance(node, GatewayNode):
            return self.gateways
        if isinstance(node, RouteNode):
            return self.routes
        if isinstance(node, BackendNode):
            return self.backends
        if isinstance(node, ReferenceGrantNode):
            return self.reference_grants
        if isinstance(node, PolicyNode):
            return self.policies
        raise TypeError(f"unsupported node type: {type(node).__name__}")

    def register(self, node: Node) -> bool:
        """Add *node*; return False if its ID is already taken."""
        if node.id in self._index:
            return False
        self._bucket(node)[node.id] = node
        self._index[node.id] = node
        key = (node.id.kind, node.id.namespace, node.id.name)
        self._by_name.setdefault(key, []).append(node.id)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    @property
    def node_count(self) -> int:
        return len(self._index)

    def nodes(self) -> Iterator[Node]:
        """Iterate every node in ID order."""
        for resource_id in sorted(self._index):
            yield self._index[resource_id]

    def find(self, resource_id: ResourceID) -> Node | None:
        return self._index.get(resource_id)

    def get(self, resource_id: ResourceID) -> Node:
        node = self._index.get(resource_id)
        if node is None:
            raise NodeNotFoundError(resource_id)
        return node

    def lookup(self, kind: str, namespace: str, name: str, group: str | None = None) -> Node | None:
        """Find a node by kind, namespace and name.

        The group may be omitted when only one group defines the kind; an
        ambiguous group-less lookup raises GraphError.
        """
        kind = kind.lower()
        if kind in CLUSTER_SCOPED_KINDS:
            namespace = ""
        elif not namespace:
            namespace = DEFAULT_NAMESPACE
        if group is not None:
            return self._index.get(ResourceID(group.lower(), kind, namespace, name))
        candidates = self._by_name.get((kind, namespace, name), [])
        if not candidates:
            return None
        if len(candidates) > 1:
            groups = ", ".join(sorted(c.group or "core" for c in candidates))
            raise GraphError(f"{kind} {namespace}/{name} exists in several groups ({groups}); specify one")
        return self._index[candidates[0]]

    def effective_policies(
        self,
        resource_id: ResourceID,
        context: ResourceID | None = None,
    ) -> EffectivePolicies:
        """Effective policy per schema for a node.

        Routes and backends are resolved once per enclosing gateway, so
        *context* selects the gateway. It may be omitted when the node has
        a single context. A gateway that does not expose the node yields an
        empty mapping.
        """
        node = self.get(resource_id)
        if isinstance(node, GatewayClassNode | NamespaceNode | GatewayNode):
            return dict(node.effective_policies)
        if not isinstance(node, RouteNode | BackendNode):
            return {}
        per_context = node.effective_policies
        if context is not None:
            if context not in self.gateways:
                raise NodeNotFoundError(context)
            return dict(per_context.get(context, {}))
        if not per_context:
            return {}
        if len(per_context) > 1:
            raise ContextRequiredError(resource_id, sorted(c for c in per_context if c is not None))
        return dict(next(iter(per_context.values())))

    def effective_policies_by_context(
        self,
        resource_id: ResourceID,
    ) -> dict[ResourceID | None, EffectivePolicies]:
        node = self.get(resource_id)
        if isinstance(node, RouteNode | BackendNode):
            return {ctx: dict(policies) for ctx, policies in node.effective_policies.items()}
        if isinstance(node, GatewayClassNode | NamespaceNode | GatewayNode):
            return {None: dict(node.effective_policies)}
        return {}

    def errors(self, resource_id: ResourceID) -> list[GraphIssue]:
        return list(self.get(resource_id).errors)

    def all_errors(self) -> dict[ResourceID, list[GraphIssue]]:
        return {node.id: list(node.errors) for node in self.nodes() if node.errors}

    def summary(self) -> dict[str, int]:
        return {
            "gateway_classes": len(self.gateway_classes),
            "namespaces": len(self.namespaces),
            "gateways": len(self.gateways),
            "routes": len(self.routes),
            "backends": len(self.backends),
            "reference_grants": len(self.reference_grants),
            "policies": len(self.policies),
            "issues": sum(len(node.errors) for node in self._index.values()),
        }

    def topology(self) -> dict[str, dict[str, Any]]:
        """Plain-data view of links, issues and effective policies.

        Two graphs built from the same snapshot produce equal topologies.
        """

        def _ids(values: set[ResourceID]) -> list[str]:
            return [str(v) for v in sorted(values)]

        def _effective(policies: EffectivePolicies) -> dict[str, str]:
            return {str(schema): str(policy.id) for schema, policy in sorted(policies.items())}

        view: dict[str, dict[str, Any]] = {}
        for node in self.nodes():
            entry: dict[str, Any] = {
                "type": type(node).__name__,
                "errors": [(str(e.kind), e.message) for e in node.errors],
            }
            for attr, value in vars(node).items():
                if attr in ("id", "raw", "errors", "grant", "policy"):
                    continue
                if isinstance(value, set):
                    entry[attr] = _ids(value)
                elif isinstance(value, ResourceID):
                    entry[attr] = str(value)
                elif attr == "inherited_policies":
                    entry[attr] = [str(pid) for pid in value]
                elif attr == "effective_policies":
                    if isinstance(node, RouteNode | BackendNode):
                        entry[attr] = {
                            str(ctx or ""): _effective(policies)
                            for ctx, policies in sorted(value.items(), key=lambda kv: str(kv[0] or ""))
                        }
                    else:
                        entry[attr] = _effective(value)
                else:
                    entry[attr] = value
            view[str(node.id)] = entry
        return view
