"""Node types for the resource graph.

Every node owns its raw resource. Relationships are stored as sets of
ResourceIDs that index into the graph registry, never as object references,
so the graph has no reference cycles and two builds compare by value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from gwgraph.graph.grants import ReferenceGrant
from gwgraph.models.issues import GraphIssue, InvalidPolicyNodeError, IssueKind
from gwgraph.models.resources import (
    ROUTE_KINDS,
    PolicySchemaID,
    ResourceID,
    compute_id,
    object_meta,
)

_log = structlog.get_logger(component="graph.nodes")


@dataclass(frozen=True)
class TargetRef:
    """A policy's reference to the resource it attaches to."""

    group: str
    kind: str
    name: str
    namespace: str = ""  # empty means the policy's own namespace


@dataclass(frozen=True)
class Policy:
    """A policy instance as seen by the resolver.

    The resolver never looks inside ``raw``; policy schemas are opaque.
    """

    id: ResourceID
    schema: PolicySchemaID
    raw: dict[str, Any]
    target_refs: tuple[TargetRef, ...] = ()

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> Policy:
        meta = object_meta(raw)
        spec = raw.get("spec") or {}
        refs: list[dict[str, Any]] = []
        if spec.get("targetRef"):
            refs.append(spec["targetRef"])
        refs.extend(spec.get("targetRefs") or [])
        return cls(
            id=compute_id(meta.group, meta.kind, meta.namespace, meta.name),
            schema=PolicySchemaID(group=meta.group.lower(), kind=meta.kind.lower()),
            raw=raw,
            target_refs=tuple(
                TargetRef(
                    group=ref.get("group") or "",
                    kind=ref.get("kind") or "",
                    name=ref.get("name") or "",
                    namespace=ref.get("namespace") or "",
                )
                for ref in refs
            ),
        )


# Effective policy set: one entry per policy schema.
EffectivePolicies = dict[PolicySchemaID, Policy]


@dataclass(eq=False)
class Node:
    """Common identity and error list carried by every node."""

    id: ResourceID
    raw: dict[str, Any]
    errors: list[GraphIssue] = field(default_factory=list)

    def add_issue(self, kind: IssueKind, message: str, reference: ResourceID | None = None) -> None:
        issue = GraphIssue(kind=kind, message=message, reference=reference)
        if issue in self.errors:
            return
        self.errors.append(issue)
        _log.warning(
            "graph_issue",
            resource=str(self.id),
            issue=str(kind),
            message=message,
        )


@dataclass(eq=False)
class GatewayClassNode(Node):
    gateways: set[ResourceID] = field(default_factory=set)
    policies: set[ResourceID] = field(default_factory=set)
    effective_policies: EffectivePolicies = field(default_factory=dict)


@dataclass(eq=False)
class NamespaceNode(Node):
    gateways: set[ResourceID] = field(default_factory=set)
    routes: set[ResourceID] = field(default_factory=set)
    backends: set[ResourceID] = field(default_factory=set)
    # Policies attached to the namespace itself.
    policies: set[ResourceID] = field(default_factory=set)
    # Policies that live in the namespace, whatever they target.
    member_policies: set[ResourceID] = field(default_factory=set)
    effective_policies: EffectivePolicies = field(default_factory=dict)
    implicit: bool = False  # synthesised because the snapshot did not list it


@dataclass(eq=False)
class GatewayNode(Node):
    namespace: ResourceID | None = None
    gateway_class: ResourceID | None = None
    routes: set[ResourceID] = field(default_factory=set)
    policies: set[ResourceID] = field(default_factory=set)
    inherited_policies: dict[ResourceID, Policy] = field(default_factory=dict)
    effective_policies: EffectivePolicies = field(default_factory=dict)

    @property
    def gateway_class_name(self) -> str:
        return (self.raw.get("spec") or {}).get("gatewayClassName") or ""


@dataclass(eq=False)
class RouteNode(Node):
    namespace: ResourceID | None = None
    gateways: set[ResourceID] = field(default_factory=set)
    backends: set[ResourceID] = field(default_factory=set)
    policies: set[ResourceID] = field(default_factory=set)
    inherited_policies: dict[ResourceID, Policy] = field(default_factory=dict)
    # Keyed by enclosing gateway; None holds the map of a route with no gateway.
    effective_policies: dict[ResourceID | None, EffectivePolicies] = field(default_factory=dict)

    def parent_refs(self) -> list[dict[str, Any]]:
        return list((self.raw.get("spec") or {}).get("parentRefs") or [])

    def backend_refs(self) -> list[dict[str, Any]]:
        refs: list[dict[str, Any]] = []
        for rule in (self.raw.get("spec") or {}).get("rules") or []:
            refs.extend(rule.get("backendRefs") or [])
        return refs


class BackendType(StrEnum):
    """Closed set of underlying resource kinds a backend can be."""

    SERVICE = "service"
    SERVICE_IMPORT = "serviceimport"
    OTHER = "other"


@dataclass(eq=False)
class BackendNode(Node):
    namespace: ResourceID | None = None
    routes: set[ResourceID] = field(default_factory=set)
    reference_grants: set[ResourceID] = field(default_factory=set)
    policies: set[ResourceID] = field(default_factory=set)
    inherited_policies: dict[ResourceID, Policy] = field(default_factory=dict)
    effective_policies: dict[ResourceID | None, EffectivePolicies] = field(default_factory=dict)

    @property
    def backend_type(self) -> BackendType:
        if self.id.group == "" and self.id.kind == "service":
            return BackendType.SERVICE
        if self.id.group == "multicluster.x-k8s.io" and self.id.kind == "serviceimport":
            return BackendType.SERVICE_IMPORT
        return BackendType.OTHER


@dataclass(eq=False)
class ReferenceGrantNode(Node):
    grant: ReferenceGrant | None = None
    backends: set[ResourceID] = field(default_factory=set)


_TARGET_SLOTS = ("gateway_class", "namespace", "gateway", "route", "backend")


@dataclass(eq=False)
class PolicyNode(Node):
    """A policy and the one node it is directly attached to.

    At most one target slot is ever set; a policy with no target is
    excluded from inheritance.
    """

    policy: Policy | None = None
    gateway_class: ResourceID | None = None
    namespace: ResourceID | None = None
    gateway: ResourceID | None = None
    route: ResourceID | None = None
    backend: ResourceID | None = None

    def __post_init__(self) -> None:
        set_slots = [slot for slot in _TARGET_SLOTS if getattr(self, slot) is not None]
        if len(set_slots) > 1:
            raise InvalidPolicyNodeError(f"policy {self.id} attached to {len(set_slots)} targets: {set_slots}")

    @property
    def target(self) -> ResourceID | None:
        for slot in _TARGET_SLOTS:
            value = getattr(self, slot)
            if value is not None:
                return value
        return None

    def attach(self, target: ResourceID) -> None:
        """Record *target* as this policy's single attachment."""
        if self.target is not None:
            raise InvalidPolicyNodeError(f"policy {self.id} is already attached to {self.target}")
        if target.kind == "gatewayclass":
            self.gateway_class = target
        elif target.kind == "namespace":
            self.namespace = target
        elif target.kind == "gateway":
            self.gateway = target
        elif target.kind in ROUTE_KINDS:
            self.route = target
        else:
            self.backend = target
