"""Resource identity and helpers for unstructured Kubernetes objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gwgraph.models.issues import MalformedResourceError

DEFAULT_NAMESPACE = "default"
GATEWAY_GROUP = "gateway.networking.k8s.io"

# Lower-cased kinds that live outside any namespace.
CLUSTER_SCOPED_KINDS = frozenset({"gatewayclass", "namespace"})

ROUTE_KINDS = frozenset({"httproute", "grpcroute", "tcproute", "tlsroute", "udproute"})


@dataclass(frozen=True, order=True)
class ResourceID:
    """Unique key for any resource in the graph.

    Kind is always part of the key, so a Gateway and an HTTPRoute sharing a
    namespace and name never collide.
    """

    group: str
    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.group}|{self.kind}|{self.namespace}|{self.name}"


@dataclass(frozen=True, order=True)
class PolicySchemaID:
    """Identity of a policy CRD (group + kind); one override slot per schema."""

    group: str
    kind: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}" if self.group else self.kind


def compute_id(group: str, kind: str, namespace: str, name: str) -> ResourceID:
    """Return the canonical ID for a resource.

    Group and kind are lower-cased. Namespaced kinds default to ``default``;
    cluster-scoped kinds never carry a namespace.
    """
    group = (group or "").lower()
    kind = (kind or "").lower()
    if kind in CLUSTER_SCOPED_KINDS:
        namespace = ""
    elif not namespace:
        namespace = DEFAULT_NAMESPACE
    return ResourceID(group=group, kind=kind, namespace=namespace, name=name)


def gateway_class_id(name: str) -> ResourceID:
    return compute_id(GATEWAY_GROUP, "GatewayClass", "", name)


def namespace_id(name: str) -> ResourceID:
    return compute_id("", "Namespace", "", name or DEFAULT_NAMESPACE)


def gateway_id(namespace: str, name: str) -> ResourceID:
    return compute_id(GATEWAY_GROUP, "Gateway", namespace, name)


def route_id(namespace: str, name: str, kind: str = "HTTPRoute") -> ResourceID:
    return compute_id(GATEWAY_GROUP, kind, namespace, name)


def backend_id(group: str, kind: str, namespace: str, name: str) -> ResourceID:
    return compute_id(group, kind, namespace, name)


def backend_id_for_service(namespace: str, name: str) -> ResourceID:
    """ID for a backend whose underlying resource is a core Service."""
    return backend_id("", "Service", namespace, name)


def policy_id(group: str, kind: str, namespace: str, name: str) -> ResourceID:
    return compute_id(group, kind, namespace, name)


def reference_grant_id(namespace: str, name: str) -> ResourceID:
    return compute_id(GATEWAY_GROUP, "ReferenceGrant", namespace, name)


def group_of(api_version: str) -> str:
    """Extract the API group from an apiVersion (``v1`` is the core group)."""
    if "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


@dataclass(frozen=True)
class ObjectMeta:
    """Identity fields read from an unstructured object."""

    group: str
    kind: str
    namespace: str
    name: str


def object_meta(raw: dict[str, Any]) -> ObjectMeta:
    """Read identity fields from *raw*.

    Raises MalformedResourceError when kind or name is missing: such input
    cannot be keyed and aborts the build.
    """
    if not isinstance(raw, dict):
        raise MalformedResourceError(f"resource is not a mapping: {type(raw).__name__}")
    metadata = raw.get("metadata") or {}
    kind = raw.get("kind") or ""
    name = metadata.get("name") or ""
    if not kind:
        raise MalformedResourceError(f"resource {name or '<unnamed>'} has no kind")
    if not name:
        raise MalformedResourceError(f"{kind} resource has no metadata.name")
    return ObjectMeta(
        group=group_of(raw.get("apiVersion") or ""),
        kind=kind,
        namespace=metadata.get("namespace") or "",
        name=name,
    )


def resource_id_of(raw: dict[str, Any]) -> ResourceID:
    meta = object_meta(raw)
    return compute_id(meta.group, meta.kind, meta.namespace, meta.name)
