"""Raw resource snapshot consumed by the graph builder."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from gwgraph.models.issues import MalformedResourceError
from gwgraph.models.resources import GATEWAY_GROUP, ROUTE_KINDS, group_of

_log = structlog.get_logger(component="models.snapshot")

DEFAULT_BACKEND_KINDS = ("Service", "ServiceImport")


@dataclass
class ClusterSnapshot:
    """One fetched snapshot: a flat list of raw objects per resource kind.

    Objects are unstructured Kubernetes mappings and are never mutated.
    """

    gateway_classes: list[dict[str, Any]] = field(default_factory=list)
    namespaces: list[dict[str, Any]] = field(default_factory=list)
    gateways: list[dict[str, Any]] = field(default_factory=list)
    routes: list[dict[str, Any]] = field(default_factory=list)
    backends: list[dict[str, Any]] = field(default_factory=list)
    reference_grants: list[dict[str, Any]] = field(default_factory=list)
    policies: list[dict[str, Any]] = field(default_factory=list)

    @property
    def object_count(self) -> int:
        return (
            len(self.gateway_classes)
            + len(self.namespaces)
            + len(self.gateways)
            + len(self.routes)
            + len(self.backends)
            + len(self.reference_grants)
            + len(self.policies)
        )

    @classmethod
    def from_objects(
        cls,
        items: Iterable[dict[str, Any]],
        backend_kinds: Iterable[str] = DEFAULT_BACKEND_KINDS,
    ) -> ClusterSnapshot:
        """Partition a flat object list by kind.

        Any object carrying ``spec.targetRef`` or ``spec.targetRefs`` is a
        policy. Objects of other unknown kinds are dropped.

        Raises:
            MalformedResourceError: an item or its spec is not a mapping.
        """
        backend_set = {k.lower() for k in backend_kinds}
        snapshot = cls()
        for position, raw in enumerate(items):
            if not isinstance(raw, dict):
                raise MalformedResourceError(f"snapshot item {position} is not a mapping: {type(raw).__name__}")
            spec = raw.get("spec") or {}
            if not isinstance(spec, dict):
                raise MalformedResourceError(
                    f"{raw.get('kind') or 'resource'} at snapshot item {position} has a non-mapping spec"
                )
            kind = str(raw.get("kind") or "").lower()
            group = group_of(str(raw.get("apiVersion") or ""))
            if kind == "gatewayclass" and group == GATEWAY_GROUP:
                snapshot.gateway_classes.append(raw)
            elif kind == "namespace" and group == "":
                snapshot.namespaces.append(raw)
            elif kind == "gateway" and group == GATEWAY_GROUP:
                snapshot.gateways.append(raw)
            elif kind in ROUTE_KINDS and group == GATEWAY_GROUP:
                snapshot.routes.append(raw)
            elif kind == "referencegrant" and group == GATEWAY_GROUP:
                snapshot.reference_grants.append(raw)
            elif "targetRef" in spec or "targetRefs" in spec:
                snapshot.policies.append(raw)
            elif kind in backend_set:
                snapshot.backends.append(raw)
            else:
                _log.debug(
                    "snapshot_object_ignored",
                    kind=raw.get("kind"),
                    name=(raw.get("metadata") or {}).get("name"),
                )
        return snapshot
