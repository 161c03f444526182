"""ReferenceGrant parsing and the cross-namespace access check."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from gwgraph.models.resources import DEFAULT_NAMESPACE, object_meta

WILDCARD = "*"


@dataclass(frozen=True)
class GrantFrom:
    group: str
    kind: str
    namespace: str


@dataclass(frozen=True)
class GrantTo:
    group: str
    kind: str
    name: str = ""  # empty allows every resource of the kind


@dataclass(frozen=True)
class ReferenceGrant:
    """Parsed ReferenceGrant: who (``from``) may reference what (``to``)."""

    namespace: str
    name: str
    from_refs: tuple[GrantFrom, ...] = ()
    to_refs: tuple[GrantTo, ...] = ()

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> ReferenceGrant:
        meta = object_meta(raw)
        spec = raw.get("spec") or {}
        return cls(
            namespace=meta.namespace or DEFAULT_NAMESPACE,
            name=meta.name,
            from_refs=tuple(
                GrantFrom(
                    group=(f.get("group") or "").lower(),
                    kind=(f.get("kind") or "").lower(),
                    namespace=f.get("namespace") or "",
                )
                for f in spec.get("from") or []
            ),
            to_refs=tuple(
                GrantTo(
                    group=(t.get("group") or "").lower(),
                    kind=(t.get("kind") or "").lower(),
                    name=t.get("name") or "",
                )
                for t in spec.get("to") or []
            ),
        )

    def allows_from(self, namespace: str, kind: str, group: str | None = None) -> bool:
        kind = kind.lower()
        for entry in self.from_refs:
            if entry.namespace != namespace:
                continue
            if entry.kind not in (kind, WILDCARD):
                continue
            if group is not None and entry.group not in (group.lower(), WILDCARD):
                continue
            return True
        return False

    def allows_to(self, kind: str, name: str, group: str | None = None) -> bool:
        kind = kind.lower()
        for entry in self.to_refs:
            if entry.kind not in (kind, WILDCARD):
                continue
            if entry.name and entry.name != name:
                continue
            if group is not None and entry.group not in (group.lower(), WILDCARD):
                continue
            return True
        return False


def is_permitted(
    source_namespace: str,
    source_kind: str,
    target_namespace: str,
    target_kind: str,
    target_name: str,
    grants: Iterable[ReferenceGrant],
    *,
    source_group: str | None = None,
    target_group: str | None = None,
) -> bool:
    """Return True if a reference from source to target is allowed.

    Same-namespace references are always allowed. A cross-namespace
    reference needs a grant living in the target namespace whose ``from``
    matches the source and whose ``to`` matches the target. Groups are only
    compared when given.
    """
    if source_namespace == target_namespace:
        return True
    for grant in grants:
        if grant.namespace != target_namespace:
            continue
        if grant.allows_from(source_namespace, source_kind, source_group) and grant.allows_to(
            target_kind, target_name, target_group
        ):
            return True
    return False
