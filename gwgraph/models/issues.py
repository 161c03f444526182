"""Per-node issues and the exception hierarchy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gwgraph.models.resources import ResourceID


class IssueKind(StrEnum):
    """Recoverable problems attached to the node that caused them."""

    UNRESOLVED_REFERENCE = "unresolved_reference"
    REFERENCE_NOT_PERMITTED = "reference_not_permitted"
    DUPLICATE_RESOURCE = "duplicate_resource"
    INVALID_POLICY_TARGET = "invalid_policy_target"
    POLICY_CONFLICT = "policy_conflict"


@dataclass(frozen=True)
class GraphIssue:
    """A structured, non-fatal error recorded on a node."""

    kind: IssueKind
    message: str
    reference: ResourceID | None = None  # the ID the issue is about, if any

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class GraphError(Exception):
    """Base class for gwgraph exceptions."""


class MalformedResourceError(GraphError):
    """Input lacks identity fields; the whole build is aborted."""


class InvalidPolicyNodeError(GraphError):
    """A policy node would end up attached to more than one target."""


class NodeNotFoundError(GraphError, KeyError):
    """No node with the requested ID exists in the graph."""

    def __init__(self, resource_id: ResourceID) -> None:
        super().__init__(f"resource not found: {resource_id}")
        self.resource_id = resource_id

    def __str__(self) -> str:
        return str(self.args[0])


class ContextRequiredError(GraphError):
    """A node resolved under several gateways was queried without a context."""

    def __init__(self, resource_id: ResourceID, contexts: list[ResourceID]) -> None:
        names = ", ".join(f"{c.namespace}/{c.name}" for c in contexts)
        super().__init__(f"{resource_id} has several gateway contexts ({names}); pick one")
        self.resource_id = resource_id
        self.contexts = contexts
