"""Core data structures for gwgraph."""

from gwgraph.models.config import GwGraphConfig
from gwgraph.models.issues import (
    ContextRequiredError,
    GraphError,
    GraphIssue,
    InvalidPolicyNodeError,
    IssueKind,
    MalformedResourceError,
    NodeNotFoundError,
)
from gwgraph.models.resources import (
    PolicySchemaID,
    ResourceID,
    backend_id,
    backend_id_for_service,
    compute_id,
    gateway_class_id,
    gateway_id,
    namespace_id,
    policy_id,
    reference_grant_id,
    resource_id_of,
    route_id,
)
from gwgraph.models.snapshot import ClusterSnapshot

__all__ = [
    "ClusterSnapshot",
    "ContextRequiredError",
    "GraphError",
    "GraphIssue",
    "GwGraphConfig",
    "InvalidPolicyNodeError",
    "IssueKind",
    "MalformedResourceError",
    "NodeNotFoundError",
    "PolicySchemaID",
    "ResourceID",
    "backend_id",
    "backend_id_for_service",
    "compute_id",
    "gateway_class_id",
    "gateway_id",
    "namespace_id",
    "policy_id",
    "reference_grant_id",
    "resource_id_of",
    "route_id",
]
