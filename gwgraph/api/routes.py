"""Read-only query endpoints over the published graph."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request

from gwgraph.api.schemas import (
    EffectivePoliciesResponse,
    ErrorsResponse,
    GraphSummaryResponse,
    HealthResponse,
    IssueView,
    NodeView,
    PolicyView,
)
from gwgraph.graph.model import ResourceGraph
from gwgraph.graph.nodes import EffectivePolicies, Node
from gwgraph.models.issues import GraphError, GraphIssue, NodeNotFoundError
from gwgraph.models.resources import compute_id, gateway_id

router = APIRouter()


class GraphUnavailableError(GraphError):
    """No graph has been published yet."""


def _graph(request: Request) -> ResourceGraph:
    graph = request.app.state.store.graph
    if graph is None:
        raise GraphUnavailableError("no resource graph has been published yet")
    return graph


def _find(graph: ResourceGraph, kind: str, namespace: str, name: str, group: str | None) -> Node:
    node = graph.lookup(kind, namespace, name, group=group)
    if node is None:
        raise NodeNotFoundError(compute_id(group or "", kind, namespace, name))
    return node


def _issue_view(issue: GraphIssue) -> IssueView:
    return IssueView(
        kind=str(issue.kind),
        message=issue.message,
        reference=str(issue.reference) if issue.reference is not None else None,
    )


def _policy_views(policies: EffectivePolicies) -> list[PolicyView]:
    return [
        PolicyView(
            policy_schema=str(schema),
            group=policy.id.group,
            kind=policy.id.kind,
            namespace=policy.id.namespace,
            name=policy.id.name,
        )
        for schema, policy in sorted(policies.items())
    ]


def _node_view(node: Node) -> NodeView:
    links: dict[str, list[str]] = {}
    for attr, value in vars(node).items():
        if isinstance(value, set):
            links[attr] = [str(v) for v in sorted(value)]
    return NodeView(
        id=str(node.id),
        node_type=type(node).__name__,
        group=node.id.group,
        kind=node.id.kind,
        namespace=node.id.namespace,
        name=node.id.name,
        links=links,
        errors=[_issue_view(issue) for issue in node.errors],
    )


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    store = request.app.state.store
    if store.graph is None:
        return HealthResponse(status="warming")
    published_at = store.published_at
    return HealthResponse(
        status="ok",
        generation=store.generation,
        published_at=published_at.isoformat(timespec="milliseconds").replace("+00:00", "Z") if published_at else None,
    )


@router.get("/graph", response_model=GraphSummaryResponse)
async def graph_summary(request: Request) -> GraphSummaryResponse:
    graph = _graph(request)
    return GraphSummaryResponse(generation=request.app.state.store.generation, counts=graph.summary())


@router.get("/resources/{kind}/{name}", response_model=NodeView)
async def get_resource(
    request: Request,
    kind: str,
    name: str,
    namespace: str = Query(default=""),
    group: str | None = Query(default=None),
) -> NodeView:
    return _node_view(_find(_graph(request), kind, namespace, name, group))


@router.get("/effective-policies/{kind}/{name}", response_model=EffectivePoliciesResponse)
async def get_effective_policies(
    request: Request,
    kind: str,
    name: str,
    namespace: str = Query(default=""),
    group: str | None = Query(default=None),
    gateway_namespace: str = Query(default=""),
    gateway_name: str = Query(default=""),
) -> EffectivePoliciesResponse:
    graph = _graph(request)
    node = _find(graph, kind, namespace, name, group)
    context = gateway_id(gateway_namespace, gateway_name) if gateway_name else None
    policies = graph.effective_policies(node.id, context)
    return EffectivePoliciesResponse(
        resource=str(node.id),
        context=str(context) if context is not None else None,
        policies=_policy_views(policies),
    )


@router.get("/errors/{kind}/{name}", response_model=ErrorsResponse)
async def get_errors(
    request: Request,
    kind: str,
    name: str,
    namespace: str = Query(default=""),
    group: str | None = Query(default=None),
) -> ErrorsResponse:
    graph = _graph(request)
    node = _find(graph, kind, namespace, name, group)
    return ErrorsResponse(
        resource=str(node.id),
        errors=[_issue_view(issue) for issue in graph.errors(node.id)],
    )
