"""Pydantic response models for the gwgraph REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str  # "ok" once a graph is published, "warming" before
    generation: int = 0
    published_at: str | None = None


class GraphSummaryResponse(BaseModel):
    generation: int
    counts: dict[str, int] = Field(default_factory=dict)


class IssueView(BaseModel):
    kind: str
    message: str
    reference: str | None = None


class PolicyView(BaseModel):
    policy_schema: str
    group: str
    kind: str
    namespace: str
    name: str


class NodeView(BaseModel):
    id: str
    node_type: str
    group: str
    kind: str
    namespace: str
    name: str
    links: dict[str, list[str]] = Field(default_factory=dict)
    errors: list[IssueView] = Field(default_factory=list)


class EffectivePoliciesResponse(BaseModel):
    resource: str
    context: str | None = None
    policies: list[PolicyView] = Field(default_factory=list)


class ErrorsResponse(BaseModel):
    resource: str
    errors: list[IssueView] = Field(default_factory=list)
