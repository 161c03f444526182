"""Tests for ReferenceGrant parsing and the is_permitted() predicate."""

from __future__ import annotations

from gwgraph.graph.grants import GrantFrom, GrantTo, ReferenceGrant, is_permitted
from gwgraph.models.resources import DEFAULT_NAMESPACE


def _grant(
    namespace: str = "backend-ns",
    from_namespace: str = "app",
    from_kind: str = "httproute",
    to_kind: str = "service",
    to_name: str = "",
    from_group: str = "gateway.networking.k8s.io",
    to_group: str = "",
) -> ReferenceGrant:
    return ReferenceGrant(
        namespace=namespace,
        name="grant",
        from_refs=(GrantFrom(group=from_group, kind=from_kind, namespace=from_namespace),),
        to_refs=(GrantTo(group=to_group, kind=to_kind, name=to_name),),
    )


class TestIsPermitted:
    def test_same_namespace_always_allowed(self) -> None:
        assert is_permitted("app", "HTTPRoute", "app", "Service", "svc", []) is True

    def test_cross_namespace_without_grant_denied(self) -> None:
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", []) is False

    def test_matching_grant_allows(self) -> None:
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [_grant()]) is True

    def test_grant_must_live_in_target_namespace(self) -> None:
        grant = _grant(namespace="elsewhere")
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [grant]) is False

    def test_from_namespace_must_match(self) -> None:
        grant = _grant(from_namespace="other")
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [grant]) is False

    def test_from_kind_must_match(self) -> None:
        grant = _grant(from_kind="grpcroute")
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [grant]) is False

    def test_wildcard_from_kind(self) -> None:
        grant = _grant(from_kind="*")
        assert is_permitted("app", "GRPCRoute", "backend-ns", "Service", "svc", [grant]) is True

    def test_named_to_entry_restricts_name(self) -> None:
        grant = _grant(to_name="svc")
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [grant]) is True
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "other", [grant]) is False

    def test_to_kind_must_match(self) -> None:
        assert is_permitted("app", "HTTPRoute", "backend-ns", "ServiceImport", "svc", [_grant()]) is False

    def test_groups_checked_only_when_given(self) -> None:
        grant = _grant()
        assert is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [grant], target_group="") is True
        assert (
            is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", [grant], target_group="example.com")
            is False
        )

    def test_pure_for_identical_inputs(self) -> None:
        grants = [_grant()]
        first = is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", grants)
        second = is_permitted("app", "HTTPRoute", "backend-ns", "Service", "svc", grants)
        assert first == second


class TestReferenceGrantFromRaw:
    def test_parses_and_normalises(self) -> None:
        grant = ReferenceGrant.from_raw(
            {
                "apiVersion": "gateway.networking.k8s.io/v1beta1",
                "kind": "ReferenceGrant",
                "metadata": {"name": "g", "namespace": "backend-ns"},
                "spec": {
                    "from": [{"group": "gateway.networking.k8s.io", "kind": "HTTPRoute", "namespace": "app"}],
                    "to": [{"group": "", "kind": "Service", "name": "svc"}],
                },
            }
        )
        assert grant.namespace == "backend-ns"
        assert grant.from_refs == (GrantFrom("gateway.networking.k8s.io", "httproute", "app"),)
        assert grant.to_refs == (GrantTo("", "service", "svc"),)

    def test_empty_spec(self) -> None:
        grant = ReferenceGrant.from_raw({"apiVersion": "x/v1", "kind": "ReferenceGrant", "metadata": {"name": "g"}})
        assert grant.from_refs == ()
        assert grant.to_refs == ()
        assert grant.namespace == DEFAULT_NAMESPACE
