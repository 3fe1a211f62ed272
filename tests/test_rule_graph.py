"""
Tests for Rule Graph Builder — structure, validation errors, immutability.
"""

import dataclasses

import pytest

from rulegraph.core.rule_graph import build_rule_graph
from rulegraph.errors import (
    ConfigError,
    DanglingDelegation,
    DelegationCycle,
    DuplicateDelegation,
    DuplicateRuleId,
    UnknownConcernDomain,
)
from rulegraph.models.rule_models import Delegation


def test_builds_example_graph(example_graph):
    assert [d.id for d in example_graph.documents] == ["always-apply-baseline", "web-specific"]
    assert len(example_graph.edges) == 1
    edge = example_graph.edges[0]
    assert (edge.source, edge.target, edge.domain) == (
        "web-specific",
        "always-apply-baseline",
        "input-validation",
    )
    assert example_graph.domains == frozenset({"input-validation", "secrets"})


def test_delegation_chain_and_delegators(example_graph):
    assert example_graph.delegation_chain("web-specific", "input-validation") == (
        "web-specific",
        "always-apply-baseline",
    )
    assert example_graph.delegation_chain("web-specific", "secrets") == ("web-specific",)
    assert example_graph.get_delegators("always-apply-baseline") == ["web-specific"]
    assert example_graph.get_delegators("always-apply-baseline", "secrets") == []


def test_fingerprint_independent_of_load_order(example_documents):
    forward = build_rule_graph(example_documents)
    backward = build_rule_graph(list(reversed(example_documents)))
    assert len(forward.fingerprint) == 64
    assert forward.fingerprint == backward.fingerprint


def test_fingerprint_changes_with_documents(example_documents, make_document):
    extra = make_document("extra", ["*.md"], clauses=[("docs", "requirement", "x")])
    assert (
        build_rule_graph(example_documents).fingerprint
        != build_rule_graph([*example_documents, extra]).fingerprint
    )


def test_multi_hop_chain(make_document):
    graph = build_rule_graph([
        make_document("a", ["**/*.py"], delegates={"x": "b"}),
        make_document("b", delegates={"x": "c"}),
        make_document("c", clauses=[("x", "prohibition", "bad")]),
    ])
    assert graph.delegation_chain("a", "x") == ("a", "b", "c")
    assert graph.authority_for("b", "x") == "c"


def test_dangling_delegation(make_document):
    with pytest.raises(DanglingDelegation) as exc_info:
        build_rule_graph([
            make_document("web", ["**/*.ts"], delegates={"secrets": "missing"}),
        ])
    assert exc_info.value.target == "missing"
    assert exc_info.value.rule_id == "web"
    assert exc_info.value.domain == "secrets"


def test_delegation_cycle(make_document):
    with pytest.raises(DelegationCycle) as exc_info:
        build_rule_graph([
            make_document("a", ["**/*"], delegates={"x": "b"}, clauses=[("x", "prohibition", "f")]),
            make_document("b", ["**/*"], delegates={"x": "a"}, clauses=[("x", "prohibition", "f")]),
        ])
    assert exc_info.value.cycle == ["a", "b", "a"]
    assert exc_info.value.domain == "x"
    assert "a -> b -> a" in str(exc_info.value)


def test_self_delegation_is_a_cycle(make_document):
    with pytest.raises(DelegationCycle) as exc_info:
        build_rule_graph([make_document("a", delegates={"x": "a"}, clauses=[("x", "check", "f")])])
    assert exc_info.value.cycle == ["a", "a"]


def test_cross_domain_delegation_is_not_a_cycle(make_document):
    graph = build_rule_graph([
        make_document("a", delegates={"x": "b"}, clauses=[("y", "prohibition", "f")]),
        make_document("b", delegates={"y": "a"}, clauses=[("x", "prohibition", "g")]),
    ])
    assert graph.authority_for("a", "x") == "b"
    assert graph.authority_for("b", "y") == "a"


def test_duplicate_delegation(make_document):
    doc = make_document("web", ["**/*.ts"]).model_copy(
        update={
            "delegates": (
                Delegation(domain="secrets", target="b"),
                Delegation(domain="secrets", target="c"),
            )
        }
    )
    with pytest.raises(DuplicateDelegation) as exc_info:
        build_rule_graph([
            doc,
            make_document("b", clauses=[("secrets", "prohibition", "f")]),
            make_document("c", clauses=[("secrets", "prohibition", "f")]),
        ])
    assert exc_info.value.targets == ["b", "c"]


def test_duplicate_rule_id(make_document):
    with pytest.raises(DuplicateRuleId):
        build_rule_graph([make_document("a"), make_document("a")])


def test_unknown_concern_domain(make_document):
    with pytest.raises(UnknownConcernDomain) as exc_info:
        build_rule_graph([
            make_document("a", ["**/*"], delegates={"encryption": "b"}),
            make_document("b", clauses=[("secrets", "prohibition", "f")]),
        ])
    assert exc_info.value.terminal == "b"
    assert exc_info.value.domain == "encryption"


def test_all_build_errors_are_config_errors():
    for cls in (
        DanglingDelegation,
        DelegationCycle,
        DuplicateDelegation,
        DuplicateRuleId,
        UnknownConcernDomain,
    ):
        assert issubclass(cls, ConfigError)


def test_graph_is_immutable(example_graph):
    with pytest.raises(TypeError):
        example_graph.nodes["new"] = example_graph.nodes["web-specific"]
    with pytest.raises(dataclasses.FrozenInstanceError):
        example_graph.fingerprint = "tampered"
    with pytest.raises(TypeError):
        example_graph.nodes["web-specific"].clauses["secrets"] = ()
    assert len(example_graph.nodes["web-specific"].clauses["secrets"]) == 1


def test_shadowed_clauses_logged(make_document, caplog):
    with caplog.at_level("WARNING", logger="rulegraph.graph"):
        build_rule_graph([
            make_document("a", ["**/*"], delegates={"x": "b"}, clauses=[("x", "prohibition", "f")]),
            make_document("b", clauses=[("x", "prohibition", "g")]),
        ])
    assert any("delegated domain 'x'" in r.getMessage() for r in caplog.records)
