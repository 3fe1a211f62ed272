"""
Test fixtures shared across all rulegraph tests.
"""

import pytest

from rulegraph.core.loader import load_documents
from rulegraph.core.rule_graph import build_rule_graph
from rulegraph.models.policy_models import PolicyClause
from rulegraph.models.rule_models import Constraint, Predicate, RuleDocument


@pytest.fixture
def example_documents():
    """Global baseline plus a more specific web rule delegating input validation to it."""
    return load_documents([
        {
            "id": "always-apply-baseline",
            "applicability": ["**/*"],
            "alwaysApply": True,
            "clauses": {
                "input-validation": [
                    {
                        "kind": "prohibition",
                        "predicate": {"feature": "usesRawEval", "equals": True},
                        "severity": "fatal",
                    }
                ]
            },
        },
        {
            "id": "web-specific",
            "applicability": ["**/*.ts"],
            "delegates": [
                {"domain": "input-validation", "target": "always-apply-baseline"}
            ],
            "clauses": {
                "secrets": [
                    {
                        "kind": "prohibition",
                        "predicate": {"feature": "secretInClientBundle", "equals": True},
                        "severity": "fatal",
                    }
                ]
            },
        },
    ])


@pytest.fixture
def example_graph(example_documents):
    return build_rule_graph(example_documents)


@pytest.fixture
def make_constraint():
    """Factory: make_constraint('prohibition', 'secrets', 'hasSecret', severity='fatal')."""

    def _make(kind, domain, feature, equals=True, severity="warn", message=""):
        return Constraint(
            kind=kind,
            domain=domain,
            predicate=Predicate(feature=feature, equals=equals),
            severity=severity,
            message=message,
        )

    return _make


@pytest.fixture
def make_document(make_constraint):
    """Factory for RuleDocuments with clauses given as (domain, kind, feature, ...) tuples."""

    def _make(rule_id, patterns=(), always_apply=False, delegates=None, clauses=()):
        grouped = {}
        for domain, kind, feature, *rest in clauses:
            grouped.setdefault(domain, []).append(make_constraint(kind, domain, feature, *rest))
        return RuleDocument(
            id=rule_id,
            applicability=tuple(patterns),
            always_apply=always_apply,
            delegates=tuple(
                {"domain": domain, "target": target}
                for domain, target in (delegates or {}).items()
            ),
            clauses={domain: tuple(items) for domain, items in grouped.items()},
        )

    return _make


@pytest.fixture
def make_clause(make_constraint):
    """Factory for PolicyClauses used to build policies directly."""

    def _make(rule_id, kind, domain, feature, equals=True, severity="warn", message=""):
        return PolicyClause(
            rule_id=rule_id,
            constraint=make_constraint(kind, domain, feature, equals, severity, message),
        )

    return _make
