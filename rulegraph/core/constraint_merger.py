"""
Constraint Merger — Resolves the effective policy for one artifact identifier.

Algorithm:
1. Candidates = always-apply documents + documents with a matching pattern
2. Order by best matching specificity desc, then rule id asc
3. Per concern domain, the first candidate that owns or delegates it is the
   owning candidate; its delegation chain ends at the authority, and only the
   authority's clauses are collected
4. Flatten, tag with authority id, deduplicate, order by severity desc then domain
5. Resolve cross-authority contradictions: higher severity wins, equal
   severity → prohibition wins (deny-overrides). Losers are kept in
   `conflicts`; the evaluator reports them as unsatisfiable
"""

from __future__ import annotations

import logging
import sys

from rulegraph.core.pattern_matcher import best_specificity, normalize_identifier
from rulegraph.core.rule_graph import RuleGraph
from rulegraph.models.policy_models import (
    AuthorityAmbiguity,
    ConflictResolution,
    EffectivePolicy,
    PolicyClause,
)
from rulegraph.models.rule_models import ConstraintKind, RuleDocument

logger = logging.getLogger("rulegraph.merger")

# Always-apply documents whose patterns do not match rank below every match
UNMATCHED_SPECIFICITY = -sys.maxsize

HIGHER_SEVERITY = "higher severity"
DENY_OVERRIDES = "deny overrides"
RULE_ID_ORDER = "rule id order"


def select_candidates(graph: RuleGraph, identifier: str) -> list[RuleDocument]:
    """Applicable documents in precedence order."""
    scored: list[tuple[int, str]] = []
    for doc in graph.nodes.values():
        score = best_specificity(doc.applicability, identifier)
        if score is None:
            if not doc.always_apply:
                continue
            score = UNMATCHED_SPECIFICITY
        scored.append((score, doc.id))

    scored.sort(key=lambda item: (-item[0], item[1]))
    return [graph.nodes[rule_id] for _, rule_id in scored]


def resolve(graph: RuleGraph, identifier: str) -> EffectivePolicy:
    """
    Merge every applicable rule into one effective policy.

    Args:
        graph: Validated rule graph snapshot.
        identifier: Artifact identifier (path-like).

    Returns:
        EffectivePolicy with provenance for every clause.
    """
    identifier = normalize_identifier(identifier)
    candidates = select_candidates(graph, identifier)

    domains = sorted(
        {d for doc in candidates for d in [*doc.clauses, *doc.delegated_domains]}
    )

    authorities: dict[str, str] = {}
    paths: dict[str, tuple[str, ...]] = {}
    ambiguities: list[AuthorityAmbiguity] = []
    collected: list[PolicyClause] = []

    for domain in domains:
        owners = [
            doc
            for doc in candidates
            if doc.clauses.get(domain) or doc.delegation_for(domain) is not None
        ]
        if not owners:
            # Domain only listed with an empty clause tuple
            continue

        chain = graph.delegation_chain(owners[0].id, domain)
        authority = chain[-1]
        authorities[domain] = authority
        paths[domain] = chain

        ignored: list[str] = []
        for other in owners[1:]:
            other_authority = graph.authority_for(other.id, domain)
            if other_authority != authority and other_authority not in ignored:
                ignored.append(other_authority)
        if ignored:
            logger.warning(
                f"Ambiguous authority for domain '{domain}' on '{identifier}': "
                f"using '{authority}', ignoring {ignored}"
            )
            ambiguities.append(
                AuthorityAmbiguity(domain=domain, chosen=authority, ignored=tuple(ignored))
            )

        for constraint in graph.nodes[authority].clauses.get(domain, ()):
            collected.append(PolicyClause(rule_id=authority, constraint=constraint))

    clauses = _deduplicate(collected)
    clauses, conflicts = _resolve_conflicts(clauses)
    clauses.sort(key=lambda c: (-c.constraint.rank, c.constraint.domain))

    logger.debug(
        f"Resolved '{identifier}': {len(candidates)} candidates, "
        f"{len(authorities)} domains, {len(clauses)} clauses, {len(conflicts)} conflicts"
    )

    return EffectivePolicy(
        identifier=identifier,
        clauses=tuple(clauses),
        candidates=tuple(doc.id for doc in candidates),
        authorities=authorities,
        delegation_paths=paths,
        conflicts=tuple(conflicts),
        ambiguities=tuple(ambiguities),
        graph_fingerprint=graph.fingerprint,
    )


def _deduplicate(clauses: list[PolicyClause]) -> list[PolicyClause]:
    seen: set[str] = set()
    unique: list[PolicyClause] = []
    for clause in clauses:
        key = clause.model_dump_json()
        if key in seen:
            continue
        seen.add(key)
        unique.append(clause)
    return unique


def _contradicts(a: PolicyClause, b: PolicyClause) -> bool:
    """True if the two clauses cannot both be satisfied on the same feature."""
    ca, cb = a.constraint, b.constraint
    if ca.predicate.feature != cb.predicate.feature:
        return False
    kinds = {ca.kind, cb.kind}
    if kinds == {ConstraintKind.PROHIBITION, ConstraintKind.REQUIREMENT}:
        return ca.predicate.equals == cb.predicate.equals
    if kinds == {ConstraintKind.REQUIREMENT}:
        return ca.predicate.equals != cb.predicate.equals
    return False


def _pick_winner(a: PolicyClause, b: PolicyClause) -> tuple[PolicyClause, PolicyClause, str]:
    ca, cb = a.constraint, b.constraint
    if ca.rank != cb.rank:
        winner, loser = (a, b) if ca.rank > cb.rank else (b, a)
        return winner, loser, HIGHER_SEVERITY
    if ca.kind != cb.kind:
        winner, loser = (a, b) if ca.kind == ConstraintKind.PROHIBITION else (b, a)
        return winner, loser, DENY_OVERRIDES
    winner, loser = sorted((a, b), key=lambda c: (c.rule_id, c.constraint.domain))
    return winner, loser, RULE_ID_ORDER


def _resolve_conflicts(
    clauses: list[PolicyClause],
) -> tuple[list[PolicyClause], list[ConflictResolution]]:
    """Drop the losing side of contradictions between different authorities."""
    dropped: set[int] = set()
    conflicts: list[ConflictResolution] = []

    # Strongest clauses first so a dropped clause never knocks out another
    order = sorted(
        range(len(clauses)),
        key=lambda i: (
            -clauses[i].constraint.rank,
            clauses[i].constraint.kind != ConstraintKind.PROHIBITION,
            clauses[i].rule_id,
            clauses[i].constraint.domain,
            i,
        ),
    )
    for pos, i in enumerate(order):
        if i in dropped:
            continue
        for j in order[pos + 1:]:
            if j in dropped:
                continue
            a, b = clauses[i], clauses[j]
            if a.rule_id == b.rule_id or not _contradicts(a, b):
                continue
            winner, loser, reason = _pick_winner(a, b)
            dropped.add(j if loser is b else i)
            conflicts.append(
                ConflictResolution(
                    feature=a.constraint.predicate.feature,
                    winner=winner,
                    loser=loser,
                    reason=reason,
                )
            )

    if conflicts:
        logger.info(f"Resolved {len(conflicts)} conflicting clause pair(s)")

    return [c for idx, c in enumerate(clauses) if idx not in dropped], conflicts
