"""
Policy Evaluator — Applies an effective policy to caller-supplied features.

Pure and deterministic: clauses are put into a canonical total order first, so
any permutation of policy.clauses produces the same Decision.
"""

from __future__ import annotations

import logging
from typing import Any

from rulegraph.core.constraint_merger import DENY_OVERRIDES
from rulegraph.models.decision_models import (
    ArtifactContext,
    AuditTrailEntry,
    Decision,
    EvaluationWarning,
    Outcome,
    Verdict,
    Violation,
)
from rulegraph.models.policy_models import EffectivePolicy, PolicyClause
from rulegraph.models.rule_models import ConstraintKind, Severity

logger = logging.getLogger("rulegraph.evaluator")

KIND_ORDER: dict[ConstraintKind, int] = {
    ConstraintKind.DEFAULT: 0,
    ConstraintKind.PROHIBITION: 1,
    ConstraintKind.REQUIREMENT: 2,
    ConstraintKind.CHECK: 3,
    ConstraintKind.DISCLOSURE: 4,
    ConstraintKind.AUDIT_MARKER: 5,
}


def canonical_key(clause: PolicyClause) -> tuple:
    """Total order: severity desc, domain, rule id, kind, predicate, message."""
    c = clause.constraint
    return (
        -c.rank,
        c.domain,
        clause.rule_id,
        KIND_ORDER[c.kind],
        c.predicate.feature,
        repr(c.predicate.equals),
        c.message,
    )


def evaluate(policy: EffectivePolicy, context: ArtifactContext) -> Decision:
    """
    Evaluate every clause of the policy against the artifact features.

    Args:
        policy: Output of resolve().
        context: Artifact identifier and features.

    Returns:
        Decision with verdict, violations, audit trail and warnings.
    """
    ordered = sorted(policy.clauses, key=canonical_key)
    supplied: dict[str, Any] = {k: v for k, v in context.features.items() if v is not None}

    # --- Pass 1: defaults fill in features the caller left unset ---
    assumed: dict[str, Any] = {}
    applied_defaults: set[int] = set()
    for index, clause in enumerate(ordered):
        c = clause.constraint
        if c.kind != ConstraintKind.DEFAULT:
            continue
        feature = c.predicate.feature
        if feature in supplied or feature in assumed:
            continue
        assumed[feature] = c.predicate.equals
        applied_defaults.add(index)

    features = {**assumed, **supplied}

    # --- Pass 2: every clause, in canonical order ---
    violations: list[Violation] = []
    trail: list[AuditTrailEntry] = []
    warnings: list[EvaluationWarning] = []

    for index, clause in enumerate(ordered):
        c = clause.constraint
        result = c.predicate.evaluate(features)
        described = c.predicate.describe()
        outcome: Outcome
        detail = c.message or described

        if c.kind == ConstraintKind.DEFAULT:
            if index in applied_defaults:
                outcome = Outcome.ASSUMED
                detail = f"assumed {described}"
            else:
                outcome = Outcome.OVERRIDDEN
                detail = f"{c.predicate.feature} already set"

        elif c.kind == ConstraintKind.PROHIBITION:
            if result is True:
                outcome = Outcome.VIOLATED
                detail = _reason(c.message, f"prohibited state present: {described}")
                violations.append(_violation(clause, detail, c.severity))
            else:
                outcome = Outcome.SATISFIED

        elif c.kind == ConstraintKind.REQUIREMENT:
            if result is True:
                outcome = Outcome.SATISFIED
            else:
                outcome = Outcome.VIOLATED
                if result is None:
                    base = f"required feature '{c.predicate.feature}' not supplied"
                else:
                    base = (
                        f"requirement unmet: expected {described}, "
                        f"got {features[c.predicate.feature]!r}"
                    )
                detail = _reason(c.message, base)
                violations.append(_violation(clause, detail, c.severity))

        elif c.kind == ConstraintKind.CHECK:
            if result is None:
                # Never silently passes; always warn-level
                outcome = Outcome.UNVERIFIED
                detail = _reason(c.message, f"unverified: {c.predicate.feature} not supplied")
                violations.append(_violation(clause, detail, Severity.WARN))
                warnings.append(_warning(clause, detail))
            elif result is False:
                outcome = Outcome.VIOLATED
                detail = _reason(c.message, f"check failed: expected {described}")
                violations.append(_violation(clause, detail, c.severity))
            else:
                outcome = Outcome.VERIFIED

        elif c.kind == ConstraintKind.DISCLOSURE:
            if result is False:
                outcome = Outcome.NOT_APPLICABLE
            else:
                outcome = Outcome.DISCLOSED
                warnings.append(_warning(clause, detail))

        else:
            outcome = Outcome.MARKED

        trail.append(
            AuditTrailEntry(
                rule_id=clause.rule_id,
                domain=c.domain,
                kind=c.kind,
                outcome=outcome,
                detail=detail,
            )
        )

    # --- Pass 3: clauses dropped by conflict resolution can never be met ---
    for conflict in sorted(
        policy.conflicts, key=lambda r: (canonical_key(r.loser), canonical_key(r.winner))
    ):
        loser = conflict.loser
        detail = _reason(
            loser.constraint.message, f"unsatisfiable: contradicts {conflict.winner.rule_id}"
        )
        # A deny-overrides loss blocks even when both sides are below fatal
        if conflict.reason == DENY_OVERRIDES:
            severity = Severity.FATAL
        else:
            severity = conflict.winner.constraint.severity
        violations.append(_violation(loser, detail, severity))
        trail.append(
            AuditTrailEntry(
                rule_id=loser.rule_id,
                domain=loser.constraint.domain,
                kind=loser.constraint.kind,
                outcome=Outcome.UNSATISFIABLE,
                detail=detail,
            )
        )

    verdict = compute_verdict(violations)
    logger.debug(
        f"Evaluated '{context.identifier}': {verdict.value}, "
        f"{len(violations)} violations, {len(warnings)} warnings"
    )

    return Decision(
        identifier=context.identifier,
        verdict=verdict,
        violations=violations,
        audit_trail=trail,
        warnings=warnings,
        assumed_features=assumed,
    )


def compute_verdict(violations: list[Violation]) -> Verdict:
    """block if any fatal, allow-with-annotations if any violation, else allow."""
    if any(v.severity == Severity.FATAL for v in violations):
        return Verdict.BLOCK
    if violations:
        return Verdict.ALLOW_WITH_ANNOTATIONS
    return Verdict.ALLOW


def _reason(message: str, base: str) -> str:
    return f"{message} ({base})" if message else base


def _violation(clause: PolicyClause, reason: str, severity: Severity) -> Violation:
    return Violation(
        rule_id=clause.rule_id,
        constraint=clause.constraint,
        reason=reason,
        severity=severity,
    )


def _warning(clause: PolicyClause, message: str) -> EvaluationWarning:
    return EvaluationWarning(
        rule_id=clause.rule_id,
        domain=clause.constraint.domain,
        kind=clause.constraint.kind,
        message=message,
    )
