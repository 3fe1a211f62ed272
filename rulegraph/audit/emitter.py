"""
Audit Trail Emitter — Renders a Decision into a structured AuditRecord.

Entries mirror decision.audit_trail, followed by one row per violation.
"""

from __future__ import annotations

from rulegraph.models.audit_models import AuditRecord, AuditRecordEntry
from rulegraph.models.decision_models import Decision


def render(decision: Decision) -> AuditRecord:
    """Build the machine-readable audit record for a decision."""
    entries: list[AuditRecordEntry] = [
        AuditRecordEntry(
            rule_id=e.rule_id,
            domain=e.domain,
            clause_kind=e.kind.value,
            outcome=e.outcome.value,
            reason=e.detail,
        )
        for e in decision.audit_trail
    ]
    entries.extend(
        AuditRecordEntry(
            rule_id=v.rule_id,
            domain=v.constraint.domain,
            clause_kind=v.constraint.kind.value,
            outcome="violation",
            severity=v.severity.value,
            reason=v.reason,
        )
        for v in decision.violations
    )

    return AuditRecord(
        identifier=decision.identifier,
        verdict=decision.verdict.value,
        entries=entries,
        violation_count=len(decision.violations),
        warning_count=len(decision.warnings),
        summary=_summarize(decision),
    )


def _summarize(decision: Decision) -> str:
    counts: dict[str, int] = {}
    for v in decision.violations:
        counts[v.severity.value] = counts.get(v.severity.value, 0) + 1

    parts = [f"{counts[s]} {s}" for s in ("fatal", "warn", "info") if counts.get(s)]
    breakdown = f" ({', '.join(parts)})" if parts else ""
    authorities = sorted({e.rule_id for e in decision.audit_trail})

    return (
        f"{decision.identifier}: {decision.verdict.value} with "
        f"{len(decision.violations)} violations{breakdown}, "
        f"{len(decision.warnings)} warnings; authorities: "
        f"{', '.join(authorities) if authorities else 'none'}"
    )
