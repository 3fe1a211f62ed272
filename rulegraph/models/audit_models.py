"""
Audit Record Data Models — Machine-readable rendering of a decision.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class AuditRecordEntry(BaseModel):
    """One (ruleId, domain, clauseKind, outcome) row."""

    rule_id: str
    domain: str
    clause_kind: str
    outcome: str
    severity: str | None = None
    reason: str = ""


class AuditRecord(BaseModel):
    """Structured audit record for compliance logging or display."""

    identifier: str
    verdict: str
    entries: list[AuditRecordEntry] = Field(default_factory=list)
    violation_count: int = 0
    warning_count: int = 0
    summary: str = Field(default="", description="Human-readable one-line summary")
