"""
Evaluation Data Models — Artifact context in, decision out.

ArtifactContext and Decision are created per evaluation request and hold no
cross-request state.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from rulegraph.core.pattern_matcher import normalize_identifier
from rulegraph.models.rule_models import (
    Constraint,
    ConstraintKind,
    FeatureValue,
    Severity,
)


class Verdict(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"
    ALLOW_WITH_ANNOTATIONS = "allow-with-annotations"


class Outcome(str, Enum):
    """Per-clause evaluation outcome recorded in the audit trail."""

    SATISFIED = "satisfied"
    VIOLATED = "violated"
    ASSUMED = "assumed"
    OVERRIDDEN = "overridden"
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    DISCLOSED = "disclosed"
    NOT_APPLICABLE = "not-applicable"
    MARKED = "marked"
    UNSATISFIABLE = "unsatisfiable"


class ArtifactContext(BaseModel):
    """The evaluation target. Features are supplied by the caller."""

    identifier: str = Field(..., min_length=1, description="Path-like artifact identifier")
    features: dict[str, FeatureValue | None] = Field(
        default_factory=dict, description="None is treated the same as an unset feature"
    )

    @field_validator("identifier")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_identifier(value)


class Violation(BaseModel):
    """A clause the artifact failed, with the effective severity."""

    rule_id: str
    constraint: Constraint
    reason: str
    severity: Severity = Field(
        ..., description="Effective severity; unverified checks are always 'warn'"
    )


class AuditTrailEntry(BaseModel):
    """Provenance entry explaining the verdict."""

    rule_id: str
    domain: str
    kind: ConstraintKind
    outcome: Outcome
    detail: str = ""


class EvaluationWarning(BaseModel):
    """Non-fatal runtime notice: unverified checks and disclosures."""

    rule_id: str
    domain: str
    kind: ConstraintKind
    message: str


class Decision(BaseModel):
    """Evaluator output."""

    identifier: str
    verdict: Verdict
    violations: list[Violation] = Field(default_factory=list)
    audit_trail: list[AuditTrailEntry] = Field(default_factory=list)
    warnings: list[EvaluationWarning] = Field(default_factory=list)
    assumed_features: dict[str, FeatureValue] = Field(
        default_factory=dict, description="Values supplied by 'default' clauses"
    )

    @property
    def blocked(self) -> bool:
        return self.verdict == Verdict.BLOCK
