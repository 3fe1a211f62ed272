"""
Rule Document Data Models — Documents, delegations, constraints, predicates.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Mapping, Union

from pydantic import AfterValidator, BaseModel, Field, WrapSerializer, model_validator

from rulegraph.core.pattern_matcher import specificity

FeatureValue = Union[bool, int, float, str]


def freeze_mapping(value: Mapping) -> Mapping:
    """Read-only view over a private copy; frozen models only block reassignment."""
    return MappingProxyType(dict(value))


def thaw_mapping(value: Mapping, handler: Any) -> Any:
    return handler(dict(value))


class Severity(str, Enum):
    FATAL = "fatal"
    WARN = "warn"
    INFO = "info"


SEVERITY_RANK: dict[Severity, int] = {
    Severity.FATAL: 3,
    Severity.WARN: 2,
    Severity.INFO: 1,
}


class ConstraintKind(str, Enum):
    """Reasoning layer a clause belongs to."""

    PROHIBITION = "prohibition"
    REQUIREMENT = "requirement"
    DEFAULT = "default"
    CHECK = "check"
    DISCLOSURE = "disclosure"
    AUDIT_MARKER = "audit-marker"


class Predicate(BaseModel):
    """An abstract condition over one caller-supplied artifact feature."""

    feature: str = Field(..., min_length=1, description="Feature name, e.g. 'usesRawEval'")
    equals: FeatureValue = Field(
        default=True, description="Value the feature must have for the predicate to hold"
    )

    model_config = {"frozen": True}

    def evaluate(self, features: Mapping[str, Any]) -> bool | None:
        """True/False when the feature is known, None when it is absent or None."""
        value = features.get(self.feature)
        if value is None:
            return None
        return value == self.equals

    def describe(self) -> str:
        return f"{self.feature}={self.equals!r}"


class Constraint(BaseModel):
    """One atomic rule clause."""

    kind: ConstraintKind
    domain: str = Field(..., min_length=1, description="Concern domain tag")
    predicate: Predicate
    severity: Severity = Severity.WARN
    message: str = Field(default="", description="Optional human-readable clause text")

    model_config = {"frozen": True}

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self.severity]


DomainClauses = Annotated[
    dict[str, tuple[Constraint, ...]],
    AfterValidator(freeze_mapping),
    WrapSerializer(thaw_mapping),
]


class Delegation(BaseModel):
    """Defers one concern domain to another rule document."""

    domain: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1, description="Rule id that owns the domain")

    model_config = {"frozen": True}


class RuleDocument(BaseModel):
    """One named policy unit."""

    id: str = Field(..., min_length=1)
    applicability: tuple[str, ...] = Field(
        default=(),
        description="Glob patterns; empty means the document only exists to be delegated to",
    )
    always_apply: bool = Field(default=False, alias="alwaysApply")
    delegates: tuple[Delegation, ...] = Field(default=())
    clauses: DomainClauses = Field(default_factory=dict, validate_default=True)

    model_config = {"frozen": True, "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _inherit_clause_domains(cls, data: Any) -> Any:
        # Clauses listed under a domain key may omit their own domain
        if not isinstance(data, dict) or not isinstance(data.get("clauses"), Mapping):
            return data
        clauses: dict[str, list[Any]] = {}
        for domain, items in data["clauses"].items():
            clauses[domain] = [
                {"domain": domain, **item}
                if isinstance(item, Mapping) and "domain" not in item
                else item
                for item in items
            ]
        return {**data, "clauses": clauses}

    @model_validator(mode="after")
    def _check_clause_domains(self) -> "RuleDocument":
        for domain, constraints in self.clauses.items():
            for constraint in constraints:
                if constraint.domain != domain:
                    raise ValueError(
                        f"clause domain '{constraint.domain}' listed under domain '{domain}'"
                    )
        return self

    @property
    def specificities(self) -> tuple[int, ...]:
        """Specificity score per applicability pattern, in pattern order."""
        return tuple(specificity(p) for p in self.applicability)

    @property
    def delegated_domains(self) -> list[str]:
        return [d.domain for d in self.delegates]

    def delegation_for(self, domain: str) -> str | None:
        """Target rule id this document delegates the domain to, if any."""
        for delegation in self.delegates:
            if delegation.domain == domain:
                return delegation.target
        return None
