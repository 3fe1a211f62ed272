"""
Effective Policy Data Models — Merged per-artifact policy with provenance.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, WrapSerializer

from rulegraph.models.rule_models import Constraint, freeze_mapping, thaw_mapping

AuthorityMap = Annotated[dict[str, str], AfterValidator(freeze_mapping), WrapSerializer(thaw_mapping)]
PathMap = Annotated[
    dict[str, tuple[str, ...]], AfterValidator(freeze_mapping), WrapSerializer(thaw_mapping)
]


class PolicyClause(BaseModel):
    """A constraint tagged with the rule id of its domain authority."""

    rule_id: str = Field(..., description="Authority that contributed this clause")
    constraint: Constraint

    model_config = {"frozen": True}


class ConflictResolution(BaseModel):
    """Two clauses from different authorities contradicting on one feature."""

    feature: str
    winner: PolicyClause
    loser: PolicyClause
    reason: str = Field(..., description="Why the winner prevailed")

    model_config = {"frozen": True}


class AuthorityAmbiguity(BaseModel):
    """Several candidates independently claim authority over the same domain."""

    domain: str
    chosen: str = Field(..., description="Authority selected by candidate order")
    ignored: tuple[str, ...] = Field(
        ..., description="Authorities reached from lower-ranked candidates"
    )

    model_config = {"frozen": True}


class EffectivePolicy(BaseModel):
    """Flattened, deduplicated, precedence-ordered clauses for one artifact."""

    identifier: str
    clauses: tuple[PolicyClause, ...] = ()
    candidates: tuple[str, ...] = Field(
        default=(), description="Applicable rule ids, highest precedence first"
    )
    authorities: AuthorityMap = Field(
        default_factory=dict, validate_default=True, description="domain -> authority rule id"
    )
    delegation_paths: PathMap = Field(
        default_factory=dict,
        validate_default=True,
        description="domain -> chain from owning candidate to authority",
    )
    conflicts: tuple[ConflictResolution, ...] = ()
    ambiguities: tuple[AuthorityAmbiguity, ...] = ()
    graph_fingerprint: str = ""

    model_config = {"frozen": True}

    def clauses_for(self, domain: str) -> list[PolicyClause]:
        return [c for c in self.clauses if c.constraint.domain == domain]
