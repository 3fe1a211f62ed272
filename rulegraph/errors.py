"""
Error taxonomy.

Build-time problems raise ConfigError subclasses and abort graph construction.
Evaluation never raises; violations and warnings are returned as data.
"""

from __future__ import annotations


class RuleGraphError(Exception):
    """Base class for all rulegraph errors."""


class ConfigError(RuleGraphError):
    """The rule document set is invalid. Requires authorship correction."""

    def __init__(
        self, message: str, rule_id: str | None = None, domain: str | None = None
    ) -> None:
        super().__init__(message)
        self.rule_id = rule_id
        self.domain = domain


class InvalidRuleDocument(ConfigError):
    """A raw document failed schema validation."""


class DuplicateRuleId(ConfigError):
    """Two documents share the same id."""


class DanglingDelegation(ConfigError):
    """A delegation references an unknown rule id."""

    def __init__(self, rule_id: str, domain: str, target: str) -> None:
        super().__init__(
            f"Rule '{rule_id}' delegates domain '{domain}' to unknown rule '{target}'",
            rule_id=rule_id,
            domain=domain,
        )
        self.target = target


class DuplicateDelegation(ConfigError):
    """A document delegates the same domain more than once."""

    def __init__(self, rule_id: str, domain: str, targets: list[str]) -> None:
        super().__init__(
            f"Rule '{rule_id}' delegates domain '{domain}' more than once "
            f"(targets: {', '.join(targets)})",
            rule_id=rule_id,
            domain=domain,
        )
        self.targets = targets


class DelegationCycle(ConfigError):
    """Delegation of one domain loops back on itself."""

    def __init__(self, domain: str, cycle: list[str]) -> None:
        super().__init__(
            f"Delegation cycle in domain '{domain}': {' -> '.join(cycle)}",
            rule_id=cycle[0] if cycle else None,
            domain=domain,
        )
        self.cycle = cycle


class UnknownConcernDomain(ConfigError):
    """A delegation chain ends at a document that does not own the domain."""

    def __init__(self, rule_id: str, domain: str, terminal: str) -> None:
        super().__init__(
            f"Rule '{rule_id}' delegates domain '{domain}', but terminal rule "
            f"'{terminal}' owns no clauses for it",
            rule_id=rule_id,
            domain=domain,
        )
        self.terminal = terminal


class GraphUnavailable(RuleGraphError):
    """No successfully built graph is available for evaluation."""
