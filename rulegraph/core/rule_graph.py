"""
Rule Graph Builder — Per-domain delegation graph over rule documents.

Validation happens here, at build time, never during evaluation:
  1. duplicate rule ids
  2. dangling delegations (unknown target)
  3. duplicate delegation of one domain by one document
  4. delegation cycles (DFS per concern domain)
  5. unresolvable domains (terminal document owns nothing for the domain)

A successful build yields an immutable RuleGraph shared by all evaluations.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from rulegraph.errors import (
    DanglingDelegation,
    DelegationCycle,
    DuplicateDelegation,
    DuplicateRuleId,
    UnknownConcernDomain,
)
from rulegraph.models.rule_models import RuleDocument

logger = logging.getLogger("rulegraph.graph")


@dataclass(frozen=True)
class DelegationEdge:
    """source delegates `domain` to target."""

    source: str
    target: str
    domain: str


@dataclass(frozen=True)
class RuleGraph:
    """Immutable snapshot of a validated rule document set."""

    nodes: Mapping[str, RuleDocument]
    edges: tuple[DelegationEdge, ...] = ()
    fingerprint: str = ""
    domains: frozenset[str] = field(default_factory=frozenset)

    @property
    def documents(self) -> list[RuleDocument]:
        """Documents ordered by rule id."""
        return [self.nodes[rule_id] for rule_id in sorted(self.nodes)]

    def delegation_target(self, rule_id: str, domain: str) -> str | None:
        """Rule id that `rule_id` delegates `domain` to, or None."""
        document = self.nodes.get(rule_id)
        return document.delegation_for(domain) if document else None

    def delegation_chain(self, rule_id: str, domain: str) -> tuple[str, ...]:
        """
        Walk delegations of `domain` starting at `rule_id`.

        Returns the chain including both ends; the last element is the authority.
        Terminates because the graph was validated acyclic.
        """
        chain = [rule_id]
        current = rule_id
        while (target := self.delegation_target(current, domain)) is not None:
            chain.append(target)
            current = target
        return tuple(chain)

    def authority_for(self, rule_id: str, domain: str) -> str:
        return self.delegation_chain(rule_id, domain)[-1]

    def get_delegators(self, rule_id: str, domain: str | None = None) -> list[str]:
        """Rule ids delegating to `rule_id` (optionally for one domain)."""
        return [
            e.source
            for e in self.edges
            if e.target == rule_id and (domain is None or e.domain == domain)
        ]


def compute_fingerprint(documents: Iterable[RuleDocument]) -> str:
    """SHA-256 of the canonical JSON form of a document set."""
    canonical = [
        doc.model_dump(mode="json") for doc in sorted(documents, key=lambda d: d.id)
    ]
    payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_rule_graph(documents: Iterable[RuleDocument]) -> RuleGraph:
    """
    Build and validate the delegation graph.

    Args:
        documents: Loaded rule documents.

    Returns:
        Immutable RuleGraph.

    Raises:
        ConfigError subclass describing the first problem found.
    """
    docs = list(documents)

    # --- Phase 1: Nodes ---
    nodes: dict[str, RuleDocument] = {}
    for doc in docs:
        if doc.id in nodes:
            raise DuplicateRuleId(f"Duplicate rule id '{doc.id}'", rule_id=doc.id)
        nodes[doc.id] = doc

    ordered = [nodes[rule_id] for rule_id in sorted(nodes)]

    # --- Phase 2: Edges ---
    edges: list[DelegationEdge] = []
    for doc in ordered:
        for delegation in doc.delegates:
            if delegation.target not in nodes:
                raise DanglingDelegation(doc.id, delegation.domain, delegation.target)
            edges.append(DelegationEdge(doc.id, delegation.target, delegation.domain))

    for doc in ordered:
        targets_by_domain: dict[str, list[str]] = {}
        for delegation in doc.delegates:
            targets_by_domain.setdefault(delegation.domain, []).append(delegation.target)
        for domain, targets in targets_by_domain.items():
            if len(targets) > 1:
                raise DuplicateDelegation(doc.id, domain, targets)

    # --- Phase 3: Cycles, one pass per concern domain ---
    delegated_domains = sorted({e.domain for e in edges})
    for domain in delegated_domains:
        cycle = _find_cycle(nodes, domain)
        if cycle:
            raise DelegationCycle(domain, cycle)

    graph = RuleGraph(
        nodes=MappingProxyType(nodes),
        edges=tuple(edges),
        fingerprint=compute_fingerprint(ordered),
        domains=frozenset(
            {d for doc in ordered for d in doc.clauses} | set(delegated_domains)
        ),
    )

    # --- Phase 4: Every delegation must end at a real owner ---
    for edge in graph.edges:
        terminal = graph.authority_for(edge.target, edge.domain)
        if not nodes[terminal].clauses.get(edge.domain):
            raise UnknownConcernDomain(edge.source, edge.domain, terminal)

    for doc in ordered:
        shadowed = [d for d in doc.delegated_domains if doc.clauses.get(d)]
        for domain in shadowed:
            logger.warning(
                f"Rule '{doc.id}' owns clauses for delegated domain '{domain}'; "
                f"they are ignored in favour of the delegate"
            )

    logger.info(
        f"Rule graph built: {len(nodes)} documents, {len(edges)} delegations, "
        f"{len(graph.domains)} domains (fingerprint {graph.fingerprint[:12]})"
    )
    return graph


def _find_cycle(nodes: Mapping[str, RuleDocument], domain: str) -> list[str]:
    """DFS over the delegation edges of one domain. Returns the cycle or []."""
    done: set[str] = set()

    for start in sorted(nodes):
        if start in done:
            continue
        path: list[str] = []
        on_path: set[str] = set()
        current: str | None = start
        while current is not None and current not in done:
            if current in on_path:
                return path[path.index(current):] + [current]
            path.append(current)
            on_path.add(current)
            current = nodes[current].delegation_for(domain)
        done.update(path)

    return []
