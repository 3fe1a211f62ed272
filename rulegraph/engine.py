"""
Policy Engine — Owns the current graph snapshot and runs the full pipeline.

Pipeline per evaluation:
1. Read the current snapshot reference once
2. Resolve the effective policy (cached per snapshot)
3. Evaluate it against the artifact features
4. Render the audit record, optionally append it to the audit log

Reloading builds a new graph and swaps the reference atomically; evaluations
in flight finish against the snapshot they started with.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Mapping

from pydantic import BaseModel

from rulegraph.audit.emitter import render
from rulegraph.audit.logger import AuditLogger
from rulegraph.cache.policy_cache import PolicyCache
from rulegraph.config import settings
from rulegraph.core.constraint_merger import resolve
from rulegraph.core.loader import load_documents
from rulegraph.core.policy_evaluator import evaluate
from rulegraph.core.rule_graph import RuleGraph, build_rule_graph
from rulegraph.errors import ConfigError, GraphUnavailable
from rulegraph.models.audit_models import AuditRecord
from rulegraph.models.decision_models import (
    ArtifactContext,
    AuditTrailEntry,
    Decision,
    Outcome,
    Verdict,
    Violation,
)
from rulegraph.models.policy_models import EffectivePolicy
from rulegraph.models.rule_models import (
    Constraint,
    ConstraintKind,
    Predicate,
    RuleDocument,
    Severity,
)

logger = logging.getLogger("rulegraph.engine")

GRAPH_INVALID_RULE_ID = "graph-invalid"

DocumentSet = Iterable[Mapping[str, Any] | RuleDocument] | Mapping[str, Mapping[str, Any]]


class EvaluationResult(BaseModel):
    """Everything produced for one evaluation request."""

    policy: EffectivePolicy | None = None
    decision: Decision
    record: AuditRecord


class PolicyEngine:
    """
    Thread-safe facade over build → resolve → evaluate → render.

    Usage:
        engine = PolicyEngine(documents)
        result = engine.evaluate(ArtifactContext(identifier="app/page.ts", features={...}))
        if result.decision.blocked: ...
    """

    def __init__(
        self,
        documents: DocumentSet | None = None,
        *,
        audit_logger: AuditLogger | None = None,
        cache: PolicyCache | None = None,
        degraded_mode: bool | None = None,
    ) -> None:
        if audit_logger is None and settings.audit_log_enabled:
            audit_logger = AuditLogger()
        if cache is None and settings.policy_cache_enabled:
            cache = PolicyCache()

        self.audit_logger = audit_logger
        self.cache = cache
        self.degraded_mode = settings.degraded_mode if degraded_mode is None else degraded_mode

        self._swap_lock = threading.Lock()
        self._graph: RuleGraph | None = None
        self._build_error: ConfigError | None = None

        if documents is not None:
            self.load(documents)

    # ── Snapshot management ──

    def load(self, documents: DocumentSet) -> RuleGraph | None:
        """
        Validate and build a new graph, then swap it in.

        Raises the ConfigError unless this is the first load in degraded mode;
        a failed reload always leaves the previous snapshot in place.
        """
        try:
            graph = build_rule_graph(load_documents(documents))
        except ConfigError as e:
            with self._swap_lock:
                if self._graph is None and self.degraded_mode:
                    self._build_error = e
                    logger.error(f"Rule graph invalid, running degraded: {e}")
                    return None
            logger.error(f"Rule graph build failed: {e}")
            raise

        with self._swap_lock:
            previous = self._graph
            self._graph = graph
            self._build_error = None

        if previous is not None and self.cache is not None:
            dropped = self.cache.invalidate(previous.fingerprint)
            logger.info(f"Graph snapshot swapped; dropped {dropped} cached policies")
        return graph

    @property
    def snapshot(self) -> RuleGraph:
        """The current graph snapshot."""
        graph = self._graph
        if graph is None:
            if self._build_error is not None:
                raise GraphUnavailable(f"Rule graph invalid: {self._build_error}")
            raise GraphUnavailable("No rule documents loaded")
        return graph

    @property
    def is_degraded(self) -> bool:
        return self._graph is None and self._build_error is not None

    # ── Evaluation ──

    def resolve(self, identifier: str, graph: RuleGraph | None = None) -> EffectivePolicy:
        """Effective policy for an identifier against one snapshot."""
        graph = graph or self.snapshot
        if self.cache is not None:
            cached = self.cache.get(graph.fingerprint, identifier)
            if cached is not None:
                return cached

        policy = resolve(graph, identifier)
        if self.cache is not None:
            self.cache.put(graph.fingerprint, identifier, policy)
        return policy

    def evaluate(self, context: ArtifactContext) -> EvaluationResult:
        """Run the full pipeline for one artifact. Never raises in degraded mode."""
        if self.is_degraded:
            decision = self._degraded_decision(context)
            result = EvaluationResult(decision=decision, record=render(decision))
            self._log(result.record, "")
            return result

        graph = self.snapshot
        policy = self.resolve(context.identifier, graph)
        decision = evaluate(policy, context)
        record = render(decision)

        self._log(record, graph.fingerprint)
        return EvaluationResult(policy=policy, decision=decision, record=record)

    def audit_history(
        self,
        identifier: str | None = None,
        verdict: Verdict | str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Logged decisions made against the current snapshot."""
        if self.audit_logger is None:
            return []
        fingerprint = self._graph.fingerprint if self._graph is not None else ""
        return self.audit_logger.query(
            verdict=verdict, graph_fingerprint=fingerprint, identifier=identifier, limit=limit
        )

    def _log(self, record: AuditRecord, fingerprint: str) -> None:
        if self.audit_logger is not None:
            self.audit_logger.log(record, graph_fingerprint=fingerprint)

    def _degraded_decision(self, context: ArtifactContext) -> Decision:
        """Block everything while the document set is invalid."""
        reason = f"rule graph invalid: {self._build_error}"
        constraint = Constraint(
            kind=ConstraintKind.REQUIREMENT,
            domain=GRAPH_INVALID_RULE_ID,
            predicate=Predicate(feature="ruleGraphValid"),
            severity=Severity.FATAL,
            message="Rule documents must build before any artifact is allowed",
        )
        return Decision(
            identifier=context.identifier,
            verdict=Verdict.BLOCK,
            violations=[
                Violation(
                    rule_id=GRAPH_INVALID_RULE_ID,
                    constraint=constraint,
                    reason=reason,
                    severity=Severity.FATAL,
                )
            ],
            audit_trail=[
                AuditTrailEntry(
                    rule_id=GRAPH_INVALID_RULE_ID,
                    domain=GRAPH_INVALID_RULE_ID,
                    kind=ConstraintKind.REQUIREMENT,
                    outcome=Outcome.VIOLATED,
                    detail=reason,
                )
            ],
        )
