"""
Tests for Audit Trail Emitter and Audit Logger.
"""

import json

from rulegraph.audit.emitter import render
from rulegraph.audit.logger import AuditLogger
from rulegraph.core.constraint_merger import resolve
from rulegraph.core.policy_evaluator import evaluate
from rulegraph.models.decision_models import ArtifactContext, Decision, Verdict


def _example_decision(graph):
    return evaluate(
        resolve(graph, "app/page.ts"),
        ArtifactContext(
            identifier="app/page.ts",
            features={"usesRawEval": True, "secretInClientBundle": False},
        ),
    )


def test_render_mirrors_trail_then_violations(example_graph):
    record = render(_example_decision(example_graph))

    assert record.identifier == "app/page.ts"
    assert record.verdict == "block"
    assert record.violation_count == 1
    assert len(record.entries) == 3

    rows = [(e.rule_id, e.domain, e.clause_kind, e.outcome) for e in record.entries]
    assert rows == [
        ("always-apply-baseline", "input-validation", "prohibition", "violated"),
        ("web-specific", "secrets", "prohibition", "satisfied"),
        ("always-apply-baseline", "input-validation", "prohibition", "violation"),
    ]
    assert record.entries[-1].severity == "fatal"


def test_render_summary(example_graph):
    summary = render(_example_decision(example_graph)).summary
    assert summary.startswith("app/page.ts: block")
    assert "1 fatal" in summary
    assert "always-apply-baseline" in summary


def test_render_empty_decision():
    record = render(Decision(identifier="x", verdict=Verdict.ALLOW))
    assert record.entries == []
    assert record.violation_count == 0
    assert "authorities: none" in record.summary


def test_record_is_json_serializable(example_graph):
    payload = json.loads(render(_example_decision(example_graph)).model_dump_json())
    assert payload["verdict"] == "block"
    assert payload["entries"][0]["clause_kind"] == "prohibition"


def test_audit_logger_appends_and_queries(tmp_path, example_graph):
    audit_logger = AuditLogger(tmp_path / "audit.jsonl")
    record = render(_example_decision(example_graph))

    audit_logger.log(record, graph_fingerprint=example_graph.fingerprint)
    audit_logger.log(record.model_copy(update={"identifier": "second.ts", "verdict": "allow"}))

    entries = audit_logger.query()
    assert len(entries) == 2
    assert entries[0]["graph_fingerprint"] == example_graph.fingerprint
    assert entries[0]["verdict"] == "block"
    assert "timestamp" in entries[0]
    assert audit_logger.query(limit=1)[0]["identifier"] == "second.ts"


def test_audit_query_filters(tmp_path, example_graph):
    audit_logger = AuditLogger(tmp_path / "audit.jsonl")
    record = render(_example_decision(example_graph))
    audit_logger.log(record, graph_fingerprint="old")
    audit_logger.log(record, graph_fingerprint="new")
    audit_logger.log(record.model_copy(update={"verdict": "allow"}), graph_fingerprint="new")

    assert len(audit_logger.query(graph_fingerprint="new")) == 2
    assert len(audit_logger.query(graph_fingerprint="new", verdict=Verdict.BLOCK)) == 1
    assert len(audit_logger.query(verdict="block")) == 2
    assert len(audit_logger.query(identifier="./app/page.ts")) == 3
    assert audit_logger.query(identifier="other.ts") == []


def test_blocked_decisions_logged_at_info(tmp_path, caplog, example_graph):
    audit_logger = AuditLogger(tmp_path / "audit.jsonl")
    with caplog.at_level("INFO", logger="rulegraph.audit"):
        audit_logger.log(render(_example_decision(example_graph)))
    assert any(r.getMessage().startswith("Blocked: app/page.ts") for r in caplog.records)


def test_audit_logger_skips_malformed_lines(tmp_path, caplog):
    path = tmp_path / "audit.jsonl"
    path.write_text('{"verdict": "allow"}\nnot json\n\n')
    with caplog.at_level("WARNING", logger="rulegraph.audit"):
        assert AuditLogger(path).query() == [{"verdict": "allow"}]
    assert any("line 2" in r.getMessage() for r in caplog.records)


def test_audit_logger_missing_file(tmp_path):
    assert AuditLogger(tmp_path / "missing.jsonl").query() == []


def test_audit_logger_write_failure_is_logged(tmp_path, caplog, example_graph):
    audit_logger = AuditLogger(tmp_path / "no-such-dir" / "audit.jsonl")
    with caplog.at_level("ERROR", logger="rulegraph.audit"):
        audit_logger.log(render(_example_decision(example_graph)))
    assert any("Failed to write audit log" in r.getMessage() for r in caplog.records)
