"""
Audit Logger — Structured JSON-lines audit trail.

Appends one AuditRecord per evaluation, stamped with a UTC timestamp and the
graph fingerprint the decision was made against. Records are queried back by
snapshot, verdict or identifier so a decision can be traced to the exact
document set that produced it.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Iterator

from rulegraph.config import settings
from rulegraph.core.pattern_matcher import normalize_identifier
from rulegraph.models.audit_models import AuditRecord
from rulegraph.models.decision_models import Verdict

logger = logging.getLogger("rulegraph.audit")


class AuditLogger:
    """Writes audit records to a JSON-lines file."""

    def __init__(self, log_path: str | Path | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)

    def log(self, record: AuditRecord, graph_fingerprint: str = "") -> None:
        """Append an audit record, tagged with the snapshot it was evaluated against."""
        entry = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "graph_fingerprint": graph_fingerprint,
            **record.model_dump(mode="json"),
        }

        if record.verdict == Verdict.BLOCK.value:
            logger.info(f"Blocked: {record.summary}")

        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")

    def query(
        self,
        *,
        verdict: Verdict | str | None = None,
        graph_fingerprint: str | None = None,
        identifier: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """
        Most recent audit entries matching every given filter, oldest first.

        Args:
            verdict: Only entries with this verdict.
            graph_fingerprint: Only entries evaluated against this snapshot.
            identifier: Only entries for this artifact (normalized before comparing).
            limit: Maximum number of entries returned.
        """
        wanted_verdict = Verdict(verdict).value if verdict is not None else None
        wanted_identifier = normalize_identifier(identifier) if identifier is not None else None

        matched = [
            entry
            for entry in self._iter_entries()
            if (wanted_verdict is None or entry.get("verdict") == wanted_verdict)
            and (graph_fingerprint is None or entry.get("graph_fingerprint") == graph_fingerprint)
            and (wanted_identifier is None or entry.get("identifier") == wanted_identifier)
        ]
        return matched[-limit:] if limit > 0 else []

    def _iter_entries(self) -> Iterator[dict[str, Any]]:
        if not self.log_path.exists():
            return
        try:
            with open(self.log_path, encoding="utf-8") as f:
                for line_no, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping malformed audit entry at line {line_no}")
        except OSError as e:
            logger.error(f"Failed to read audit log: {e}")
