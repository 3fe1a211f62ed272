"""
Document Loader — Validates raw (already parsed) records into RuleDocuments.

Reading files or fetching documents is the caller's job; this only turns
mappings into validated, immutable models.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from rulegraph.errors import InvalidRuleDocument
from rulegraph.models.rule_models import RuleDocument


def load_document(raw: Mapping[str, Any] | RuleDocument) -> RuleDocument:
    """Validate a single raw document."""
    if isinstance(raw, RuleDocument):
        return raw
    try:
        return RuleDocument.model_validate(dict(raw))
    except ValidationError as e:
        rule_id = raw.get("id") if isinstance(raw, Mapping) else None
        raise InvalidRuleDocument(
            f"Invalid rule document '{rule_id or '<unnamed>'}': "
            f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}",
            rule_id=rule_id,
        ) from e


def load_documents(
    raw: Iterable[Mapping[str, Any] | RuleDocument] | Mapping[str, Mapping[str, Any]],
) -> list[RuleDocument]:
    """
    Validate a document set.

    Accepts either a list of documents or a mapping of rule id -> document;
    with a mapping, the key supplies a missing 'id'.
    """
    if isinstance(raw, Mapping):
        items = []
        for rule_id, body in raw.items():
            if isinstance(body, RuleDocument):
                items.append(body)
            else:
                items.append({"id": rule_id, **body})
        return [load_document(item) for item in items]

    return [load_document(item) for item in raw]
