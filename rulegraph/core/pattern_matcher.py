"""
Pattern Matcher — Glob-style applicability patterns over artifact identifiers.

Semantics:
  *    matches within a single path segment
  **   matches across segments (zero or more whole segments)
  ?    matches one non-separator character
  everything else is literal

Specificity = literal characters − wildcard tokens. Used for ordering only.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

_TOKEN_RE = re.compile(r"\*\*|\*|\?")


def normalize_identifier(identifier: str) -> str:
    """Normalize a path-like identifier: forward slashes, no leading './'."""
    normalized = identifier.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into an anchored regular expression."""
    segments: list[str] = []
    for segment in normalize_identifier(pattern).split("/"):
        if segment == "**" and segments and segments[-1] == "**":
            continue
        segments.append(segment)

    parts: list[str] = []
    last = len(segments) - 1

    for index, segment in enumerate(segments):
        if segment == "**":
            if index == last:
                # Trailing '**' swallows the rest, including nothing at all
                parts.append(".*" if index == 0 else "(?:/.*)?")
                continue
            parts.append("(?:[^/]*/)*" if index == 0 else "/(?:[^/]*/)*")
            continue

        if index > 0 and segments[index - 1] != "**":
            parts.append("/")
        parts.append(_translate_segment(segment))

    return re.compile("".join(parts) + r"\Z")


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    pos = 0
    for match in _TOKEN_RE.finditer(segment):
        out.append(re.escape(segment[pos:match.start()]))
        out.append("[^/]" if match.group() == "?" else "[^/]*")
        pos = match.end()
    out.append(re.escape(segment[pos:]))
    return "".join(out)


def matches(pattern: str, identifier: str) -> bool:
    """Return True if the identifier matches the glob pattern exactly."""
    return compile_pattern(pattern).match(normalize_identifier(identifier)) is not None


def specificity(pattern: str) -> int:
    """
    Specificity score of a pattern.

    Examples:
        '**/*'        → 1 literal − 2 wildcards = -1
        '**/*.ts'     → 4 literals − 2 wildcards = 2
        'src/api.py'  → 10 literals − 0 wildcards = 10
    """
    normalized = normalize_identifier(pattern)
    wildcards = len(_TOKEN_RE.findall(normalized))
    literals = len(_TOKEN_RE.sub("", normalized))
    return literals - wildcards


def best_specificity(patterns: Iterable[str], identifier: str) -> int | None:
    """Highest specificity among the patterns matching the identifier, or None."""
    scores = [specificity(p) for p in patterns if matches(p, identifier)]
    return max(scores) if scores else None
