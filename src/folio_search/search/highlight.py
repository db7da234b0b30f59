"""
Keyword highlighting layered on top of semantic results.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

MIN_TOKEN_LENGTH = 2


@dataclass(frozen=True)
class HighlightSegment:
    """A run of text, flagged when it matches a query token."""

    text: str
    matched: bool

    def to_dict(self) -> dict[str, str | bool]:
        return {"text": self.text, "matched": self.matched}


def build_query_tokens(query: str) -> list[str]:
    """Split a query on whitespace, dropping tokens too short to highlight."""
    return [token for token in query.split() if len(token) >= MIN_TOKEN_LENGTH]


def highlight_text(value: str, tokens: list[str]) -> list[HighlightSegment]:
    """Split ``value`` into matched and unmatched segments (case-insensitive)."""
    if not value:
        return []
    if not tokens:
        return [HighlightSegment(text=value, matched=False)]

    # Longest first so overlapping tokens prefer the fuller match.
    ordered = sorted(set(tokens), key=len, reverse=True)
    pattern = re.compile("(" + "|".join(re.escape(token) for token in ordered) + ")", re.IGNORECASE)
    lowered = {token.lower() for token in tokens}

    segments: list[HighlightSegment] = []
    for part in pattern.split(value):
        if not part:
            continue
        segments.append(HighlightSegment(text=part, matched=part.lower() in lowered))
    return segments
