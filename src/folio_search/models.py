"""
Records for the searchable corpus and ranked results.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

logger = logging.getLogger(__name__)

ItemType: TypeAlias = Literal["project", "experience"]


class CorpusLoadError(RuntimeError):
    """Raised when the embeddings artifact is unavailable, malformed or empty."""


def _coerce_vector(raw: Any) -> list[float]:
    if not isinstance(raw, (list, tuple)):
        return []
    vector: list[float] = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return []
        vector.append(float(value))
    return vector


@dataclass(frozen=True)
class EmbeddingItem:
    """A unit of searchable content with its precomputed embedding."""

    id: str
    type: ItemType | str
    text: str
    embedding: list[float]
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "EmbeddingItem":
        # Bad vectors become empty so the ranker scores them 0.
        meta = record.get("meta")
        return cls(
            id=str(record.get("id", "")),
            type=str(record.get("type", "")),
            text=str(record.get("text") or ""),
            embedding=_coerce_vector(record.get("embedding")),
            meta=dict(meta) if isinstance(meta, dict) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "embedding": list(self.embedding),
            "meta": dict(self.meta),
        }


@dataclass(frozen=True)
class RankedResult(EmbeddingItem):
    """An embedding item paired with its similarity to the query."""

    score: float = 0.0

    @classmethod
    def from_item(cls, item: EmbeddingItem, score: float) -> "RankedResult":
        return cls(
            id=item.id,
            type=item.type,
            text=item.text,
            embedding=item.embedding,
            meta=item.meta,
            score=score,
        )

    def to_dict(self, *, include_embedding: bool = False) -> dict[str, Any]:
        payload = super().to_dict()
        if not include_embedding:
            payload.pop("embedding")
        payload["score"] = self.score if math.isfinite(self.score) else 0.0
        return payload


def parse_corpus(payload: Any) -> list[EmbeddingItem]:
    """Turn a decoded embeddings artifact into items.

    The payload must be a JSON array. Entries that are not objects are
    skipped rather than failing the whole corpus.
    """
    if not isinstance(payload, list):
        raise CorpusLoadError("Embeddings file is not a valid array")

    items: list[EmbeddingItem] = []
    for index, record in enumerate(payload):
        if not isinstance(record, dict):
            logger.warning("Skipping corpus entry %d: expected an object", index)
            continue
        items.append(EmbeddingItem.from_dict(record))
    return items
