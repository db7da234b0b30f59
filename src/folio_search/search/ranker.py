"""
Ranking helpers for semantic search results.
"""

from __future__ import annotations

import math
from typing import Sequence

from ..models import EmbeddingItem, RankedResult
from ..similarity import cosine_similarity

DEFAULT_TOP_K = 8
# Below the smallest possible cosine value, so nothing is filtered out.
NO_SCORE_FLOOR = -1.0


def rank_results(
    query_vector: Sequence[float],
    items: Sequence[EmbeddingItem],
    *,
    top_k: int = DEFAULT_TOP_K,
    min_score: float = NO_SCORE_FLOOR,
) -> list[RankedResult]:
    """Score corpus items against a query vector and keep the best ``top_k``.

    Items whose score is not finite or falls below ``min_score`` are dropped.
    Ties keep their corpus order. ``items`` is left untouched.
    """
    if top_k <= 0:
        return []

    scored: list[RankedResult] = []
    for item in items:
        score = cosine_similarity(query_vector, item.embedding)
        if not math.isfinite(score) or score < min_score:
            continue
        scored.append(RankedResult.from_item(item, score))

    # sorted() is stable, so equal scores preserve corpus order.
    ordered = sorted(scored, key=lambda result: result.score, reverse=True)
    return ordered[:top_k]
