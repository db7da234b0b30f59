"""
Semantic search service.

Embeds a query and ranks the cached corpus by cosine similarity. The service
owns both long-lived resources (the corpus cache and the embedding model) and
tags every query with a sequence number so callers can drop stale results.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable

import httpx

from ..config import SearchSettings
from ..corpus import CorpusLoader
from ..embeddings import EmbedderState, SemanticEmbedder
from ..models import RankedResult
from .highlight import build_query_tokens
from .ranker import DEFAULT_TOP_K, NO_SCORE_FLOOR, rank_results


@dataclass(frozen=True)
class SearchOutcome:
    """Ranked results for one issued query."""

    query: str
    sequence: int
    results: list[RankedResult] = field(default_factory=list)
    tokens: list[str] = field(default_factory=list)


async def _gather_or_raise(*aws: Awaitable[Any]) -> list[Any]:
    # Let every operation settle, then report the first failure in order.
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


class SemanticSearchService:
    """Answer free-text queries against a precomputed embeddings corpus."""

    def __init__(
        self,
        corpus: CorpusLoader,
        embedder: SemanticEmbedder,
        *,
        top_k: int = DEFAULT_TOP_K,
        min_score: float = NO_SCORE_FLOOR,
    ) -> None:
        self.corpus = corpus
        self.embedder = embedder
        self.top_k = top_k
        self.min_score = min_score
        self.latest: SearchOutcome | None = None
        self._sequence = 0
        self._in_flight = 0

    @classmethod
    def from_settings(
        cls,
        settings: SearchSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> "SemanticSearchService":
        return cls(
            CorpusLoader(settings.embeddings_url, client=client),
            SemanticEmbedder(settings.model_id, cache_dir=settings.cache_dir),
            top_k=settings.top_k,
        )

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def status(self) -> str:
        if self._in_flight:
            return "SEARCHING"
        if self.corpus.is_loading:
            return "LOADING_INDEX"
        if self.embedder.state is EmbedderState.LOADING:
            return "LOADING_MODEL"
        return "READY"

    async def warmup(self) -> None:
        """Load the corpus and the model ahead of the first query."""
        await _gather_or_raise(self.corpus.load(), self.embedder.warmup())

    async def search(
        self,
        query: str,
        *,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> SearchOutcome:
        self._sequence += 1
        sequence = self._sequence
        normalized = query.strip()
        if not normalized:
            return self._publish(SearchOutcome(query=normalized, sequence=sequence))

        self._in_flight += 1
        try:
            items, query_vector = await _gather_or_raise(
                self.corpus.load(),
                self.embedder.embed(normalized),
            )
        finally:
            self._in_flight -= 1

        results = rank_results(
            query_vector,
            items,
            top_k=self.top_k if top_k is None else top_k,
            min_score=self.min_score if min_score is None else min_score,
        )
        return self._publish(
            SearchOutcome(
                query=normalized,
                sequence=sequence,
                results=results,
                tokens=build_query_tokens(normalized),
            )
        )

    def is_current(self, outcome: SearchOutcome) -> bool:
        """True when no newer query was issued after ``outcome``'s."""
        return outcome.sequence == self._sequence

    async def close(self) -> None:
        await self.embedder.close()

    def _publish(self, outcome: SearchOutcome) -> SearchOutcome:
        if self.is_current(outcome):
            self.latest = outcome
        return outcome
