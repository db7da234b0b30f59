"""
FolioSearch - semantic search over portfolio content.

This package embeds free-text queries with a local sentence-embedding model
and ranks a precomputed corpus of embedding records by cosine similarity.

Example usage:
    >>> from folio_search import CorpusLoader, SemanticEmbedder, SemanticSearchService
    >>> service = SemanticSearchService(
    ...     CorpusLoader("http://127.0.0.1:8000/semantic/embeddings.json"),
    ...     SemanticEmbedder(),
    ... )
    >>> outcome = await service.search("distributed systems")
"""

from .config import SearchSettings
from .corpus import CorpusLoader
from .embeddings import (
    CacheUnavailableError,
    EmbedderState,
    EmbeddingBackend,
    EmbeddingFailed,
    ModelLoadFailed,
    SemanticEmbedder,
    SentenceTransformerBackend,
)
from .models import CorpusLoadError, EmbeddingItem, RankedResult, parse_corpus
from .search import SearchOutcome, SemanticSearchService, rank_results
from .similarity import cosine_similarity

__all__ = [
    # Config
    "SearchSettings",
    # Corpus
    "CorpusLoader",
    "CorpusLoadError",
    "EmbeddingItem",
    "RankedResult",
    "parse_corpus",
    # Embeddings
    "CacheUnavailableError",
    "EmbedderState",
    "EmbeddingBackend",
    "EmbeddingFailed",
    "ModelLoadFailed",
    "SemanticEmbedder",
    "SentenceTransformerBackend",
    # Search
    "SearchOutcome",
    "SemanticSearchService",
    "rank_results",
    "cosine_similarity",
]
