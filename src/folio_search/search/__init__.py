"""Search helpers for the embeddings corpus."""

from .highlight import HighlightSegment, build_query_tokens, highlight_text
from .ranker import DEFAULT_TOP_K, NO_SCORE_FLOOR, rank_results
from .semantic import SearchOutcome, SemanticSearchService

__all__ = [
    "HighlightSegment",
    "build_query_tokens",
    "highlight_text",
    "DEFAULT_TOP_K",
    "NO_SCORE_FLOOR",
    "rank_results",
    "SearchOutcome",
    "SemanticSearchService",
]
