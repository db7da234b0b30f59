"""
Configuration helpers for the search service.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_MODEL_ID = "sentence-transformers/all-MiniLM-L6-v2"
ENV_MODEL_ID = "FOLIO_SEARCH_MODEL_ID"

DEFAULT_EMBEDDINGS_URL = "http://127.0.0.1:8000/semantic/embeddings.json"
ENV_EMBEDDINGS_URL = "FOLIO_SEARCH_EMBEDDINGS_URL"

DEFAULT_ARTIFACT_PATH = "public/semantic/embeddings.json"
ENV_ARTIFACT_PATH = "FOLIO_SEARCH_ARTIFACT_PATH"

DEFAULT_CACHE_DIR = "~/.folio_search/models"
ENV_CACHE_DIR = "FOLIO_SEARCH_MODEL_CACHE_DIR"

DEFAULT_TOP_K = 8
ENV_TOP_K = "FOLIO_SEARCH_TOP_K"


def resolve_model_id(override: str | None = None) -> str:
    """
    Resolve the sentence-embedding model id.

    Precedence:
    1) explicit override
    2) FOLIO_SEARCH_MODEL_ID
    3) default model
    """
    return override or os.getenv(ENV_MODEL_ID) or DEFAULT_MODEL_ID


def resolve_embeddings_url(override: str | None = None) -> str:
    """Resolve where the embeddings artifact is fetched from."""
    return override or os.getenv(ENV_EMBEDDINGS_URL) or DEFAULT_EMBEDDINGS_URL


def resolve_artifact_path(override: str | None = None) -> str:
    """Resolve the local artifact file used by the builder and the server."""
    raw_path = override or os.getenv(ENV_ARTIFACT_PATH) or DEFAULT_ARTIFACT_PATH
    return str(Path(raw_path).expanduser().resolve())


def resolve_cache_dir(override: str | None = None) -> str:
    """Resolve the persistent model-weights cache folder.

    The folder is not created here; the embedder probes it lazily.
    """
    raw_path = override or os.getenv(ENV_CACHE_DIR) or DEFAULT_CACHE_DIR
    return str(Path(raw_path).expanduser().resolve())


def resolve_top_k(override: int | None = None) -> int:
    if override is not None:
        return override
    raw = (os.getenv(ENV_TOP_K) or "").strip()
    if not raw:
        return DEFAULT_TOP_K
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Env var {ENV_TOP_K} must be an int, got {raw!r}") from exc


@dataclass(frozen=True)
class SearchSettings:
    """Resolved settings for one search service."""

    model_id: str
    embeddings_url: str
    artifact_path: str
    cache_dir: str
    top_k: int

    @classmethod
    def from_env(
        cls,
        *,
        model_id: str | None = None,
        embeddings_url: str | None = None,
        artifact_path: str | None = None,
        cache_dir: str | None = None,
        top_k: int | None = None,
    ) -> "SearchSettings":
        return cls(
            model_id=resolve_model_id(model_id),
            embeddings_url=resolve_embeddings_url(embeddings_url),
            artifact_path=resolve_artifact_path(artifact_path),
            cache_dir=resolve_cache_dir(cache_dir),
            top_k=resolve_top_k(top_k),
        )
