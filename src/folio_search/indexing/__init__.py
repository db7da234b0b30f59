"""Offline build of the embeddings artifact."""

from .builder import (
    BuildResult,
    build_corpus,
    experience_to_text,
    map_items_from_document,
    project_to_text,
    to_slug,
    write_artifact,
)

__all__ = [
    "BuildResult",
    "build_corpus",
    "experience_to_text",
    "map_items_from_document",
    "project_to_text",
    "to_slug",
    "write_artifact",
]
