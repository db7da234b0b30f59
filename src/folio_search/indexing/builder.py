"""
Build the embeddings artifact from a portfolio content document.
"""

from __future__ import annotations

import gzip
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

from ..embeddings import SemanticEmbedder
from ..models import EmbeddingItem

logger = logging.getLogger(__name__)

_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class BuildResult:
    """Summary output for an artifact build."""

    output_path: str
    items_written: int
    model_id: str
    compressed: bool = False


def to_slug(value: str) -> str:
    return _SLUG_SEPARATOR_RE.sub("-", value.strip().lower()).strip("-")


def _compact_text(parts: list[Any]) -> str:
    return " | ".join(
        part.strip() for part in parts if isinstance(part, str) and part.strip()
    )


def project_to_text(project: dict[str, Any], category: dict[str, Any]) -> str:
    metrics = project.get("metrics")
    if not isinstance(metrics, dict):
        metrics = {}
    metrics_text = ", ".join(f"{key}: {value}" for key, value in metrics.items())
    return _compact_text(
        [
            "project",
            category.get("name"),
            category.get("id"),
            project.get("title"),
            project.get("status"),
            project.get("description"),
            metrics_text,
            project.get("githubUrl"),
            project.get("projectUrl"),
        ]
    )


def experience_to_text(experience: dict[str, Any]) -> str:
    tags = experience.get("tags")
    return _compact_text(
        [
            "experience",
            experience.get("title"),
            experience.get("company"),
            experience.get("year"),
            experience.get("description"),
            ", ".join(str(tag) for tag in tags) if isinstance(tags, list) else "",
        ]
    )


def _entries(container: dict[str, Any], key: str) -> list[tuple[int, dict[str, Any]]]:
    """Return the object entries under ``key`` with their original positions."""
    value = container.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Content field {key!r} must be an array")
    entries = []
    for index, entry in enumerate(value):
        if isinstance(entry, dict):
            entries.append((index, entry))
        else:
            logger.warning("Skipping non-object %s entry at index %d", key, index)
    return entries


def map_items_from_document(document: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten projects and experience entries into records awaiting embeddings."""
    records: list[dict[str, Any]] = []

    for category_index, category in _entries(document, "projectCategories"):
        category_key = str(category.get("id") or category_index)
        for project_index, project in _entries(category, "projects"):
            slug = to_slug(str(project.get("title") or f"project-{project_index}"))
            records.append(
                {
                    "id": f"project:{category_key}:{slug}",
                    "type": "project",
                    "text": project_to_text(project, category),
                    "meta": {
                        "title": project.get("title"),
                        "summary": project.get("description"),
                        "categoryId": category.get("id"),
                        "categoryName": category.get("name"),
                        "status": project.get("status"),
                        "path": f"/projects/{quote(category_key, safe='')}/{quote(slug, safe='')}",
                    },
                }
            )

    for index, experience in _entries(document, "experienceLog"):
        slug = to_slug(str(experience.get("title") or f"experience-{index}"))
        records.append(
            {
                "id": f"experience:{index}:{slug}",
                "type": "experience",
                "text": experience_to_text(experience),
                "meta": {
                    "title": experience.get("title"),
                    "summary": experience.get("description"),
                    "company": experience.get("company"),
                    "year": experience.get("year"),
                    "tags": experience.get("tags") or [],
                },
            }
        )

    return records


async def build_corpus(
    document: dict[str, Any], embedder: SemanticEmbedder
) -> list[EmbeddingItem]:
    """Embed every project and experience entry of ``document``."""
    records = map_items_from_document(document)
    if not records:
        raise ValueError("No project/experience items found to embed")

    logger.info("Embedding %d items with %s", len(records), embedder.model_id)
    items: list[EmbeddingItem] = []
    for record in records:
        embedding = await embedder.embed(record["text"])
        items.append(
            EmbeddingItem(
                id=record["id"],
                type=record["type"],
                text=record["text"],
                embedding=embedding,
                meta=record["meta"],
            )
        )
    return items


def write_artifact(
    items: list[EmbeddingItem], output_path: str, *, model_id: str
) -> BuildResult:
    """Write items as a JSON array, gzip-compressed when the path ends in ``.gz``."""
    resolved = Path(output_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)

    serialized = json.dumps([item.to_dict() for item in items])
    compressed = resolved.suffix == ".gz"
    if compressed:
        resolved.write_bytes(gzip.compress(serialized.encode("utf-8")))
    else:
        resolved.write_text(serialized, encoding="utf-8")

    logger.info("Wrote %d embeddings to %s", len(items), resolved)
    return BuildResult(
        output_path=str(resolved),
        items_written=len(items),
        model_id=model_id,
        compressed=compressed,
    )
