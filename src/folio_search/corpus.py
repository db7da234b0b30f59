"""
Loader for the precomputed embeddings artifact.

The artifact is a JSON array of embedding records. It is fetched once per
loader and cached in memory; concurrent callers share one in-flight fetch.
"""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
import time
from pathlib import Path
from typing import Any

import httpx

from .models import CorpusLoadError, EmbeddingItem, parse_corpus

logger = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"
_EMPTY_MESSAGE = (
    "Embeddings file is empty. Rebuild/regenerate and redeploy embeddings.json"
)


def _is_http_source(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _decode_payload(body: bytes) -> Any:
    if body.startswith(_GZIP_MAGIC):
        try:
            body = gzip.decompress(body)
        except (OSError, EOFError) as exc:
            raise CorpusLoadError(f"Embeddings file is not valid gzip: {exc}") from exc
    try:
        return json.loads(body)
    except ValueError as exc:
        raise CorpusLoadError(f"Embeddings file is not valid JSON: {exc}") from exc


class CorpusLoader:
    """Fetch and cache the embeddings corpus for one search session."""

    def __init__(
        self,
        source: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.source = source
        self.timeout = timeout
        self._client = client
        self._items: list[EmbeddingItem] | None = None
        self._load_task: asyncio.Task[list[EmbeddingItem]] | None = None

    @property
    def items(self) -> list[EmbeddingItem] | None:
        return self._items

    @property
    def is_loaded(self) -> bool:
        return self._items is not None

    @property
    def is_loading(self) -> bool:
        return self._load_task is not None

    async def load(self) -> list[EmbeddingItem]:
        """Return the cached corpus, fetching it on first use."""
        if self._items is not None:
            return self._items
        if self._load_task is None:
            self._load_task = asyncio.create_task(self._load())
        return await asyncio.shield(self._load_task)

    async def _load(self) -> list[EmbeddingItem]:
        try:
            items = await self._fetch(reload=False)
            if not items:
                logger.warning(
                    "Embeddings artifact %s is empty, retrying with cache busting",
                    self.source,
                )
                items = await self._fetch(reload=True)
            if not items:
                raise CorpusLoadError(_EMPTY_MESSAGE)
        except CorpusLoadError as exc:
            logger.error("Failed to load embeddings from %s: %s", self.source, exc)
            raise
        finally:
            self._load_task = None

        logger.info("Loaded %d embedding items from %s", len(items), self.source)
        self._items = items
        return items

    async def _fetch(self, *, reload: bool) -> list[EmbeddingItem]:
        if _is_http_source(self.source):
            body = await self._fetch_http(reload=reload)
        else:
            body = await asyncio.to_thread(self._read_file)
        return parse_corpus(_decode_payload(body))

    async def _fetch_http(self, *, reload: bool) -> bytes:
        url = httpx.URL(self.source)
        if reload:
            url = url.copy_add_param("v", str(int(time.time() * 1000)))
            headers = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
        else:
            headers = {"Cache-Control": "no-store"}

        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise CorpusLoadError(f"Embeddings request failed: {exc}") from exc

        if not response.is_success:
            raise CorpusLoadError(
                f"Embeddings request failed ({response.status_code})"
            )
        return response.content

    def _read_file(self) -> bytes:
        path = Path(self.source).expanduser()
        try:
            return path.read_bytes()
        except OSError as exc:
            raise CorpusLoadError(f"Embeddings file unavailable: {exc}") from exc
