"""
Embedding provider for query-time semantic search.

Wraps a local sentence-embedding model that is loaded lazily, once, and then
shared by every ``embed()`` call. Loading is single-flight: callers that ask
for the model while it is loading wait on the same task.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

from .config import resolve_cache_dir, resolve_model_id

logger = logging.getLogger(__name__)


class ModelLoadFailed(RuntimeError):
    """Raised when the embedding model could not be initialized."""


class EmbeddingFailed(RuntimeError):
    """Raised when inference fails for a specific text."""


class CacheUnavailableError(OSError):
    """Raised by a backend when the persistent weights cache cannot be used."""


class EmbedderState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class EmbeddingBackend(Protocol):
    """Protocol for the in-process model runtime used by the embedder."""

    def load(self, model_id: str, *, use_cache: bool) -> Any:
        """Load the model and return a handle, optionally using the weights cache."""

    def encode(self, model: Any, text: str) -> Sequence[float]:
        """Return a mean-pooled, unit-length embedding for ``text``."""

    # Backends may also define ``close()`` to release what their loads left
    # behind; the embedder calls it when present.


def model_cache_available(cache_dir: str) -> bool:
    """Return True when the weights cache folder exists (or can be made) and is writable."""
    path = Path(cache_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


def _consume_load_result(task: asyncio.Task[Any]) -> None:
    # Failures reach waiters through the shield; retrieve here so an
    # abandoned load does not warn about an unretrieved exception.
    if not task.cancelled():
        task.exception()


class SentenceTransformerBackend:
    """Run models through sentence-transformers (lazy import to keep import cost light)."""

    def __init__(self, *, cache_dir: str | None = None, device: str | None = None) -> None:
        self.cache_dir = resolve_cache_dir(cache_dir)
        self.device = device
        self._scratch: tempfile.TemporaryDirectory[str] | None = None

    def load(self, model_id: str, *, use_cache: bool) -> Any:
        from sentence_transformers import SentenceTransformer

        if use_cache:
            try:
                Path(self.cache_dir).mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise CacheUnavailableError(
                    f"Model cache {self.cache_dir} is unavailable: {exc}"
                ) from exc
            cache_folder = self.cache_dir
        else:
            cache_folder = self._scratch_folder()

        try:
            return SentenceTransformer(
                model_id, device=self.device, cache_folder=cache_folder
            )
        except PermissionError as exc:
            if use_cache:
                raise CacheUnavailableError(
                    f"Model cache {cache_folder} is not writable: {exc}"
                ) from exc
            raise

    def encode(self, model: Any, text: str) -> Sequence[float]:
        vector = model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return vector.tolist()

    def close(self) -> None:
        """Remove the scratch folder used by no-cache loads."""
        scratch = self._scratch
        self._scratch = None
        if scratch is not None:
            scratch.cleanup()

    def _scratch_folder(self) -> str:
        # Reused by every no-cache load until close().
        if self._scratch is None:
            self._scratch = tempfile.TemporaryDirectory(
                prefix="folio_search_models_", ignore_cleanup_errors=True
            )
        return self._scratch.name


class SemanticEmbedder:
    """Embed free text with a lazily loaded sentence-embedding model."""

    def __init__(
        self,
        model_id: str | None = None,
        *,
        backend: EmbeddingBackend | None = None,
        cache_available: Callable[[], bool] | None = None,
        cache_dir: str | None = None,
    ) -> None:
        self.model_id = resolve_model_id(model_id)
        self._backend: EmbeddingBackend = backend or SentenceTransformerBackend(
            cache_dir=cache_dir
        )
        if cache_available is None:
            resolved_cache_dir = resolve_cache_dir(cache_dir)

            def cache_available() -> bool:
                return model_cache_available(resolved_cache_dir)

        self._cache_available = cache_available
        self._model: Any | None = None
        self._load_task: asyncio.Task[Any] | None = None
        self.load_attempts = 0

    @property
    def state(self) -> EmbedderState:
        if self._model is not None:
            return EmbedderState.READY
        if self._load_task is not None:
            return EmbedderState.LOADING
        return EmbedderState.UNINITIALIZED

    async def warmup(self) -> None:
        """Load the model without embedding anything; joins an in-flight load."""
        await self._ensure_model()

    async def embed(self, text: str) -> list[float]:
        """Embed a single text, loading the model first if needed."""
        model = await self._ensure_model()
        if not isinstance(text, str):
            raise EmbeddingFailed(f"Expected text to embed, got {type(text).__name__}")
        try:
            vector = await asyncio.to_thread(self._backend.encode, model, text)
            return [float(value) for value in vector]
        except Exception as exc:
            raise EmbeddingFailed(f"Failed to embed text: {exc}") from exc

    async def close(self) -> None:
        """Drop the model and abandon any in-flight load."""
        task = self._load_task
        self._load_task = None
        self._model = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        close_backend = getattr(self._backend, "close", None)
        if close_backend is not None:
            await asyncio.to_thread(close_backend)

    async def _ensure_model(self) -> Any:
        if self._model is not None:
            return self._model
        if self._load_task is None:
            self._load_task = asyncio.create_task(self._load())
            self._load_task.add_done_callback(_consume_load_result)
        # One waiter being cancelled must not abort the shared load.
        return await asyncio.shield(self._load_task)

    async def _load(self) -> Any:
        task = asyncio.current_task()
        try:
            model = await self._load_with_fallback()
            if self._load_task is task:
                self._model = model
            return model
        finally:
            if self._load_task is task:
                self._load_task = None

    async def _load_with_fallback(self) -> Any:
        use_cache = bool(await asyncio.to_thread(self._cache_available))
        if not use_cache:
            logger.info("Model cache unavailable, loading %s without it", self.model_id)

        try:
            return await self._attempt_load(use_cache=use_cache)
        except CacheUnavailableError as exc:
            if not use_cache:
                raise self._load_failed(exc) from exc
            logger.warning(
                "Model cache rejected while loading %s (%s), retrying without it",
                self.model_id,
                exc,
            )
        except Exception as exc:
            raise self._load_failed(exc) from exc

        try:
            return await self._attempt_load(use_cache=False)
        except Exception as exc:
            raise self._load_failed(exc) from exc

    async def _attempt_load(self, *, use_cache: bool) -> Any:
        self.load_attempts += 1
        logger.info(
            "Loading embedding model %s (attempt %d, cache=%s)",
            self.model_id,
            self.load_attempts,
            use_cache,
        )
        model = await asyncio.to_thread(
            self._backend.load, self.model_id, use_cache=use_cache
        )
        logger.info("Embedding model %s ready", self.model_id)
        return model

    def _load_failed(self, exc: Exception) -> ModelLoadFailed:
        logger.error("Failed to load embedding model %s: %s", self.model_id, exc)
        return ModelLoadFailed(f"Failed to load embedding model {self.model_id!r}: {exc}")
