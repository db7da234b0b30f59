import json
import threading
from typing import Any, Callable

import httpx
import pytest

from folio_search.corpus import CorpusLoader
from folio_search.embeddings import CacheUnavailableError, SemanticEmbedder
from folio_search.models import EmbeddingItem


CORPUS_URL = "https://portfolio.test/semantic/embeddings.json"

SAMPLE_RECORDS: list[dict[str, Any]] = [
    {
        "id": "project:ai:semantic-search",
        "type": "project",
        "text": "project | AI | Semantic Search",
        "embedding": [1.0, 0.0, 0.0],
        "meta": {"title": "Semantic Search", "summary": "Search with embeddings", "path": "/projects/ai/semantic-search"},
    },
    {
        "id": "experience:0:senior-engineer",
        "type": "experience",
        "text": "experience | Senior Engineer | TechCorp",
        "embedding": [0.0, 1.0, 0.0],
        "meta": {"title": "Senior Engineer", "summary": "Cloud-native platforms"},
    },
    {
        "id": "project:web:portfolio",
        "type": "project",
        "text": "project | Web | Portfolio",
        "embedding": [0.8, 0.2, 0.0],
        "meta": {"title": "Portfolio Site", "summary": "Editable marketing site"},
    },
]


def make_item(item_id: str, embedding: list[float], item_type: str = "project") -> EmbeddingItem:
    return EmbeddingItem(
        id=item_id,
        type=item_type,
        text=f"{item_type} {item_id}",
        embedding=embedding,
        meta={"title": item_id},
    )


class FakeBackend:
    """Counts loads and returns deterministic vectors for known texts."""

    def __init__(
        self,
        *,
        vectors: dict[str, list[float]] | None = None,
        load_delay: float = 0.0,
        fail_with: Callable[[bool], BaseException | None] | None = None,
    ) -> None:
        self.vectors = vectors or {}
        self.load_delay = load_delay
        self.fail_with = fail_with
        self.load_calls: list[bool] = []
        self.encode_calls: list[str] = []
        self._lock = threading.Lock()

    def load(self, model_id: str, *, use_cache: bool) -> Any:
        with self._lock:
            self.load_calls.append(use_cache)
        if self.load_delay:
            threading.Event().wait(self.load_delay)
        if self.fail_with is not None:
            error = self.fail_with(use_cache)
            if error is not None:
                raise error
        return {"model_id": model_id, "use_cache": use_cache}

    def encode(self, model: Any, text: str) -> list[float]:
        with self._lock:
            self.encode_calls.append(text)
        if text == "boom":
            raise ValueError("inference exploded")
        return self.vectors.get(text, [1.0, 0.0, 0.0])


def cache_rejected(use_cache: bool) -> BaseException | None:
    if use_cache:
        return CacheUnavailableError("cache storage is not available")
    return None


def make_transport(
    responses: list[httpx.Response] | Callable[[httpx.Request], httpx.Response],
    seen: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    queue = list(responses) if isinstance(responses, list) else None

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if queue is not None:
            return queue.pop(0)
        return responses(request)  # type: ignore[operator]

    return httpx.MockTransport(handler)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode("utf-8"))


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend(
        vectors={
            "semantic search": [1.0, 0.0, 0.0],
            "engineer": [0.0, 1.0, 0.0],
        }
    )


@pytest.fixture()
def embedder(backend: FakeBackend) -> SemanticEmbedder:
    return SemanticEmbedder("test/model", backend=backend, cache_available=lambda: True)


@pytest.fixture()
def corpus_loader() -> CorpusLoader:
    client = httpx.AsyncClient(
        transport=make_transport(lambda request: json_response(SAMPLE_RECORDS))
    )
    return CorpusLoader(CORPUS_URL, client=client)
