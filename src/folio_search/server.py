"""
FastAPI server for FolioSearch.

Serves the embeddings artifact and a JSON search API backed by a single
``SemanticSearchService`` owned by the application.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from .config import SearchSettings, resolve_artifact_path
from .embeddings import EmbeddingFailed, ModelLoadFailed
from .models import CorpusLoadError
from .search import SemanticSearchService, highlight_text


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    service = getattr(app.state, "search_service", None)
    if service is not None:
        await service.close()
        app.state.search_service = None


app = FastAPI(
    title="FolioSearch",
    description="Semantic search over portfolio content",
    lifespan=lifespan,
)


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str
    top_k: int | None = None
    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)


def get_search_service() -> SemanticSearchService:
    """Return the application's search service, creating it on first use."""
    service = getattr(app.state, "search_service", None)
    if service is None:
        service = SemanticSearchService.from_settings(SearchSettings.from_env())
        app.state.search_service = service
    return service


def _error(message: str, kind: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "kind": kind}, status_code=status_code)


@app.get("/semantic/embeddings.json")
async def get_embeddings_artifact():
    """Serve the static embeddings artifact."""
    artifact = Path(resolve_artifact_path())
    if not artifact.is_file():
        return JSONResponse({"error": "Embeddings artifact not found"}, status_code=404)
    return FileResponse(artifact, media_type="application/json")


@app.get("/api/search/status")
async def search_status(service: SemanticSearchService = Depends(get_search_service)):
    """Report whether the corpus and model are loaded."""
    items = service.corpus.items
    return {
        "status": service.status,
        "model_id": service.embedder.model_id,
        "model_state": service.embedder.state.value,
        "corpus_loaded": items is not None,
        "corpus_size": len(items) if items is not None else None,
    }


@app.post("/api/search/warmup")
async def warmup(service: SemanticSearchService = Depends(get_search_service)):
    """Load the corpus and the embedding model ahead of the first query."""
    try:
        await service.warmup()
    except CorpusLoadError as exc:
        return _error(str(exc), "corpus_unavailable", 503)
    except ModelLoadFailed as exc:
        return _error(str(exc), "model_unavailable", 503)
    return {"status": service.status, "corpus_size": len(service.corpus.items or [])}


@app.post("/api/search")
async def search(
    request: SearchRequest,
    service: SemanticSearchService = Depends(get_search_service),
):
    """Embed the query and return ranked, highlighted hits."""
    try:
        outcome = await service.search(
            request.query, top_k=request.top_k, min_score=request.min_score
        )
    except CorpusLoadError as exc:
        return _error(str(exc), "corpus_unavailable", 503)
    except ModelLoadFailed as exc:
        return _error(str(exc), "model_unavailable", 503)
    except EmbeddingFailed as exc:
        return _error(str(exc), "embedding_failed", 500)

    hits = []
    for result in outcome.results:
        hit = result.to_dict()
        hit["highlights"] = {
            key: [
                segment.to_dict()
                for segment in highlight_text(str(result.meta.get(key) or ""), outcome.tokens)
            ]
            for key in ("title", "summary")
        }
        hits.append(hit)

    return {
        "query": outcome.query,
        "sequence": outcome.sequence,
        "tokens": outcome.tokens,
        "hits": hits,
    }


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
