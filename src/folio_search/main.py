import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from typer import Argument, Exit, Option, Typer

from .config import SearchSettings, resolve_artifact_path
from .embeddings import EmbeddingFailed, ModelLoadFailed, SemanticEmbedder
from .indexing import build_corpus, write_artifact
from .models import CorpusLoadError
from .search import SearchOutcome, SemanticSearchService, highlight_text

app = Typer(help="Semantic search over portfolio content.")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Log model and corpus loading details.")
    ] = False,
) -> None:
    _configure_logging(verbose)


def _highlighted(value: str, tokens: list[str]) -> Text:
    text = Text()
    for segment in highlight_text(value, tokens):
        text.append(segment.text, style="bold black on yellow" if segment.matched else "")
    return text


def render_outcome(outcome: SearchOutcome) -> None:
    if not outcome.results:
        console.print(f"[bold yellow]No matches for[/] {outcome.query!r}")
        return

    table = Table(title=f"Results for {outcome.query!r}", title_justify="left")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Path")
    for position, result in enumerate(outcome.results, start=1):
        title = str(result.meta.get("title") or result.id)
        table.add_row(
            str(position),
            f"{result.score:.3f}",
            str(result.type),
            _highlighted(title, outcome.tokens),
            str(result.meta.get("path") or ""),
        )
    console.print(table)


async def run_search(
    query: str,
    source: str | None = None,
    *,
    top_k: int | None = None,
    min_score: float | None = None,
) -> SearchOutcome:
    settings = SearchSettings.from_env(embeddings_url=source, top_k=top_k)
    service = SemanticSearchService.from_settings(settings)
    try:
        with console.status(status="Loading model and embeddings..."):
            return await service.search(query, min_score=min_score)
    finally:
        await service.close()


@app.command()
def search(
    query: Annotated[str, Option("--query", "-q", help="Free-text search query.")],
    source: Annotated[
        str | None,
        Option("--source", "-s", help="URL or file path of the embeddings artifact."),
    ] = None,
    top_k: Annotated[int | None, Option("--top-k", help="Maximum results.")] = None,
    min_score: Annotated[
        float | None, Option("--min-score", help="Minimum cosine similarity.")
    ] = None,
) -> None:
    """Rank the embeddings corpus against a query."""
    try:
        outcome = asyncio.run(run_search(query, source, top_k=top_k, min_score=min_score))
    except (CorpusLoadError, ModelLoadFailed, EmbeddingFailed) as exc:
        console.print(Panel(str(exc), title="Search failed", border_style="bold red"))
        raise Exit(code=1)
    render_outcome(outcome)


async def run_build(content_path: str, output: str, model: str | None = None):
    document = json.loads(Path(content_path).read_text(encoding="utf-8"))
    if not isinstance(document, dict):
        raise ValueError(f"Content document {content_path} must be a JSON object")
    embedder = SemanticEmbedder(model)
    try:
        with console.status(status=f"Embedding with {embedder.model_id}..."):
            items = await build_corpus(document, embedder)
    finally:
        await embedder.close()
    return write_artifact(items, output, model_id=embedder.model_id)


@app.command()
def build(
    content: Annotated[str, Argument(help="Portfolio content JSON document.")],
    output: Annotated[
        str | None, Option("--output", "-o", help="Artifact path (.json or .json.gz).")
    ] = None,
    model: Annotated[
        str | None, Option("--model", "-m", help="Sentence-embedding model id.")
    ] = None,
) -> None:
    """Embed portfolio content into the static embeddings artifact."""
    output_path = resolve_artifact_path(output)
    try:
        result = asyncio.run(run_build(content, output_path, model))
    except (OSError, ValueError, ModelLoadFailed, EmbeddingFailed) as exc:
        console.print(Panel(str(exc), title="Build failed", border_style="bold red"))
        raise Exit(code=1)

    console.print(
        Panel(
            f"Wrote {result.items_written} embeddings to `{result.output_path}`\n"
            f"Model: {result.model_id}",
            title="Build Complete",
            border_style="bold green",
        )
    )


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Port to listen on.")] = 8000,
) -> None:
    """Run the search API server."""
    from .server import run_server

    run_server(host=host, port=port)
