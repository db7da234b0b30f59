"""Tests for the embeddings corpus loader."""

from __future__ import annotations

import asyncio
import gzip
import json
from pathlib import Path

import httpx
import pytest

from conftest import CORPUS_URL, SAMPLE_RECORDS, json_response, make_transport
from folio_search.corpus import CorpusLoader
from folio_search.models import CorpusLoadError


def _loader(responses, seen=None) -> CorpusLoader:
    client = httpx.AsyncClient(transport=make_transport(responses, seen))
    return CorpusLoader(CORPUS_URL, client=client)


@pytest.mark.asyncio
async def test_load_fetches_once_and_caches() -> None:
    seen: list[httpx.Request] = []
    loader = _loader(lambda request: json_response(SAMPLE_RECORDS), seen)

    first = await loader.load()
    second = await loader.load()

    assert first is second
    assert [item.id for item in first] == [record["id"] for record in SAMPLE_RECORDS]
    assert len(seen) == 1
    assert seen[0].headers["Cache-Control"] == "no-store"
    assert "v" not in seen[0].url.params
    assert loader.is_loaded


@pytest.mark.asyncio
async def test_concurrent_loads_share_one_fetch() -> None:
    seen: list[httpx.Request] = []
    loader = _loader(lambda request: json_response(SAMPLE_RECORDS), seen)

    results = await asyncio.gather(loader.load(), loader.load(), loader.load())

    assert len(seen) == 1
    assert results[0] is results[1] is results[2]


@pytest.mark.asyncio
async def test_empty_artifact_retries_with_cache_busting() -> None:
    seen: list[httpx.Request] = []
    loader = _loader([json_response([]), json_response(SAMPLE_RECORDS)], seen)

    items = await loader.load()

    assert len(items) == len(SAMPLE_RECORDS)
    assert len(seen) == 2
    retry = seen[1]
    assert retry.url.params["v"].isdigit()
    assert retry.url.path == "/semantic/embeddings.json"
    assert retry.headers["Cache-Control"] == "no-cache"
    assert retry.headers["Pragma"] == "no-cache"


@pytest.mark.asyncio
async def test_empty_after_retry_is_an_error() -> None:
    seen: list[httpx.Request] = []
    loader = _loader(lambda request: json_response([]), seen)

    with pytest.raises(CorpusLoadError, match="Embeddings file is empty"):
        await loader.load()

    assert len(seen) == 2
    assert not loader.is_loaded
    assert not loader.is_loading


@pytest.mark.asyncio
async def test_non_success_status_is_an_error() -> None:
    loader = _loader(lambda request: httpx.Response(404, text="missing"))

    with pytest.raises(CorpusLoadError, match=r"Embeddings request failed \(404\)"):
        await loader.load()


@pytest.mark.asyncio
async def test_non_array_json_is_an_error() -> None:
    loader = _loader(lambda request: json_response({"items": SAMPLE_RECORDS}))

    with pytest.raises(CorpusLoadError, match="not a valid array"):
        await loader.load()


@pytest.mark.asyncio
async def test_invalid_json_is_an_error() -> None:
    loader = _loader(lambda request: httpx.Response(200, content=b"[{not json"))

    with pytest.raises(CorpusLoadError, match="not valid JSON"):
        await loader.load()


@pytest.mark.asyncio
async def test_transport_failure_is_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    loader = _loader(handler)

    with pytest.raises(CorpusLoadError, match="connection refused"):
        await loader.load()


@pytest.mark.asyncio
async def test_failed_load_is_not_cached() -> None:
    loader = _loader([httpx.Response(503), json_response(SAMPLE_RECORDS)])

    with pytest.raises(CorpusLoadError):
        await loader.load()

    items = await loader.load()
    assert len(items) == len(SAMPLE_RECORDS)


@pytest.mark.asyncio
async def test_gzip_body_is_decompressed() -> None:
    body = gzip.compress(json.dumps(SAMPLE_RECORDS).encode("utf-8"))
    loader = _loader(lambda request: httpx.Response(200, content=body))

    items = await loader.load()

    assert len(items) == len(SAMPLE_RECORDS)


@pytest.mark.asyncio
async def test_existing_query_string_is_preserved_on_retry() -> None:
    seen: list[httpx.Request] = []
    client = httpx.AsyncClient(
        transport=make_transport([json_response([]), json_response(SAMPLE_RECORDS)], seen)
    )
    loader = CorpusLoader(f"{CORPUS_URL}?build=42", client=client)

    await loader.load()

    assert seen[1].url.params["build"] == "42"
    assert "v" in seen[1].url.params


@pytest.mark.asyncio
async def test_local_file_source(tmp_path: Path) -> None:
    artifact = tmp_path / "embeddings.json"
    artifact.write_text(json.dumps(SAMPLE_RECORDS))

    items = await CorpusLoader(str(artifact)).load()

    assert [item.type for item in items] == ["project", "experience", "project"]


@pytest.mark.asyncio
async def test_missing_local_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(CorpusLoadError, match="unavailable"):
        await CorpusLoader(str(tmp_path / "missing.json")).load()
