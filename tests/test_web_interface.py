"""
HTTP API Tests
"""

import pytest
from httpx import AsyncClient, ASGITransport

from coderag.indexing import CodebaseIndexer
from coderag.webapp import web_interface
from coderag.webapp.web_interface import app


@pytest.fixture
def server_indexer(monkeypatch, clock):
    indexer = CodebaseIndexer(clock=clock)
    monkeypatch.setattr(web_interface, "indexer", indexer)
    return indexer


@pytest.fixture
async def async_client(server_indexer):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(async_client):
    resp = await async_client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_index_then_search(async_client, project):
    resp = await async_client.post("/api/index", json={"path": str(project)})
    assert resp.status_code == 200
    assert resp.json()["stats"]["total_chunks_created"] == 4

    resp = await async_client.post("/api/search", json={"query": "calculate price"})
    assert resp.status_code == 200
    results = resp.json()["results"]

    assert any(r["symbol"] == "calculateTotal" for r in results)
    assert all(r["relevance"] in ("high", "medium", "low") for r in results)


@pytest.mark.asyncio
async def test_context(async_client, project):
    resp = await async_client.post("/api/context", json={
        "query": "calculate price",
        "path": str(project),
        "limit": 1,
    })

    assert resp.status_code == 200
    context = resp.json()["context"]
    assert len(context) == 1
    assert context[0]["path"] == "src/pricing.ts"


@pytest.mark.asyncio
async def test_update_and_stats(async_client, project, server_indexer):
    await async_client.post("/api/index", json={"path": str(project)})

    resp = await async_client.post("/api/update", json={
        "path": str(project),
        "file_path": "src/logger.ts",
    })
    assert resp.json() == {"success": True}

    stats = (await async_client.get("/api/stats")).json()
    assert stats["chunk_count"] == 4
    assert stats["path"] == server_indexer.snapshot.project_path


@pytest.mark.asyncio
async def test_clear(async_client, project):
    await async_client.post("/api/index", json={"path": str(project)})

    resp = await async_client.post("/api/clear", json={})
    assert resp.status_code == 200

    stats = (await async_client.get("/api/stats")).json()
    assert stats["chunk_count"] == 0


@pytest.mark.asyncio
async def test_invalid_input(async_client):
    # Negative limit is rejected by the indexer
    resp = await async_client.post("/api/search", json={"query": "q", "limit": -1})
    assert resp.status_code == 400

    resp = await async_client.post("/api/index", json={"path": ""})
    assert resp.status_code == 400

    # Missing field is rejected by request validation
    resp = await async_client.post("/api/search", json={})
    assert resp.status_code == 422
