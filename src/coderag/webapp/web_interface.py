"""
coderag Web Interface
FastAPI server exposing the codebase index over HTTP for editor integrations.
"""

import logging
from dataclasses import asdict
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..config import IndexConfig, setup_logging
from ..indexing import CodebaseIndexer, SearchOptions, SearchResult
from ..indexing.retriever import ContextItem

logger = logging.getLogger(__name__)

app = FastAPI(title="coderag", description="Semantic index and context retrieval for a codebase")


# Pydantic models for API requests
class IndexRequest(BaseModel):
    path: str
    force: bool = False


class SearchRequest(BaseModel):
    query: str
    limit: Optional[int] = None
    min_score: Optional[float] = None
    file_types: Optional[List[str]] = None
    boost_types: Optional[List[str]] = None
    use_cache: bool = True


class ContextRequest(BaseModel):
    query: str
    path: str
    limit: int = 5


class UpdateRequest(BaseModel):
    path: str
    file_path: str


class ClearRequest(BaseModel):
    path: Optional[str] = None


# Global indexer for the server process
indexer: Optional[CodebaseIndexer] = None


def get_indexer() -> CodebaseIndexer:
    """Get or create the indexer instance."""
    global indexer
    if indexer is None:
        indexer = CodebaseIndexer(IndexConfig.from_env())
    return indexer


def serialize_result(result: SearchResult) -> Dict:
    chunk = result.chunk
    return {
        "id": chunk.id,
        "file_path": chunk.file_path,
        "language": chunk.language,
        "chunk_type": chunk.chunk_type.value,
        "start_line": chunk.start_line,
        "end_line": chunk.end_line,
        "symbol": chunk.symbol.name if chunk.symbol else None,
        "content": chunk.content,
        "score": result.score,
        "relevance": result.relevance.value,
    }


def serialize_context(item: ContextItem) -> Dict:
    return {"path": item.path, "content": item.content, "score": item.score}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/index")
async def index_project(request: IndexRequest):
    """Index (or re-index) a project."""
    try:
        stats = await get_indexer().index_project(request.path, force=request.force)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "stats": asdict(stats)}


@app.post("/api/search")
async def search(request: SearchRequest):
    """Search the indexed project."""
    options = SearchOptions(
        limit=request.limit,
        min_score=request.min_score,
        file_types=request.file_types,
        boost_types=request.boost_types,
        use_cache=request.use_cache
    )
    try:
        results = await get_indexer().search(request.query, options)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"results": [serialize_result(r) for r in results]}


@app.post("/api/context")
async def relevant_context(request: ContextRequest):
    """Get relevant file context for an LLM request."""
    try:
        context = await get_indexer().get_relevant_context(request.query, request.path, request.limit)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"context": [serialize_context(item) for item in context]}


@app.post("/api/update")
async def update_file(request: UpdateRequest):
    """Refresh the index entries of one file."""
    try:
        updated = await get_indexer().update_file_index(request.path, request.file_path)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": updated}


@app.post("/api/clear")
async def clear(request: ClearRequest):
    """Drop the index."""
    try:
        get_indexer().clear_cache(request.path)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True}


@app.get("/api/stats")
async def stats():
    return get_indexer().get_stats()


def run(host: str = "127.0.0.1", port: int = 8000):
    """Start the HTTP server."""
    setup_logging()
    logger.info("Starting coderag web interface on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port)
