"""
Codebase Indexing System

This package implements vector-based indexing of a project's source files
for context retrieval: pattern-based symbol extraction, structural chunking,
deterministic hashed embeddings and cosine-similarity search.

Core Components:
- CodebaseIndexer: Main indexing orchestrator
- CodeChunker: Symbol-aware code chunking with brace boundary scanning
- HashingEmbedder: Deterministic vector embedding generation
- SimilarityRanker: Semantic search with heuristic boosts
- IndexSnapshot / QueryCache: In-memory index state and result cache
"""

from .indexer import CodebaseIndexer, IndexingStats
from .chunker import CodeChunker, Chunk, ChunkType
from .embeddings import HashingEmbedder
from .retriever import ContextItem, Relevance, SearchOptions, SearchResult, SimilarityRanker
from .storage import IndexSnapshot, QueryCache
from .symbols import Symbol, SymbolKind

__all__ = [
    "CodebaseIndexer",
    "IndexingStats",
    "CodeChunker",
    "Chunk",
    "ChunkType",
    "HashingEmbedder",
    "SimilarityRanker",
    "SearchOptions",
    "SearchResult",
    "ContextItem",
    "Relevance",
    "IndexSnapshot",
    "QueryCache",
    "Symbol",
    "SymbolKind",
]
