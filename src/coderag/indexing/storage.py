"""
In-Memory Index Storage

Holds the state of one indexed project: file records, chunks, chunk
embeddings and a bounded query-result cache with TTL expiry. Nothing here is
persisted; a snapshot lives as long as its project session.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .chunker import Chunk
from .embeddings import ChunkEmbedding
from .retriever import SearchResult
from .symbols import FileRecord

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """Cached ranked results for one query key."""
    key: str
    results: List[SearchResult]
    created_at: float


class QueryCache:
    """Query-result cache with TTL expiry and oldest-first eviction."""

    def __init__(self, ttl_seconds: float = 300, max_entries: int = 100,
                 clock: Clock = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[List[SearchResult]]:
        """Return the cached results for key, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.created_at >= self.ttl_seconds:
            del self._entries[key]
            return None

        return entry.results

    def put(self, key: str, results: List[SearchResult]):
        """Store results and trim the cache back to max_entries."""
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, results=results, created_at=self._clock())

        if len(self._entries) > self.max_entries:
            # Oldest first; insertion order breaks timestamp ties
            by_age = sorted(self._entries.values(), key=lambda e: e.created_at)
            for entry in by_age[:len(self._entries) - self.max_entries]:
                del self._entries[entry.key]

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


@dataclass
class IndexSnapshot:
    """Complete in-memory index state for one project."""
    project_path: str
    cache: QueryCache
    indexed_at: float = 0.0
    files: Dict[str, FileRecord] = field(default_factory=dict)
    chunks: Dict[str, Chunk] = field(default_factory=dict)
    embeddings: Dict[str, ChunkEmbedding] = field(default_factory=dict)

    def is_fresh(self, now: float, staleness_seconds: float) -> bool:
        return now - self.indexed_at < staleness_seconds

    def add_file(self, record: FileRecord, chunks: List[Chunk],
                 embeddings: List[ChunkEmbedding]):
        """Insert one file's record, chunks and embeddings."""
        self.files[record.path] = record
        for chunk in chunks:
            self.chunks[chunk.id] = chunk
        for embedding in embeddings:
            self.embeddings[embedding.chunk_id] = embedding

    def remove_file(self, file_path: str) -> int:
        """Remove every entry owned by file_path; returns the number of chunks removed."""
        self.files.pop(file_path, None)

        chunk_ids = [chunk_id for chunk_id, chunk in self.chunks.items()
                     if chunk.file_path == file_path]
        for chunk_id in chunk_ids:
            del self.chunks[chunk_id]
            self.embeddings.pop(chunk_id, None)

        # Embeddings whose chunk is already gone
        orphans = [chunk_id for chunk_id, embedding in self.embeddings.items()
                   if embedding.chunk.file_path == file_path]
        for chunk_id in orphans:
            del self.embeddings[chunk_id]

        return len(chunk_ids)

    def chunks_for_file(self, file_path: str) -> List[Chunk]:
        return [chunk for chunk in self.chunks.values() if chunk.file_path == file_path]

    def get_chunk(self, chunk_id: str) -> Optional[Chunk]:
        return self.chunks.get(chunk_id)

    def chunk_type_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for chunk in self.chunks.values():
            chunk_type = chunk.chunk_type.value
            counts[chunk_type] = counts.get(chunk_type, 0) + 1
        return counts
