"""
Main Codebase Indexer

This module provides the public interface of the index: indexing a project,
incremental per-file updates, cached semantic search and LLM context
assembly. One CodebaseIndexer owns the snapshot of one project session;
open several indexers to keep several projects indexed at once.
"""

import os
import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from ..config import IndexConfig
from .chunker import Chunk, CodeChunker
from .embeddings import ChunkEmbedding, Embedder, HashingEmbedder
from .filesystem import FileSystem, LocalFileSystem, discover_files, to_relative
from .languages import get_language, is_indexable
from .retriever import (
    ContextItem,
    SearchOptions,
    SearchResult,
    SimilarityRanker,
    extract_context,
    group_by_file,
    is_generation_request,
)
from .storage import Clock, IndexSnapshot, QueryCache
from .symbols import FileRecord, build_file_record

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

GENERATION_BOOST_TYPES = ['function', 'class']
DEFAULT_BOOST_TYPES = ['function', 'class', 'interface']


@dataclass
class IndexingStats:
    """Statistics from an indexing pass."""
    project_path: str
    total_files_scanned: int = 0
    total_files_indexed: int = 0
    total_chunks_created: int = 0
    total_embeddings_generated: int = 0
    indexing_time_seconds: float = 0.0
    chunks_by_type: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    from_cache: bool = False


def normalize_project_path(path: PathLike) -> str:
    """Absolute, normalized form of a project path; rejects non-path input."""
    if not isinstance(path, (str, os.PathLike)):
        raise TypeError(f"project path must be a string or path, got {type(path).__name__}")
    path = os.fspath(path)
    if not path:
        raise ValueError("project path must not be empty")
    return os.path.normpath(os.path.abspath(path))


def _require_query(query) -> str:
    if not isinstance(query, str):
        raise TypeError(f"query must be a string, got {type(query).__name__}")
    return query


def _require_limit(limit, name: str = "limit"):
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise TypeError(f"{name} must be an integer, got {type(limit).__name__}")
    if limit < 0:
        raise ValueError(f"{name} must not be negative")


def _validate_options(options: Optional[SearchOptions]) -> SearchOptions:
    if options is None:
        return SearchOptions()
    if not isinstance(options, SearchOptions):
        raise TypeError(f"options must be SearchOptions, got {type(options).__name__}")
    if options.limit is not None:
        _require_limit(options.limit)
    if options.min_score is not None and (
            isinstance(options.min_score, bool) or not isinstance(options.min_score, (int, float))):
        raise TypeError("min_score must be a number")
    return options


class CodebaseIndexer:
    """Index store for one project session with semantic search capabilities."""

    def __init__(self,
                 config: Optional[IndexConfig] = None,
                 filesystem: Optional[FileSystem] = None,
                 embedder: Optional[Embedder] = None,
                 chunker: Optional[CodeChunker] = None,
                 clock: Clock = time.time):
        self.config = config or IndexConfig()
        self.filesystem = filesystem or LocalFileSystem()
        self.embedder = embedder or HashingEmbedder(
            self.config.embedding_dimensions, self.config.embedding_text_limit
        )
        self.chunker = chunker or CodeChunker(self.config)
        self.ranker = SimilarityRanker(
            self.embedder, self.config.default_limit, self.config.default_min_score
        )
        self._clock = clock

        self.snapshot: Optional[IndexSnapshot] = None
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._update_lock = asyncio.Lock()
        # Most recently requested project; only its pass may swap in a snapshot
        self._requested_root: Optional[str] = None

    async def index_project(self, path: PathLike, force: bool = False) -> IndexingStats:
        """
        Index the entire project.

        Args:
            path: Project root
            force: If True, reindex even when the snapshot is still fresh

        Returns:
            IndexingStats with indexing results (from_cache set when nothing ran)
        """
        root = normalize_project_path(path)
        self._requested_root = root
        snapshot = self.snapshot
        current = snapshot if snapshot is not None and snapshot.project_path == root else None

        if current is not None and not force and current.is_fresh(self._clock(), self.config.staleness_seconds):
            logger.debug("Project already indexed, using cache: %s", root)
            return self._snapshot_stats(current)

        in_flight = self._in_flight.get(root)
        if in_flight is not None:
            if current is not None:
                logger.debug("Indexing already in progress for %s, serving existing snapshot", root)
                return self._snapshot_stats(current)
            logger.debug("Indexing already in progress for %s, waiting", root)
            return await asyncio.shield(in_flight)

        task = asyncio.ensure_future(self._run_index(root))
        self._in_flight[root] = task
        task.add_done_callback(lambda _: self._in_flight.pop(root, None))
        return await asyncio.shield(task)

    async def _run_index(self, root: str) -> IndexingStats:
        """Build a fresh snapshot for root and swap it in."""
        start_time = time.perf_counter()
        stats = IndexingStats(project_path=root)
        snapshot = IndexSnapshot(project_path=root, cache=self._new_cache())

        logger.info("Indexing codebase: %s", root)

        files = await discover_files(self.filesystem, root, self.config)
        stats.total_files_scanned = len(files)

        batch_size = self.config.file_read_batch_size
        for i in range(0, len(files), batch_size):
            batch_files = files[i:i + batch_size]

            # Reads overlap; extraction and chunking stay in file order
            loaded = await asyncio.gather(*(self._load_file(root, p, stats) for p in batch_files))

            for item in loaded:
                if item is None:
                    continue
                record, chunks = item
                embeddings = await self._embed_chunks(chunks, stats)
                snapshot.add_file(record, chunks, embeddings)
                stats.total_files_indexed += 1

            processed = min(i + batch_size, len(files))
            if processed % 10 == 0 or processed == len(files):
                logger.debug("Chunking progress: %d/%d files, %d chunks",
                             processed, len(files), len(snapshot.chunks))

        snapshot.indexed_at = self._clock()
        async with self._update_lock:
            if self._requested_root == root:
                self.snapshot = snapshot
            else:
                logger.info("Discarding index of %s: %s was requested since", root, self._requested_root)

        stats.total_chunks_created = len(snapshot.chunks)
        stats.total_embeddings_generated = len(snapshot.embeddings)
        stats.chunks_by_type = snapshot.chunk_type_counts()
        stats.indexing_time_seconds = time.perf_counter() - start_time

        logger.info("Indexing completed: %s (%d files, %d chunks, %d embeddings, %.2fs)",
                    root, stats.total_files_indexed, stats.total_chunks_created,
                    stats.total_embeddings_generated, stats.indexing_time_seconds)
        if stats.errors:
            logger.warning("%d errors occurred during indexing", len(stats.errors))

        return stats

    async def _load_file(self, root: str, path: str,
                         stats: IndexingStats) -> Optional[Tuple[FileRecord, List[Chunk]]]:
        """Read, extract and chunk one file; failures are recorded and yield None."""
        relative = to_relative(root, path)
        try:
            size = await self.filesystem.file_size(path)
            if size is not None and size > self.config.max_file_size:
                logger.debug("Skipping large file: %s (%d bytes)", relative, size)
                return None

            content = await self.filesystem.read_file(path)
            record = build_file_record(relative, content, get_language(relative), self._clock())
            chunks = self.chunker.chunk_file(relative, content, record.symbols, record)
            return record, chunks

        except UnicodeDecodeError:
            stats.errors.append(f"Could not decode file: {relative}")
            logger.debug("Could not decode file: %s", relative)
        except Exception as e:
            stats.errors.append(f"Error processing {relative}: {e}")
            logger.warning("Error processing %s: %s", relative, e)
        return None

    async def _embed_chunks(self, chunks: List[Chunk],
                            stats: Optional[IndexingStats] = None) -> List[ChunkEmbedding]:
        """Embed chunks in batches; a failed chunk is logged and left without an embedding."""
        embeddings = []
        batch_size = self.config.embedding_batch_size

        for i in range(0, len(chunks), batch_size):
            for chunk in chunks[i:i + batch_size]:
                try:
                    vector = self.embedder.embed_chunk(chunk)
                except Exception as e:
                    logger.debug("Error generating embedding for chunk %s: %s", chunk.id, e)
                    if stats is not None:
                        stats.errors.append(f"Failed to embed chunk {chunk.id}: {e}")
                    continue
                embeddings.append(ChunkEmbedding(chunk_id=chunk.id, vector=vector, chunk=chunk))

            batch_number = i // batch_size + 1
            if batch_number % 5 == 0:
                logger.debug("Embedding progress: %d/%d chunks", min(i + batch_size, len(chunks)), len(chunks))

            # Let searches run between batches
            await asyncio.sleep(0)

        return embeddings

    async def update_file_index(self, path: PathLike, file_path: PathLike) -> bool:
        """
        Update index for a single file.

        Args:
            path: Project root the snapshot was built for
            file_path: File to refresh, absolute or relative to the project root

        Returns:
            True if the file's entries were refreshed (or removed because the file is gone)
        """
        root = normalize_project_path(path)

        # A full pass already reading this project may predate the change
        in_flight = self._in_flight.get(root)
        if in_flight is not None:
            await asyncio.shield(in_flight)

        async with self._update_lock:
            return await self._update_file(path, file_path)

    async def _update_file(self, path: PathLike, file_path: PathLike) -> bool:
        root = normalize_project_path(path)
        if not isinstance(file_path, (str, os.PathLike)):
            raise TypeError(f"file path must be a string or path, got {type(file_path).__name__}")

        if self.snapshot is None or self.snapshot.project_path != root:
            logger.warning("Cannot update %s: project %s is not indexed", file_path, root)
            return False

        absolute = os.path.normpath(os.path.join(root, os.fspath(file_path)))
        relative = to_relative(root, absolute)
        if relative.startswith('..'):
            raise ValueError(f"{file_path} is outside project {root}")

        stats = IndexingStats(project_path=root)
        loaded = None
        embeddings: List[ChunkEmbedding] = []

        exists = await self.filesystem.file_size(absolute) is not None
        if exists and is_indexable(relative):
            loaded = await self._load_file(root, absolute, stats)
            if loaded is not None:
                embeddings = await self._embed_chunks(loaded[1], stats)

        # The snapshot may have been swapped while reading
        snapshot = self.snapshot
        if snapshot is None or snapshot.project_path != root:
            logger.warning("Project %s was cleared while updating %s", root, relative)
            return False

        removed = snapshot.remove_file(relative)
        if loaded is not None:
            record, chunks = loaded
            snapshot.add_file(record, chunks, embeddings)

        # Cached rankings may include the old chunks
        snapshot.cache.clear()

        if not exists:
            logger.debug("Removed %d chunks for deleted file: %s", removed, relative)
            return True

        if loaded is None:
            for error in stats.errors:
                logger.warning("Errors updating %s: %s", relative, error)
            return False

        logger.debug("Updated %d chunks for %s", len(loaded[1]), relative)
        return True

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Search the indexed project for chunks relevant to query.

        Results come from the query cache when an identical query with the
        same options was answered within the cache TTL.
        """
        _require_query(query)
        options = _validate_options(options)

        snapshot = self.snapshot
        if snapshot is None:
            return []

        if options.use_cache:
            cache_key = options.cache_key(query)
            cached = snapshot.cache.get(cache_key)
            if cached is not None:
                logger.debug("Using cached search results for %r", query[:50])
                return list(cached)

        search_start = time.perf_counter()
        results = self.ranker.rank(query, snapshot.embeddings, options)
        logger.debug("Search completed for %r: %d results in %.1fms",
                     query[:50], len(results), (time.perf_counter() - search_start) * 1000)

        if options.use_cache:
            snapshot.cache.put(cache_key, list(results))

        return results

    async def get_relevant_context(self, query: str, path: PathLike, limit: int = 5) -> List[ContextItem]:
        """
        Get relevant file context for an LLM request.

        Args:
            query: The user's request
            path: Project root; a different project than the indexed one is re-indexed first
            limit: Maximum number of files returned

        Returns:
            ContextItems ordered by their best chunk score
        """
        _require_query(query)
        _require_limit(limit)
        root = normalize_project_path(path)

        if self.snapshot is not None and self.snapshot.project_path != root:
            logger.warning("Project path changed from %s to %s, clearing old index",
                           self.snapshot.project_path, root)
            self.clear_cache()

        if self.snapshot is None or not self.snapshot.chunks:
            logger.info("Project not indexed, indexing now: %s", root)
            await self.index_project(root)

        boost_types = GENERATION_BOOST_TYPES if is_generation_request(query) else DEFAULT_BOOST_TYPES
        results = await self.search(query, SearchOptions(limit=limit * 2, boost_types=boost_types))

        context = []
        for hits in group_by_file(results, limit):
            try:
                content = await self.filesystem.read_file(os.path.join(root, hits.file_path))
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Error reading file for context %s: %s", hits.file_path, e)
                continue

            context.append(ContextItem(
                path=hits.file_path,
                content=extract_context(
                    content, hits,
                    top_chunks=self.config.top_chunks_per_file,
                    window=self.config.context_window_lines,
                    max_length=self.config.context_content_limit
                ),
                score=hits.max_score
            ))

        logger.debug("Context retrieved: %d files, top score %.3f",
                     len(context), context[0].score if context else 0.0)
        return context

    def clear_cache(self, path: Optional[PathLike] = None):
        """Drop the whole index, or only when path names the indexed project."""
        if path is None:
            self.snapshot = None
        else:
            root = normalize_project_path(path)
            if self.snapshot is not None and self.snapshot.project_path == root:
                self.snapshot = None
        logger.debug("Index cache cleared (%s)", path)

    def get_stats(self) -> Dict:
        """Get index statistics."""
        snapshot = self.snapshot
        if snapshot is None:
            return {
                'chunk_count': 0,
                'embedding_count': 0,
                'cache_size': 0,
                'path': None,
                'file_count': 0,
                'chunk_types': {},
                'indexed_at': None,
            }

        return {
            'chunk_count': len(snapshot.chunks),
            'embedding_count': len(snapshot.embeddings),
            'cache_size': len(snapshot.cache),
            'path': snapshot.project_path,
            'file_count': len(snapshot.files),
            'chunk_types': snapshot.chunk_type_counts(),
            'indexed_at': snapshot.indexed_at,
        }

    def _new_cache(self) -> QueryCache:
        return QueryCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.max_cache_entries,
            clock=self._clock
        )

    def _snapshot_stats(self, snapshot: IndexSnapshot) -> IndexingStats:
        return IndexingStats(
            project_path=snapshot.project_path,
            total_files_scanned=len(snapshot.files),
            total_files_indexed=len(snapshot.files),
            total_chunks_created=len(snapshot.chunks),
            total_embeddings_generated=len(snapshot.embeddings),
            chunks_by_type=snapshot.chunk_type_counts(),
            from_cache=True
        )
