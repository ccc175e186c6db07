"""
Similarity Ranking and Context Assembly

Scores stored chunk embeddings against a query with cosine similarity,
applies heuristic boosts (chunk type, symbol name and comment keyword
matches), and turns ranked chunks into per-file context payloads for LLM
prompts.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional

from .chunker import Chunk
from .embeddings import ChunkEmbedding, Embedder, cosine_similarity

BOOST_CHUNK_TYPE = 1.2
BOOST_SYMBOL_NAME = 1.3
BOOST_COMMENTS = 1.15
MAX_SCORE = 1.0

HIGH_RELEVANCE = 0.7
MEDIUM_RELEVANCE = 0.4

CONTEXT_SEPARATOR = '\n\n// ...\n\n'

STOP_WORDS = frozenset({
    'как', 'что', 'где', 'когда', 'почему', 'какой', 'какая', 'какое',
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'should',
    'can', 'could', 'may', 'might', 'must', 'shall', 'this', 'that', 'these', 'those',
    'and', 'for', 'with', 'from', 'into', 'how', 'what', 'where', 'when', 'why', 'which',
})

_GENERATION_REQUEST = re.compile(
    r'\b(создай|напиши|реализуй|сделай|create|write|implement|make|build)\b',
    re.IGNORECASE
)
_NON_WORD = re.compile(r'[^\w\s]')
_WHITESPACE = re.compile(r'\s+')


class Relevance(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class SearchOptions:
    """Caller-tunable search options; None means the index default."""
    limit: Optional[int] = None
    min_score: Optional[float] = None
    file_types: Optional[List[str]] = None
    boost_types: Optional[List[str]] = None
    use_cache: bool = True

    def __post_init__(self):
        if self.file_types:
            self.file_types = sorted({ext.lower().lstrip('.') for ext in self.file_types})
        if self.boost_types:
            self.boost_types = sorted(set(self.boost_types))

    def cache_key(self, query: str) -> str:
        """Key covering the query and every option that changes the ranking."""
        return '|'.join([
            normalize_query(query),
            str(self.limit),
            str(self.min_score),
            ','.join(self.file_types or []),
            ','.join(self.boost_types or []),
        ])


@dataclass(frozen=True)
class SearchResult:
    """Ranked chunk returned by a search."""
    chunk: Chunk
    score: float
    relevance: Relevance


@dataclass
class ContextItem:
    """One file's worth of context for an LLM prompt."""
    path: str
    content: str
    score: float


@dataclass
class FileHits:
    """Search results grouped under their owning file."""
    file_path: str
    max_score: float
    results: List[SearchResult]


def normalize_query(query: str) -> str:
    return _WHITESPACE.sub(' ', query).strip()


def extract_keywords(query: str) -> List[str]:
    """Extract keywords from the query for the boost step."""
    words = _NON_WORD.sub(' ', query.lower()).split()
    return [word for word in words if len(word) > 2 and word not in STOP_WORDS]


def is_generation_request(query: str) -> bool:
    """True for requests asking to produce new code rather than explain existing code."""
    return _GENERATION_REQUEST.search(query) is not None


def relevance_for(score: float) -> Relevance:
    if score > HIGH_RELEVANCE:
        return Relevance.HIGH
    if score > MEDIUM_RELEVANCE:
        return Relevance.MEDIUM
    return Relevance.LOW


def file_extension(file_path: str) -> str:
    return PurePosixPath(file_path).suffix.lower().lstrip('.')


class SimilarityRanker:
    """Ranks stored chunk embeddings against a query."""

    def __init__(self, embedder: Embedder, default_limit: int = 10, default_min_score: float = 0.1):
        self.embedder = embedder
        self.default_limit = default_limit
        self.default_min_score = default_min_score

    def rank(self, query: str, corpus: Dict[str, ChunkEmbedding],
             options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """
        Score every candidate chunk and return the best ones.

        Args:
            query: Raw query text
            corpus: Embeddings by chunk id, in insertion order
            options: Limit, threshold, extension allowlist and boost types

        Returns:
            Results sorted by score (ties keep corpus order), at most limit long
        """
        options = options or SearchOptions()
        limit = self.default_limit if options.limit is None else options.limit
        min_score = self.default_min_score if options.min_score is None else options.min_score
        allowed = set(options.file_types or [])
        boost_types = set(options.boost_types or [])

        query_vector = self.embedder.embed_text(query)
        keywords = extract_keywords(query)

        results = []
        for chunk_embedding in corpus.values():
            chunk = chunk_embedding.chunk

            # File type filter
            if allowed and file_extension(chunk.file_path) not in allowed:
                continue

            score = cosine_similarity(query_vector, chunk_embedding.vector)
            score *= self._boost(chunk, keywords, boost_types)

            if score < min_score:
                continue

            results.append(SearchResult(
                chunk=chunk,
                score=min(score, MAX_SCORE),
                relevance=relevance_for(score)
            ))

        results.sort(key=lambda result: result.score, reverse=True)
        return results[:limit]

    def _boost(self, chunk: Chunk, keywords: List[str], boost_types: Iterable[str]) -> float:
        """Multiplicative boost from chunk type, symbol name and comment matches."""
        boost = 1.0

        if chunk.chunk_type.value in boost_types:
            boost *= BOOST_CHUNK_TYPE

        if chunk.symbol:
            symbol_name = chunk.symbol.name.lower()
            if any(keyword in symbol_name for keyword in keywords):
                boost *= BOOST_SYMBOL_NAME

        if chunk.metadata.comments:
            comments = chunk.metadata.comments.lower()
            if any(keyword in comments for keyword in keywords):
                boost *= BOOST_COMMENTS

        return boost


def group_by_file(results: List[SearchResult], limit: int) -> List[FileHits]:
    """Group results by file and keep the limit files with the best single chunk."""
    grouped: Dict[str, List[SearchResult]] = {}
    for result in results:
        grouped.setdefault(result.chunk.file_path, []).append(result)

    files = [
        FileHits(file_path=path, max_score=max(r.score for r in hits), results=hits)
        for path, hits in grouped.items()
    ]
    files.sort(key=lambda f: f.max_score, reverse=True)
    return files[:limit]


def extract_context(content: str, hits: FileHits, top_chunks: int = 3,
                    window: int = 5, max_length: int = 2500) -> str:
    """
    Build the context payload for one file.

    A file with a single hit is returned whole; with several hits, the lines
    around each of the top chunks are joined with a separator. The payload is
    capped at max_length characters.
    """
    if len(hits.results) <= 1:
        return content[:max_length]

    lines = content.split('\n')
    best = sorted(hits.results, key=lambda r: r.score, reverse=True)[:top_chunks]

    parts = []
    for result in best:
        start = max(0, result.chunk.start_line - 1 - window)
        end = min(len(lines), result.chunk.end_line + window)
        parts.append('\n'.join(lines[start:end]))

    return CONTEXT_SEPARATOR.join(parts)[:max_length]
