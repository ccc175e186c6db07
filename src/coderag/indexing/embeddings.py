"""
Deterministic Embeddings for Code Chunks

This module turns chunk text into fixed-length vectors without any model or
network call. Tokens are weighted by class (keyword, type name, identifier,
plain code), hashed into a fixed number of slots with a little spill into the
neighbouring slots, and the result is L2-normalized. The same input always
produces a bit-identical vector.
"""

import re
from dataclasses import dataclass
from typing import List, Protocol

import numpy as np

from .chunker import Chunk

DEFAULT_DIMENSIONS = 256
DEFAULT_TEXT_LIMIT = 1500
NEIGHBOR_SPREAD = 0.3

KEYWORD_WEIGHT = 2.0
TYPE_WEIGHT = 1.7
IDENTIFIER_WEIGHT = 1.5
CODE_WEIGHT = 1.0

CODE_KEYWORDS = frozenset({
    'function', 'class', 'interface', 'type', 'const', 'let', 'var',
    'async', 'await', 'return', 'if', 'else', 'for', 'while', 'switch',
    'import', 'export', 'from', 'default', 'extends', 'implements',
    'public', 'private', 'protected', 'static', 'abstract', 'readonly',
    'string', 'number', 'boolean', 'object', 'array', 'void', 'any',
    'null', 'undefined', 'true', 'false', 'this', 'super',
    # python
    'def', 'elif', 'lambda', 'yield', 'raise', 'try', 'except', 'finally',
    'with', 'self', 'none',
})

TYPE_NAMES = frozenset({
    'string', 'number', 'boolean', 'object', 'array', 'void', 'any',
    'null', 'undefined', 'promise', 'map', 'set',
})

_NON_WORD = re.compile(r'[^\w\s]')
_WHITESPACE = re.compile(r'\s+')
_OPERATORS = re.compile(r'\s*([{}();,=])\s*')
_IDENTIFIER = re.compile(r'[a-z][a-zA-Z0-9]*|[A-Z][a-z][a-zA-Z0-9]*')
_CAMEL_BOUNDARY = re.compile(r'([A-Z])')
_COMMENT_SPAN = re.compile(r'//.*|/\*[\s\S]*?\*/')
_COMMENT_MARKERS = re.compile(r'//|/\*|\*/')
_IDENTIFIER_TOKEN = re.compile(r'[A-Za-z][A-Za-z0-9]*')


@dataclass
class ChunkEmbedding:
    """Stored vector for a chunk, with a back-reference for result hydration."""
    chunk_id: str
    vector: np.ndarray
    chunk: Chunk


class Embedder(Protocol):
    """Anything that maps chunks and query text into the same vector space."""

    dimensions: int

    def embed_text(self, text: str) -> np.ndarray:
        ...

    def embed_chunk(self, chunk: Chunk) -> np.ndarray:
        ...


def simple_hash(token: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, as a non-negative int."""
    value = 0
    data = token.encode('utf-16-le')
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF

    # 32-bit signed, then absolute value
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def normalize_code(code: str) -> str:
    """Collapse whitespace and pad structural punctuation; comments are kept."""
    collapsed = _WHITESPACE.sub(' ', code)
    return _OPERATORS.sub(r' \1 ', collapsed).strip()


def tokenize_code(text: str) -> List[str]:
    """
    Split text into weighted-embedding tokens.

    Three passes are concatenated: lowercase words, camelCase/PascalCase
    identifiers split into lowercase parts, and the words found inside
    comments (original case). Tokens of one character are dropped.
    """
    tokens = _NON_WORD.sub(' ', text.lower()).split()

    for identifier in _IDENTIFIER.findall(text):
        parts = _CAMEL_BOUNDARY.sub(r' \1', identifier).split()
        tokens.extend(part.lower() for part in parts)

    for comment in _COMMENT_SPAN.findall(text):
        words = _COMMENT_MARKERS.sub('', comment).split()
        tokens.extend(word for word in words if len(word) > 2)

    return [token for token in tokens if len(token) > 1]


def token_weight(token: str) -> float:
    """Weight class of a token: keyword > type name > identifier > code."""
    lower_token = token.lower()
    if lower_token in CODE_KEYWORDS:
        return KEYWORD_WEIGHT
    if lower_token in TYPE_NAMES:
        return TYPE_WEIGHT
    if len(token) > 2 and _IDENTIFIER_TOKEN.fullmatch(token):
        return IDENTIFIER_WEIGHT
    return CODE_WEIGHT


def cosine_similarity(vec1: np.ndarray, vec2: np.ndarray) -> float:
    """Calculate cosine similarity between two embeddings."""
    if vec1.shape != vec2.shape:
        return 0.0

    norm1 = np.linalg.norm(vec1)
    norm2 = np.linalg.norm(vec2)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(vec1, vec2) / (norm1 * norm2))


class HashingEmbedder:
    """Model-free embedder based on hashed, weighted bag-of-tokens vectors."""

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS, text_limit: int = DEFAULT_TEXT_LIMIT):
        if dimensions < 3:
            raise ValueError("dimensions must be at least 3")
        self.dimensions = dimensions
        self.text_limit = text_limit

    def prepare_chunk_text(self, chunk: Chunk) -> str:
        """Assemble symbol, comments, imports and code into one string, most important first."""
        parts = []

        if chunk.symbol:
            parts.append(f"[{chunk.symbol.kind.value}] {chunk.symbol.name}")
            if chunk.symbol.signature:
                parts.append(chunk.symbol.signature)

        if chunk.metadata.comments:
            parts.append(f"/* {chunk.metadata.comments} */")

        if chunk.metadata.imports:
            parts.append(f"imports: {', '.join(chunk.metadata.imports)}")

        parts.append(normalize_code(chunk.content))

        return ' '.join(parts)[:self.text_limit]

    def vectorize(self, tokens: List[str]) -> np.ndarray:
        """Hash weighted tokens into a normalized vector."""
        vector = np.zeros(self.dimensions, dtype=np.float64)
        if not tokens:
            return vector

        token_count = len(tokens)
        for token in tokens:
            contribution = token_weight(token) / token_count
            position = simple_hash(token) % self.dimensions

            vector[position] += contribution
            # Spill into neighbouring slots
            if position > 0:
                vector[position - 1] += contribution * NEIGHBOR_SPREAD
            if position < self.dimensions - 1:
                vector[position + 1] += contribution * NEIGHBOR_SPREAD

        magnitude = np.linalg.norm(vector)
        if magnitude > 0:
            vector = vector / magnitude
        return vector

    def embed_text(self, text: str) -> np.ndarray:
        """Embed free text (e.g. a search query) through the same pipeline as chunks."""
        return self.vectorize(tokenize_code(normalize_code(text)[:self.text_limit]))

    def embed_chunk(self, chunk: Chunk) -> np.ndarray:
        return self.vectorize(tokenize_code(self.prepare_chunk_text(chunk)))

