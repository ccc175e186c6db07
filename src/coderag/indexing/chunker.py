"""
Semantic Code Chunking

Splits a source file into retrievable chunks: one preview chunk for the whole
file, one chunk per extracted symbol, and filler blocks for larger stretches
of code between symbols. Symbol bodies are bounded with a brace/paren
scanner that ignores braces inside string literals and comments.
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol

from ..config import IndexConfig
from .languages import CHAR_LITERAL_LANGUAGES, CommentFamily, get_comment_family, get_language
from .symbols import FileRecord, Symbol, SymbolKind

logger = logging.getLogger(__name__)

QUOTE_CHARS = ('"', "'", '`')
_CHAR_LITERAL = re.compile(r"'(?:\\u\{[0-9a-fA-F]+\}|\\.|[^\\'])'")


class ChunkType(Enum):
    """Types of code chunks for semantic classification."""
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    METHOD = "method"
    BLOCK = "block"
    FILE = "file"


@dataclass
class ChunkMetadata:
    """Metadata associated with each code chunk."""
    comments: Optional[str] = None
    imports: List[str] = None
    exports: List[str] = None
    dependencies: List[str] = None

    def __post_init__(self):
        if self.imports is None:
            self.imports = []
        if self.exports is None:
            self.exports = []
        if self.dependencies is None:
            self.dependencies = []


@dataclass
class Chunk:
    """Represents a semantic chunk of code."""
    id: str
    file_path: str
    language: str
    content: str
    chunk_type: ChunkType
    start_line: int
    end_line: int
    metadata: ChunkMetadata
    symbol: Optional[Symbol] = None

    @staticmethod
    def file_id(file_path: str) -> str:
        return f"{file_path}_file"

    @staticmethod
    def symbol_id(file_path: str, symbol: Symbol) -> str:
        return f"{file_path}_{symbol.name}_{symbol.line}"

    @staticmethod
    def block_id(file_path: str, index: int) -> str:
        return f"{file_path}_block_{index}"


class BoundaryScanner(Protocol):
    """Finds the last line of a symbol body starting at its declaration."""

    def find_end(self, lines: List[str], start: int, track_parens: bool,
                 max_lines: int) -> Optional[int]:
        ...


class BraceBoundaryScanner:
    """
    Brace-depth scanner with a single active-quote state.

    Characters inside '...', "..." and `...` literals never change depth. A
    quote preceded by a backslash does not open or close a literal. Comments
    of the file's comment family are skipped as well. Single and double quoted
    literals end at the end of their line in C-family languages; template
    literals (and Python triple quotes) may span lines.

    With char_literals_only, a single quote is ordinary text unless it starts
    a complete char literal such as '{' or '\\n', so Rust lifetimes like 'a
    do not open a literal.
    """

    def __init__(self, comment_family: CommentFamily = CommentFamily.C,
                 char_literals_only: bool = False):
        self.comment_family = comment_family
        self.char_literals_only = char_literals_only

    def find_end(self, lines: List[str], start: int, track_parens: bool,
                 max_lines: int) -> Optional[int]:
        """Return the 0-based closing line, or None when not found within max_lines."""
        brace_count = 0
        paren_count = 0
        found_start = False
        quote: Optional[str] = None
        in_block_comment = False

        for i in range(start, min(start + max_lines, len(lines))):
            line = lines[i]
            j = 0

            while j < len(line):
                char = line[j]
                escaped = j > 0 and line[j - 1] == '\\'

                if in_block_comment:
                    if line.startswith('*/', j):
                        in_block_comment = False
                        j += 1
                elif quote is not None:
                    if char == quote and not escaped:
                        quote = None
                elif char == "'" and self.char_literals_only:
                    literal = _CHAR_LITERAL.match(line, j)
                    if literal:
                        j = literal.end() - 1
                elif char in QUOTE_CHARS and not escaped:
                    quote = char
                elif self._starts_line_comment(line, j):
                    break
                elif self.comment_family == CommentFamily.C and line.startswith('/*', j):
                    in_block_comment = True
                    j += 1
                elif char == '(' and track_parens:
                    paren_count += 1
                elif char == ')' and track_parens:
                    paren_count -= 1
                elif char == '{':
                    brace_count += 1
                    found_start = True
                elif char == '}':
                    brace_count -= 1
                    if found_start and brace_count == 0 and paren_count == 0:
                        return i
                j += 1

            if self.comment_family == CommentFamily.C and quote in ('"', "'"):
                quote = None

        return None

    def _starts_line_comment(self, line: str, j: int) -> bool:
        if self.comment_family == CommentFamily.C:
            return line.startswith('//', j)
        if self.comment_family == CommentFamily.HASH:
            return line[j] == '#'
        return False


_PUNCTUATION_ONLY = re.compile(r'^[{}\[\];,()]*$')
_C_LINE_COMMENT = re.compile(r'^//+\s*')
_C_BLOCK_OPEN = re.compile(r'^/\*+\s*')
_C_STAR = re.compile(r'^\*+(?!/)\s*')
_C_BLOCK_CLOSE = re.compile(r'\s*\*+/$')
_HASH_COMMENT = re.compile(r'^#+\s*')


def extract_leading_comments(lines: List[str], symbol_index: int,
                             family: CommentFamily, max_lookback: int = 10) -> List[str]:
    """
    Collect the comment lines directly above a declaration.

    Walks upward at most max_lookback lines and stops at the first line that
    is neither a comment, blank, nor punctuation only. Comment markers are
    stripped; lines are returned top to bottom.
    """
    if family == CommentFamily.NONE:
        return []

    comments: List[str] = []
    lowest = max(0, symbol_index - max_lookback)

    for i in range(symbol_index - 1, lowest - 1, -1):
        line = lines[i].strip()

        if family == CommentFamily.C:
            if line.startswith('//'):
                text = _C_LINE_COMMENT.sub('', line)
            elif line.startswith('/*'):
                text = _C_BLOCK_CLOSE.sub('', _C_BLOCK_OPEN.sub('', line))
            elif line.startswith('*'):
                text = _C_BLOCK_CLOSE.sub('', _C_STAR.sub('', line))
            elif _PUNCTUATION_ONLY.match(line):
                continue
            else:
                break
        else:
            if line.startswith('#'):
                text = _HASH_COMMENT.sub('', line)
            elif not line or line.startswith('@'):
                # blank lines and decorators
                continue
            else:
                break

        text = text.strip()
        if text:
            comments.insert(0, text)

    return comments


class CodeChunker:
    """Splits files into file, symbol and block chunks."""

    def __init__(self, config: Optional[IndexConfig] = None,
                 scanner: Optional[BoundaryScanner] = None):
        self.config = config or IndexConfig()
        self._scanner = scanner

    def chunk_file(self, file_path: str, content: str, symbols: List[Symbol],
                   record: Optional[FileRecord] = None) -> List[Chunk]:
        """
        Chunk a file based on its extracted symbols.

        Args:
            file_path: Project-relative path of the file
            content: Full file text
            symbols: Symbols from extract_symbols(), in extraction order
            record: File metadata supplying imports/exports/dependencies

        Returns:
            The file chunk, then symbol chunks, then block chunks
        """
        lines = content.split('\n')
        language = record.language if record else get_language(file_path)
        imports = list(record.imports) if record else []
        exports = list(record.exports) if record else []
        dependencies = list(record.dependencies) if record else []

        chunks = [Chunk(
            id=Chunk.file_id(file_path),
            file_path=file_path,
            language=language,
            content=content[:self.config.file_preview_length],
            chunk_type=ChunkType.FILE,
            start_line=1,
            end_line=min(self.config.file_preview_lines, len(lines)),
            metadata=ChunkMetadata(
                imports=imports,
                exports=exports,
                dependencies=dependencies
            )
        )]

        for symbol in symbols:
            try:
                chunks.append(self._symbol_chunk(file_path, lines, symbol, language,
                                                 imports, dependencies))
            except Exception as e:
                logger.debug("Error extracting symbol chunk %s in %s: %s", symbol.name, file_path, e)

        chunks.extend(self._block_chunks(file_path, content, lines, symbols, language))
        return chunks

    def _scanner_for(self, language: str) -> BoundaryScanner:
        if self._scanner is not None:
            return self._scanner
        return BraceBoundaryScanner(get_comment_family(language),
                                    char_literals_only=language in CHAR_LITERAL_LANGUAGES)

    def _find_symbol_end(self, lines: List[str], start: int, symbol: Symbol,
                         language: str) -> int:
        """Locate the closing line of a symbol body, falling back to a fixed window."""
        scanner = self._scanner_for(language)
        end = None

        if symbol.kind == SymbolKind.FUNCTION:
            end = scanner.find_end(lines, start, True, self.config.max_function_lines)
        elif symbol.kind in (SymbolKind.CLASS, SymbolKind.INTERFACE):
            end = scanner.find_end(lines, start, False, self.config.max_class_lines)

        if end is None:
            end = min(start + self.config.default_end_line_offset, len(lines) - 1)

        return end

    def _symbol_chunk(self, file_path: str, lines: List[str], symbol: Symbol,
                      language: str, imports: List[str], dependencies: List[str]) -> Chunk:
        start = min(max(symbol.line - 1, 0), len(lines) - 1)
        end = self._find_symbol_end(lines, start, symbol, language)

        comments = extract_leading_comments(
            lines, start, get_comment_family(language), self.config.max_lookback_lines
        )

        chunk_type = {
            SymbolKind.FUNCTION: ChunkType.FUNCTION,
            SymbolKind.CLASS: ChunkType.CLASS,
            SymbolKind.INTERFACE: ChunkType.INTERFACE,
        }.get(symbol.kind, ChunkType.BLOCK)

        return Chunk(
            id=Chunk.symbol_id(file_path, symbol),
            file_path=file_path,
            language=language,
            content='\n'.join(lines[start:end + 1]),
            chunk_type=chunk_type,
            start_line=start + 1,
            end_line=end + 1,
            metadata=ChunkMetadata(
                comments='\n'.join(comments) if comments else None,
                imports=list(imports),
                dependencies=list(dependencies)
            ),
            symbol=symbol
        )

    def _block_chunks(self, file_path: str, content: str, lines: List[str],
                      symbols: List[Symbol], language: str) -> List[Chunk]:
        """Create filler chunks for code lying between symbol declarations."""
        if not symbols:
            return [Chunk(
                id=Chunk.block_id(file_path, 0),
                file_path=file_path,
                language=language,
                content=content[:self.config.full_content_length],
                chunk_type=ChunkType.BLOCK,
                start_line=1,
                end_line=min(self.config.file_preview_lines, len(lines)),
                metadata=ChunkMetadata()
            )]

        chunks = []
        last_end = 0

        for i, symbol in enumerate(symbols):
            symbol_start = symbol.line - 1

            if symbol_start > last_end + self.config.min_block_gap:
                block_content = '\n'.join(lines[last_end:symbol_start])
                if len(block_content.strip()) > self.config.min_block_length:
                    chunks.append(Chunk(
                        id=Chunk.block_id(file_path, i),
                        file_path=file_path,
                        language=language,
                        content=block_content[:self.config.block_content_length],
                        chunk_type=ChunkType.BLOCK,
                        start_line=last_end + 1,
                        end_line=symbol_start,
                        metadata=ChunkMetadata()
                    ))

            last_end = symbol_start

        return chunks
