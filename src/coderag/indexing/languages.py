"""
Language Tables

Maps file extensions to languages, languages to comment syntax families, and
languages to the line patterns used for symbol extraction. Supporting a new
language means adding entries here; nothing else in the pipeline needs to
change.
"""

import re
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Pattern, Tuple


class CommentFamily(Enum):
    """Comment syntax used by a language."""
    C = "c"          # //, /* */, leading *
    HASH = "hash"    # #
    NONE = "none"


PLAINTEXT = "plaintext"

EXTENSION_LANGUAGES: Dict[str, str] = {
    '.ts': 'typescript',
    '.tsx': 'typescript',
    '.js': 'javascript',
    '.jsx': 'javascript',
    '.mjs': 'javascript',
    '.cjs': 'javascript',
    '.py': 'python',
    '.java': 'java',
    '.cpp': 'cpp',
    '.cc': 'cpp',
    '.hpp': 'cpp',
    '.h': 'cpp',
    '.c': 'c',
    '.cs': 'csharp',
    '.php': 'php',
    '.rb': 'ruby',
    '.go': 'go',
    '.rs': 'rust',
    '.swift': 'swift',
    '.kt': 'kotlin',
}

COMMENT_FAMILIES: Dict[str, CommentFamily] = {
    'typescript': CommentFamily.C,
    'javascript': CommentFamily.C,
    'java': CommentFamily.C,
    'c': CommentFamily.C,
    'cpp': CommentFamily.C,
    'csharp': CommentFamily.C,
    'go': CommentFamily.C,
    'rust': CommentFamily.C,
    'swift': CommentFamily.C,
    'kotlin': CommentFamily.C,
    'php': CommentFamily.C,
    'python': CommentFamily.HASH,
    'ruby': CommentFamily.HASH,
}

# Languages where ' only opens a char literal (Rust lifetimes use a bare ')
CHAR_LITERAL_LANGUAGES = {'rust'}

# (pattern, symbol kind); group 1 is always the symbol name
_JS_PATTERNS = [
    (r'\bfunction\b\s*\*?\s*(\w+)', 'function'),
    (r'\bclass\s+(\w+)', 'class'),
    (r'\binterface\s+(\w+)', 'interface'),
    (r'\btype\s+(\w+)\s*(?:<[^>]*>)?\s*=', 'type'),
    (r'\benum\s+(\w+)', 'enum'),
]

_PYTHON_PATTERNS = [
    (r'^\s*(?:async\s+)?def\s+(\w+)', 'function'),
    (r'^\s*class\s+(\w+)', 'class'),
]

_GO_PATTERNS = [
    (r'^\s*func\s+(?:\([^)]*\)\s*)?(\w+)', 'function'),
    (r'^\s*type\s+(\w+)\s+struct\b', 'class'),
    (r'^\s*type\s+(\w+)\s+interface\b', 'interface'),
]

_RUST_PATTERNS = [
    (r'\b(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+(\w+)', 'function'),
    (r'\b(?:pub(?:\([^)]*\))?\s+)?struct\s+(\w+)', 'class'),
    (r'\b(?:pub(?:\([^)]*\))?\s+)?trait\s+(\w+)', 'interface'),
    (r'\b(?:pub(?:\([^)]*\))?\s+)?enum\s+(\w+)', 'enum'),
]

_JVM_PATTERNS = [
    # enum first: "enum class Color" is claimed as an enum
    (r'\benum\s+(?:class\s+)?(\w+)', 'enum'),
    (r'\bclass\s+(\w+)', 'class'),
    (r'\binterface\s+(\w+)', 'interface'),
]


def _compile(table: List[Tuple[str, str]]) -> List[Tuple[Pattern, str]]:
    return [(re.compile(pattern), kind) for pattern, kind in table]


SYMBOL_PATTERNS: Dict[str, List[Tuple[Pattern, str]]] = {
    'typescript': _compile(_JS_PATTERNS),
    'javascript': _compile(_JS_PATTERNS),
    'python': _compile(_PYTHON_PATTERNS),
    'go': _compile(_GO_PATTERNS),
    'rust': _compile(_RUST_PATTERNS),
    'java': _compile(_JVM_PATTERNS),
    'kotlin': _compile(_JVM_PATTERNS),
    'csharp': _compile(_JVM_PATTERNS),
}


def get_language(file_path: str) -> str:
    """Get language from file extension."""
    suffix = PurePosixPath(file_path.replace('\\', '/')).suffix.lower()
    return EXTENSION_LANGUAGES.get(suffix, PLAINTEXT)


def get_comment_family(language: str) -> CommentFamily:
    return COMMENT_FAMILIES.get(language, CommentFamily.NONE)


def get_symbol_patterns(language: str) -> List[Tuple[Pattern, str]]:
    return SYMBOL_PATTERNS.get(language, [])


def is_indexable(file_path: str) -> bool:
    """True when the file has an extension the index knows how to handle."""
    return get_language(file_path) != PLAINTEXT
