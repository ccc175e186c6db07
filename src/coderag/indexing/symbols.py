"""
Symbol Extraction and File Metadata

Locates declaration sites (functions, classes, interfaces, types...) with
per-language line patterns, and extracts the import, dependency and export
identifiers of a file. This is deliberately pattern based rather than a
parser: it tolerates invalid and partial source and never raises.
"""

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from .languages import get_symbol_patterns


MAX_SIGNATURE_LENGTH = 200


class SymbolKind(Enum):
    """Kinds of declarations the extractor can report."""
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    VARIABLE = "variable"
    CONSTANT = "constant"
    ENUM = "enum"


@dataclass(frozen=True)
class Symbol:
    """A declared symbol located in a source file."""
    name: str
    kind: SymbolKind
    file_path: str
    line: int  # 1-based
    signature: Optional[str] = None


@dataclass
class FileRecord:
    """Per-file metadata kept by the index snapshot."""
    path: str
    language: str
    size: int
    indexed_at: float
    symbols: List[Symbol] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)


def extract_symbols(content: str, language: str, file_path: str = "") -> List[Symbol]:
    """
    Extract declared symbols from file content.

    Lines are scanned top to bottom and every pattern of the language table is
    applied to each line, so symbols come back in first-seen order. A name
    matched twice on one line (e.g. "enum class Color") is kept once, with
    the kind of the first pattern in the table that claimed it.

    Args:
        content: Full file text
        language: Language tag from get_language()
        file_path: Owning path recorded on each symbol

    Returns:
        Ordered list of symbols; empty for unsupported languages
    """
    patterns = get_symbol_patterns(language)
    if not patterns or not content:
        return []

    symbols = []
    seen: Set[Tuple[str, int]] = set()

    for line_number, line in enumerate(content.split('\n'), start=1):
        matches = []
        for pattern, kind in patterns:
            for match in pattern.finditer(line):
                matches.append((match.start(1), match.group(1), SymbolKind(kind)))

        # Same line: leftmost declaration first
        matches.sort(key=lambda m: m[0])

        for _, name, kind in matches:
            key = (name, line_number)
            if key in seen:
                continue
            seen.add(key)
            symbols.append(Symbol(
                name=name,
                kind=kind,
                file_path=file_path,
                line=line_number,
                signature=line.strip()[:MAX_SIGNATURE_LENGTH]
            ))

    return symbols


_JS_IMPORT_FROM = re.compile(r'''import\s+[^;]*?\s+from\s+['"]([^'"]+)['"]''')
_JS_SIDE_EFFECT_IMPORT = re.compile(r'''^\s*import\s+['"]([^'"]+)['"]''', re.MULTILINE)
_JS_REQUIRE = re.compile(r'''require\(\s*['"]([^'"]+)['"]\s*\)''')
_PY_FROM_IMPORT = re.compile(r'^\s*from\s+(\S+)\s+import\s+', re.MULTILINE)
_PY_IMPORT = re.compile(r'^\s*import\s+([\w., ]+)', re.MULTILINE)
_JS_EXPORT_DECL = re.compile(
    r'export\s+(?:default\s+)?(?:async\s+)?(?:const|let|var|function\*?|class|interface|type|enum)\s+(\w+)'
)
_JS_EXPORT_LIST = re.compile(r'export\s*\{([^}]*)\}')


def _unique(items: List[str]) -> List[str]:
    """Remove duplicates while keeping first-seen order."""
    return list(dict.fromkeys(items))


def extract_dependencies(content: str, language: str) -> List[str]:
    """Extract module specifiers the file depends on."""
    dependencies = []

    if language in ('typescript', 'javascript'):
        for match in _JS_IMPORT_FROM.finditer(content):
            dependencies.append(match.group(1))
        for match in _JS_SIDE_EFFECT_IMPORT.finditer(content):
            dependencies.append(match.group(1))
        for match in _JS_REQUIRE.finditer(content):
            dependencies.append(match.group(1))
    elif language == 'python':
        for match in _PY_FROM_IMPORT.finditer(content):
            dependencies.append(match.group(1))
        for match in _PY_IMPORT.finditer(content):
            for name in match.group(1).split(','):
                module = name.strip().split(' ')[0]
                if module:
                    dependencies.append(module)

    return _unique(dependencies)


def extract_imports(content: str, language: str) -> List[str]:
    """Extract imports (same identifiers as the dependency list)."""
    return extract_dependencies(content, language)


def extract_exports(content: str, language: str) -> List[str]:
    """Extract exported names from JS/TS files."""
    if language not in ('typescript', 'javascript'):
        return []

    exports = [match.group(1) for match in _JS_EXPORT_DECL.finditer(content)]

    for match in _JS_EXPORT_LIST.finditer(content):
        for name in match.group(1).split(','):
            # export { a as b } exports b
            parts = name.strip().split()
            if parts:
                exports.append(parts[-1])

    return _unique(exports)


def build_file_record(path: str, content: str, language: str,
                      indexed_at: Optional[float] = None) -> FileRecord:
    """Run symbol and metadata extraction for one file."""
    return FileRecord(
        path=path,
        language=language,
        size=len(content.encode('utf-8')),
        indexed_at=indexed_at if indexed_at is not None else time.time(),
        symbols=extract_symbols(content, language, path),
        imports=extract_imports(content, language),
        dependencies=extract_dependencies(content, language),
        exports=extract_exports(content, language)
    )
