"""
coderag - semantic indexing and retrieval over a source tree.
"""

from .config import IndexConfig, setup_logging
from .indexing import CodebaseIndexer, SearchOptions

__version__ = "1.0.0"
__all__ = [
    "IndexConfig",
    "setup_logging",
    "CodebaseIndexer",
    "SearchOptions",
]
