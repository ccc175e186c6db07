"""
Filesystem Access for Indexing

The index only ever reads: it lists directories to discover source files and
reads their text. Both operations go through a small async FileSystem
interface so the editor (or a test) can supply its own implementation.
"""

import os
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from ..config import IndexConfig
from .languages import is_indexable

logger = logging.getLogger(__name__)

ALLOWED_HIDDEN_DIRECTORIES = {'.github'}
MINIFIED_SUFFIXES = ('.min.js', '.min.css')


@dataclass
class DirEntry:
    """One directory listing entry."""
    name: str
    path: str
    is_directory: bool


class FileSystem(Protocol):
    """Read-only filesystem collaborator."""

    async def read_file(self, path: str) -> str:
        ...

    async def list_directory(self, path: str) -> List[DirEntry]:
        ...

    async def file_size(self, path: str) -> Optional[int]:
        ...


class LocalFileSystem:
    """FileSystem backed by the local disk; blocking calls run in a worker thread."""

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(self._read_text, path)

    async def list_directory(self, path: str) -> List[DirEntry]:
        return await asyncio.to_thread(self._scan, path)

    async def file_size(self, path: str) -> Optional[int]:
        try:
            return await asyncio.to_thread(os.path.getsize, path)
        except OSError:
            return None

    @staticmethod
    def _read_text(path: str) -> str:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    @staticmethod
    def _scan(path: str) -> List[DirEntry]:
        with os.scandir(path) as entries:
            return [
                DirEntry(name=entry.name, path=entry.path,
                         is_directory=entry.is_dir(follow_symlinks=False))
                for entry in entries
            ]


def should_ignore_directory(name: str, config: IndexConfig) -> bool:
    """Check if a directory should be skipped during the project walk."""
    if name.lower() in config.excluded_directories:
        return True
    return name.startswith('.') and name not in ALLOWED_HIDDEN_DIRECTORIES


def should_ignore_file(name: str, config: IndexConfig) -> bool:
    """Check if a file should be excluded from indexing."""
    if name in config.excluded_files:
        return True
    if name.endswith(MINIFIED_SUFFIXES):
        return True
    extension = os.path.splitext(name)[1].lower()
    return extension in config.excluded_extensions


def to_relative(root: str, path: str) -> str:
    """Project-relative path with forward slashes."""
    return os.path.relpath(path, root).replace(os.sep, '/')


async def discover_files(fs: FileSystem, root: str, config: IndexConfig) -> List[str]:
    """
    Walk the project and return the absolute paths of indexable files.

    Directories come before files at each level and names are compared
    case-insensitively, so the order is stable across runs. Unreadable
    directories are logged and skipped.
    """
    files: List[str] = []

    try:
        entries = await fs.list_directory(root)
    except OSError as e:
        logger.warning("Error listing directory %s: %s", root, e)
        return files

    entries.sort(key=lambda entry: (not entry.is_directory, entry.name.casefold()))

    for entry in entries:
        if entry.is_directory:
            if should_ignore_directory(entry.name, config):
                logger.debug("Skipping ignored directory: %s", entry.path)
                continue
            files.extend(await discover_files(fs, entry.path, config))
        elif not should_ignore_file(entry.name, config) and is_indexable(entry.name):
            files.append(entry.path)

    return files
