"""
Configuration for the Codebase Index

Every tunable constant of the indexing pipeline lives on IndexConfig so a
project session can be created with different limits. Values can also be
loaded from the environment (or a .env file) with IndexConfig.from_env().
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Set

# Load environment variables from .env file
from dotenv import load_dotenv


ENV_PREFIX = "CODERAG_"

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


@dataclass
class IndexConfig:
    """Limits and constants used by the chunker, embedder and index store."""

    # Chunking
    file_preview_length: int = 2000
    file_preview_lines: int = 50
    block_content_length: int = 500
    full_content_length: int = 1000
    max_lookback_lines: int = 10
    min_block_gap: int = 5
    min_block_length: int = 50
    max_function_lines: int = 200
    max_class_lines: int = 500
    default_end_line_offset: int = 20

    # Embedding
    embedding_dimensions: int = 256
    embedding_text_limit: int = 1500
    embedding_batch_size: int = 50

    # Search and cache
    default_limit: int = 10
    default_min_score: float = 0.1
    cache_ttl_seconds: float = 5 * 60
    max_cache_entries: int = 100

    # Context assembly
    context_content_limit: int = 2500
    top_chunks_per_file: int = 3
    context_window_lines: int = 5

    # Project walk
    staleness_seconds: float = 5 * 60
    max_file_size: int = 500 * 1024
    file_read_batch_size: int = 10
    excluded_directories: Set[str] = field(default_factory=lambda: {
        'node_modules', '.git', '.vscode', '.idea', 'dist', 'build',
        'target', 'bin', 'obj', '.next', '.nuxt', '.output', 'coverage',
        '.coverage', '__pycache__', '.pytest_cache', '.venv', 'venv',
        'env', 'site-packages'
    })
    excluded_extensions: Set[str] = field(default_factory=lambda: {
        '.log', '.tmp', '.cache', '.pid'
    })
    excluded_files: Set[str] = field(default_factory=lambda: {
        '.DS_Store', '.eslintcache'
    })

    def __post_init__(self):
        if self.embedding_dimensions < 3:
            raise ValueError("embedding_dimensions must be at least 3")
        if self.max_cache_entries < 1:
            raise ValueError("max_cache_entries must be positive")
        if self.embedding_batch_size < 1 or self.file_read_batch_size < 1:
            raise ValueError("batch sizes must be positive")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'IndexConfig':
        """Build a config from CODERAG_* environment variables."""
        load_dotenv(env_file)

        overrides = {}
        int_fields = {
            'MAX_CACHE_ENTRIES': 'max_cache_entries',
            'MAX_FILE_SIZE': 'max_file_size',
            'EMBEDDING_DIM': 'embedding_dimensions',
            'EMBEDDING_BATCH_SIZE': 'embedding_batch_size',
        }
        float_fields = {
            'CACHE_TTL': 'cache_ttl_seconds',
            'STALENESS': 'staleness_seconds',
            'MIN_SCORE': 'default_min_score',
        }

        for env_name, attr in int_fields.items():
            value = os.getenv(ENV_PREFIX + env_name)
            if value:
                try:
                    overrides[attr] = int(value)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{env_name} must be an integer, got {value!r}")

        for env_name, attr in float_fields.items():
            value = os.getenv(ENV_PREFIX + env_name)
            if value:
                try:
                    overrides[attr] = float(value)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{env_name} must be a number, got {value!r}")

        return cls(**overrides)


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the package logger once; later calls only adjust the level."""
    level_name = (level or os.getenv(ENV_PREFIX + 'LOG_LEVEL') or 'INFO').upper()
    log_file = log_file or os.getenv(ENV_PREFIX + 'LOG_FILE')

    logger = logging.getLogger('coderag')
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Create handlers only the first time
    if not getattr(logger, 'handler_set', False):
        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        logger.handler_set = True

    return logger
