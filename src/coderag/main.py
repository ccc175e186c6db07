"""
coderag Command Line Interface
Index a project and query it from the terminal, or serve the index over HTTP.
"""

import sys
import asyncio
import argparse
import logging
from typing import List, Optional

from .config import IndexConfig, setup_logging
from .indexing import CodebaseIndexer, SearchOptions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='coderag', description='Semantic codebase index and context retrieval')
    parser.add_argument('--log-level', type=str, default=None, help='Logging level (default: INFO)')
    parser.add_argument('--env-file', type=str, default=None, help='Path to a .env file with CODERAG_* settings')

    subparsers = parser.add_subparsers(dest='command', required=True)

    index_parser = subparsers.add_parser('index', help='Index a project')
    index_parser.add_argument('path', type=str, help='Project root')
    index_parser.add_argument('--force', action='store_true', help='Reindex even if the index is fresh')

    search_parser = subparsers.add_parser('search', help='Search a project')
    search_parser.add_argument('path', type=str, help='Project root')
    search_parser.add_argument('query', type=str, help='Search query')
    search_parser.add_argument('-k', '--limit', type=int, default=None, help='Maximum number of results')
    search_parser.add_argument('--min-score', type=float, default=None, help='Minimum similarity score')
    search_parser.add_argument('--file-type', action='append', dest='file_types',
                               help='Restrict to an extension (repeatable)')

    context_parser = subparsers.add_parser('context', help='Print LLM context for a request')
    context_parser.add_argument('path', type=str, help='Project root')
    context_parser.add_argument('query', type=str, help='The request')
    context_parser.add_argument('-l', '--limit', type=int, default=5, help='Maximum number of files')

    stats_parser = subparsers.add_parser('stats', help='Index a project and print statistics')
    stats_parser.add_argument('path', type=str, help='Project root')

    serve_parser = subparsers.add_parser('serve', help='Start the HTTP server')
    serve_parser.add_argument('--host', type=str, default='127.0.0.1', help='Bind address')
    serve_parser.add_argument('-p', '--port', type=int, default=8000, help='Port')

    return parser


async def run_index(indexer: CodebaseIndexer, args) -> int:
    stats = await indexer.index_project(args.path, force=args.force)
    print(f"Indexed {stats.total_files_indexed}/{stats.total_files_scanned} files: "
          f"{stats.total_chunks_created} chunks in {stats.indexing_time_seconds:.2f}s")
    for chunk_type, count in sorted(stats.chunks_by_type.items()):
        print(f"  {chunk_type}: {count}")
    for error in stats.errors:
        print(f"  error: {error}")
    return 0


async def run_search(indexer: CodebaseIndexer, args) -> int:
    await indexer.index_project(args.path)
    options = SearchOptions(limit=args.limit, min_score=args.min_score, file_types=args.file_types)
    results = await indexer.search(args.query, options)
    if not results:
        print("No results")
        return 1

    for result in results:
        chunk = result.chunk
        name = f" {chunk.symbol.name}" if chunk.symbol else ""
        print(f"{result.score:.3f} [{result.relevance.value}] {chunk.file_path}:"
              f"{chunk.start_line}-{chunk.end_line} {chunk.chunk_type.value}{name}")
    return 0


async def run_context(indexer: CodebaseIndexer, args) -> int:
    context = await indexer.get_relevant_context(args.query, args.path, args.limit)
    if not context:
        print("No relevant files")
        return 1

    for item in context:
        print(f"=== {item.path} ({item.score:.3f}) ===")
        print(item.content)
        print()
    return 0


async def run_stats(indexer: CodebaseIndexer, args) -> int:
    await indexer.index_project(args.path)
    stats = indexer.get_stats()
    for key in ('path', 'file_count', 'chunk_count', 'embedding_count', 'cache_size'):
        print(f"{key}: {stats[key]}")
    for chunk_type, count in sorted(stats['chunk_types'].items()):
        print(f"  {chunk_type}: {count}")
    return 0


COMMANDS = {
    'index': run_index,
    'search': run_search,
    'context': run_context,
    'stats': run_stats,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command == 'serve':
        from .webapp.web_interface import run
        run(host=args.host, port=args.port)
        return 0

    try:
        indexer = CodebaseIndexer(IndexConfig.from_env(args.env_file))
        return asyncio.run(COMMANDS[args.command](indexer, args))
    except (TypeError, ValueError) as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == '__main__':
    sys.exit(main())
