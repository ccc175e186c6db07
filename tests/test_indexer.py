"""
Codebase Indexer Tests

End-to-end behavior of indexing, incremental updates, cached search and
context retrieval over a small on-disk project.
"""

import asyncio
import os

import pytest

from coderag.config import IndexConfig
from coderag.indexing import CodebaseIndexer, Relevance, SearchOptions
from coderag.indexing.filesystem import LocalFileSystem

from conftest import FakeClock

PRICING_FUNCTION_ID = "src/pricing.ts_calculateTotal_4"
LOGGER_CLASS_ID = "src/logger.ts_Logger_1"


class GatedFileSystem(LocalFileSystem):
    """Local filesystem that pauses on one path until released."""

    def __init__(self):
        self.gated_path = None
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def _gate(self, path):
        if path == self.gated_path and not self.release.is_set():
            self.reached.set()
            await self.release.wait()

    async def list_directory(self, path):
        await self._gate(path)
        return await super().list_directory(path)

    async def read_file(self, path):
        content = await super().read_file(path)
        await self._gate(path)
        return content


class TestIndexProject:

    async def test_index_creates_chunks_and_embeddings(self, indexer, project):
        stats = await indexer.index_project(project)

        assert stats.from_cache is False
        assert stats.total_files_scanned == 2
        assert stats.total_files_indexed == 2
        assert stats.total_chunks_created == 4
        assert stats.total_embeddings_generated == 4
        assert stats.chunks_by_type == {"file": 2, "function": 1, "class": 1}
        assert stats.errors == []

        snapshot = indexer.snapshot
        assert snapshot.project_path == os.path.normpath(str(project))
        assert PRICING_FUNCTION_ID in snapshot.chunks
        assert LOGGER_CLASS_ID in snapshot.chunks
        assert set(snapshot.files) == {"src/pricing.ts", "src/logger.ts"}

    async def test_reindex_within_staleness_is_noop(self, indexer, project, clock):
        await indexer.index_project(project)
        snapshot = indexer.snapshot

        clock.advance(60)
        stats = await indexer.index_project(project)

        assert stats.from_cache is True
        assert stats.total_chunks_created == 4
        assert indexer.snapshot is snapshot

    async def test_reindex_after_staleness_rebuilds_same_ids(self, indexer, project, clock):
        await indexer.index_project(project)
        first = indexer.snapshot
        first_ids = list(first.chunks)

        clock.advance(301)
        stats = await indexer.index_project(project)

        assert stats.from_cache is False
        assert indexer.snapshot is not first
        assert list(indexer.snapshot.chunks) == first_ids

    async def test_force_reindexes(self, indexer, project):
        await indexer.index_project(project)
        first = indexer.snapshot

        stats = await indexer.index_project(project, force=True)

        assert stats.from_cache is False
        assert indexer.snapshot is not first

    async def test_concurrent_calls_share_one_pass(self, indexer, project):
        first, second = await asyncio.gather(
            indexer.index_project(project),
            indexer.index_project(project),
        )

        assert first is second
        assert indexer.snapshot.chunks

    async def test_unreadable_file_is_recorded_and_skipped(self, indexer, project):
        (project / "src" / "broken.ts").write_bytes(b"\xff\xfe\xfa")

        stats = await indexer.index_project(project)

        assert stats.total_files_scanned == 3
        assert stats.total_files_indexed == 2
        assert stats.errors == ["Could not decode file: src/broken.ts"]

    async def test_large_files_are_skipped(self, project, clock):
        indexer = CodebaseIndexer(IndexConfig(max_file_size=100), clock=clock)

        stats = await indexer.index_project(project)

        # pricing.ts is over the limit, logger.ts is not
        assert set(indexer.snapshot.files) == {"src/logger.ts"}
        assert stats.errors == []

    async def test_empty_project(self, indexer, tmp_path):
        stats = await indexer.index_project(tmp_path)

        assert stats.total_files_scanned == 0
        assert indexer.get_stats()["chunk_count"] == 0

    async def test_rejects_bad_path(self, indexer):
        with pytest.raises(TypeError):
            await indexer.index_project(None)
        with pytest.raises(ValueError):
            await indexer.index_project("")


class TestSearch:

    async def test_search_before_index_is_empty(self, indexer):
        assert await indexer.search("anything") == []

    async def test_ranks_matching_function_first(self, indexer, project):
        await indexer.index_project(project)

        results = await indexer.search("calculate price", SearchOptions(min_score=0))
        ids = [r.chunk.id for r in results]

        assert PRICING_FUNCTION_ID in ids
        assert LOGGER_CLASS_ID in ids
        assert ids.index(PRICING_FUNCTION_ID) < ids.index(LOGGER_CLASS_ID)
        pricing = results[ids.index(PRICING_FUNCTION_ID)]
        assert pricing.relevance in (Relevance.HIGH, Relevance.MEDIUM)

    async def test_cached_results_are_identical(self, indexer, project):
        await indexer.index_project(project)

        first = await indexer.search("calculate price")
        second = await indexer.search("calculate price")

        assert [(r.chunk.id, r.score) for r in first] == [(r.chunk.id, r.score) for r in second]
        assert indexer.get_stats()["cache_size"] == 1

    async def test_uncached_results_have_same_scores(self, indexer, project):
        await indexer.index_project(project)
        options = SearchOptions(use_cache=False)

        first = await indexer.search("calculate price", options)
        second = await indexer.search("calculate price", options)

        assert [(r.chunk.id, r.score) for r in first] == [(r.chunk.id, r.score) for r in second]
        assert indexer.get_stats()["cache_size"] == 0

    async def test_cache_is_bounded(self, project):
        indexer = CodebaseIndexer(IndexConfig(max_cache_entries=3), clock=FakeClock())
        await indexer.index_project(project)

        for query in ("one", "two", "three", "four", "five"):
            await indexer.search(query)

        assert indexer.get_stats()["cache_size"] == 3

    async def test_cache_expires(self, indexer, project, clock):
        await indexer.index_project(project)
        await indexer.search("calculate price")

        clock.advance(301)
        await indexer.search("logger")

        # The expired entry is only dropped when looked up again
        assert indexer.get_stats()["cache_size"] == 2
        await indexer.search("calculate price")
        assert indexer.get_stats()["cache_size"] == 2

    async def test_file_type_filter(self, indexer, project):
        (project / "tools.py").write_text("def calculate_price(items):\n    return sum(items)\n",
                                          encoding="utf-8")
        await indexer.index_project(project)

        results = await indexer.search("calculate price", SearchOptions(file_types=["py"], min_score=0))

        assert results
        assert all(r.chunk.file_path.endswith(".py") for r in results)

    async def test_rejects_bad_input(self, indexer, project):
        await indexer.index_project(project)

        with pytest.raises(TypeError):
            await indexer.search(123)
        with pytest.raises(TypeError):
            await indexer.search("q", {"limit": 3})
        with pytest.raises(ValueError):
            await indexer.search("q", SearchOptions(limit=-1))
        with pytest.raises(TypeError):
            await indexer.search("q", SearchOptions(limit="3"))


class TestUpdateFileIndex:

    async def test_update_replaces_only_that_file(self, indexer, project):
        await indexer.index_project(project)
        logger_chunks = indexer.snapshot.chunks_for_file("src/logger.ts")
        logger_embedding = indexer.snapshot.embeddings[LOGGER_CLASS_ID]

        (project / "src" / "pricing.ts").write_text(
            "// Calculates the total price\nexport function calculateTotal(items) {\n  return items.length * 2;\n}\n",
            encoding="utf-8"
        )
        updated = await indexer.update_file_index(project, "src/pricing.ts")

        assert updated is True
        snapshot = indexer.snapshot
        pricing_chunks = snapshot.chunks_for_file("src/pricing.ts")
        function_chunk = next(c for c in pricing_chunks if c.symbol)

        assert function_chunk.id == "src/pricing.ts_calculateTotal_2"
        assert "items.length * 2" in function_chunk.content
        assert PRICING_FUNCTION_ID not in snapshot.chunks
        assert PRICING_FUNCTION_ID not in snapshot.embeddings
        assert snapshot.chunks_for_file("src/logger.ts") == logger_chunks
        assert snapshot.embeddings[LOGGER_CLASS_ID] is logger_embedding

    async def test_update_accepts_absolute_path(self, indexer, project):
        await indexer.index_project(project)

        assert await indexer.update_file_index(project, str(project / "src" / "pricing.ts"))

    async def test_update_clears_query_cache(self, indexer, project):
        await indexer.index_project(project)
        await indexer.search("calculate price")

        await indexer.update_file_index(project, "src/pricing.ts")

        assert indexer.get_stats()["cache_size"] == 0

    async def test_deleted_file_is_removed(self, indexer, project):
        await indexer.index_project(project)
        (project / "src" / "pricing.ts").unlink()

        assert await indexer.update_file_index(project, "src/pricing.ts")
        assert indexer.snapshot.chunks_for_file("src/pricing.ts") == []
        assert "src/pricing.ts" not in indexer.snapshot.files

    async def test_new_file_is_added(self, indexer, project):
        await indexer.index_project(project)
        (project / "src" / "cart.ts").write_text("export class Cart {\n}\n", encoding="utf-8")

        assert await indexer.update_file_index(project, "src/cart.ts")
        assert "src/cart.ts_Cart_1" in indexer.snapshot.chunks

    async def test_update_without_index_is_ignored(self, indexer, project):
        assert await indexer.update_file_index(project, "src/pricing.ts") is False
        assert indexer.snapshot is None

    async def test_update_outside_project_rejected(self, indexer, project, tmp_path_factory):
        await indexer.index_project(project)
        outside = tmp_path_factory.mktemp("elsewhere") / "x.ts"

        with pytest.raises(ValueError):
            await indexer.update_file_index(project, str(outside))


class TestRelevantContext:

    async def test_indexes_on_demand_and_returns_files(self, indexer, project):
        context = await indexer.get_relevant_context("calculate price", project, limit=2)

        assert indexer.snapshot is not None
        assert context
        assert context[0].path == "src/pricing.ts"
        assert "calculateTotal" in context[0].content
        assert len(context) <= 2
        assert [c.score for c in context] == sorted((c.score for c in context), reverse=True)

    async def test_switching_project_replaces_index(self, indexer, project, tmp_path_factory):
        other = tmp_path_factory.mktemp("other")
        (other / "main.py").write_text("def calculate_price(items):\n    return sum(items)\n",
                                       encoding="utf-8")
        await indexer.index_project(project)

        context = await indexer.get_relevant_context("calculate price", other)

        assert indexer.snapshot.project_path == os.path.normpath(str(other))
        assert [c.path for c in context] == ["main.py"]

    async def test_rejects_bad_limit(self, indexer, project):
        with pytest.raises(TypeError):
            await indexer.get_relevant_context("q", project, limit="5")
        with pytest.raises(ValueError):
            await indexer.get_relevant_context("q", project, limit=-1)


class TestStatsAndClear:

    async def test_stats(self, indexer, project):
        await indexer.index_project(project)
        stats = indexer.get_stats()

        assert stats["chunk_count"] == 4
        assert stats["embedding_count"] == 4
        assert stats["file_count"] == 2
        assert stats["path"] == os.path.normpath(str(project))
        assert stats["chunk_types"]["function"] == 1

    async def test_clear_everything(self, indexer, project):
        await indexer.index_project(project)
        indexer.clear_cache()

        assert indexer.get_stats() == {
            "chunk_count": 0,
            "embedding_count": 0,
            "cache_size": 0,
            "path": None,
            "file_count": 0,
            "chunk_types": {},
            "indexed_at": None,
        }

    async def test_clear_other_path_keeps_index(self, indexer, project, tmp_path_factory):
        await indexer.index_project(project)
        indexer.clear_cache(tmp_path_factory.mktemp("unrelated"))

        assert indexer.get_stats()["chunk_count"] == 4

        indexer.clear_cache(project)
        assert indexer.get_stats()["chunk_count"] == 0


class TestConcurrentWrites:

    async def test_update_during_full_reindex_is_kept(self, project, clock):
        fs = GatedFileSystem()
        indexer = CodebaseIndexer(filesystem=fs, clock=clock)
        await indexer.index_project(project)

        pricing = project / "src" / "pricing.ts"
        fs.gated_path = os.path.normpath(str(pricing))
        reindex = asyncio.ensure_future(indexer.index_project(project, force=True))
        await fs.reached.wait()

        # The full pass has already read the old content
        pricing.write_text("export function sumPrices(items) {\n  return 0;\n}\n", encoding="utf-8")
        update = asyncio.ensure_future(indexer.update_file_index(project, "src/pricing.ts"))
        await asyncio.sleep(0)
        fs.release.set()

        await reindex
        assert await update is True
        assert "src/pricing.ts_sumPrices_1" in indexer.snapshot.chunks
        assert PRICING_FUNCTION_ID not in indexer.snapshot.chunks

    async def test_latest_requested_project_wins(self, project, clock, tmp_path_factory):
        other = tmp_path_factory.mktemp("beta")
        (other / "beta.py").write_text("def calculate_price(items):\n    return sum(items)\n",
                                       encoding="utf-8")
        fs = GatedFileSystem()
        fs.gated_path = os.path.normpath(str(project))
        indexer = CodebaseIndexer(filesystem=fs, clock=clock)

        first = asyncio.ensure_future(indexer.index_project(project))
        await fs.reached.wait()

        context = await indexer.get_relevant_context("calculate price", other)
        fs.release.set()
        await first

        assert [c.path for c in context] == ["beta.py"]
        assert indexer.snapshot.project_path == os.path.normpath(str(other))
