"""
Tests for the indexing path

ContentIndexer skip rules and tags, and the IndexingOutbox worker.
"""

import asyncio
import json
import logging
from unittest.mock import MagicMock

import pytest

from atrium.common.schemas import ContentType
from atrium.common.vector_store import InMemoryVectorStore
from atrium.indexer import ContentIndexer, IndexingJob, IndexingOutbox

from .conftest import FakeEmbeddingService


class TestContentIndexer:
    @pytest.fixture
    def embedding(self):
        return FakeEmbeddingService()

    @pytest.fixture
    def store(self, embedding):
        return InMemoryVectorStore(embedding)

    @pytest.fixture
    def indexer(self, store, embedding):
        return ContentIndexer(store, embedding)

    def test_short_text_never_reaches_embedder(self, indexer, embedding, store):
        assert indexer.index("ws1", "m1", ContentType.MESSAGE, "hi") is None
        assert indexer.index("ws1", "m2", ContentType.MESSAGE, "   ") is None
        assert embedding.calls == 0
        assert store.count("ws1") == 0

    def test_unavailable_provider_skips(self, caplog):
        embedding = FakeEmbeddingService(available=False)
        store = MagicMock()
        indexer = ContentIndexer(store, embedding)

        with caplog.at_level(logging.INFO, logger="atrium.indexer.content_indexer"):
            assert indexer.index("ws1", "m1", ContentType.MESSAGE, "hello there") is None

        store.add.assert_not_called()
        assert "Embedding provider unavailable" in caplog.text

    def test_tags_written(self, indexer, store):
        indexer.index("ws1", "n1", ContentType.NOTE, "roadmap notes", {"channelId": "c1"})

        hit = store.search("ws1", "roadmap")[0]
        assert hit.key == "n1"
        assert hit.filter_tags == {"workspaceId": "ws1", "contentType": "note", "channelId": "c1"}

    def test_no_channel_tag_without_channel(self, indexer, store):
        indexer.index("ws1", "t1", ContentType.TASK, "write docs")
        assert "channelId" not in store.search("ws1", "docs")[0].filter_tags

    def test_reindex_keeps_single_entry(self, indexer, store):
        first = indexer.index("ws1", "m1", ContentType.MESSAGE, "first draft")
        second = indexer.index("ws1", "m1", ContentType.MESSAGE, "second draft")

        assert first == second
        assert store.count("ws1") == 1

    def test_store_errors_propagate(self, embedding):
        store = MagicMock()
        store.add.side_effect = RuntimeError("disk full")
        with pytest.raises(RuntimeError):
            ContentIndexer(store, embedding).index("ws1", "m1", ContentType.MESSAGE, "hello there")


class TestIndexingOutbox:
    @pytest.fixture
    def indexer(self):
        embedding = FakeEmbeddingService()
        return ContentIndexer(InMemoryVectorStore(embedding), embedding)

    @pytest.mark.asyncio
    async def test_process_extracts_rich_text(self):
        indexer = MagicMock()
        indexer.index.return_value = "entry-1"
        outbox = IndexingOutbox(indexer)

        body = json.dumps({"ops": [{"insert": "Release notes\n"}]})
        job = IndexingJob("ws1", "m1", ContentType.MESSAGE, body, {"channelId": "c1"})

        assert await outbox.process(job) == "entry-1"
        indexer.index.assert_called_once_with("ws1", "m1", ContentType.MESSAGE, "Release notes", {"channelId": "c1"})
        assert outbox.get_stats()["indexed"] == 1

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self, caplog):
        indexer = MagicMock()
        indexer.index.side_effect = RuntimeError("store down")
        outbox = IndexingOutbox(indexer)

        with caplog.at_level(logging.WARNING, logger="atrium.indexer.outbox"):
            result = await outbox.process(IndexingJob("ws1", "m1", ContentType.MESSAGE, "hello there"))

        assert result is None
        assert outbox.get_stats()["failed"] == 1
        assert "Indexing failed" in caplog.text

    @pytest.mark.asyncio
    async def test_worker_drains_queue(self, indexer):
        outbox = IndexingOutbox(indexer)
        outbox.start()
        assert outbox.running

        outbox.enqueue(IndexingJob("ws1", "m1", ContentType.MESSAGE, "standup notes"))
        outbox.enqueue(IndexingJob("ws1", "m2", ContentType.MESSAGE, "ok"))
        await asyncio.wait_for(outbox.drain(), timeout=5)

        stats = outbox.get_stats()
        assert stats["enqueued"] == 2
        assert stats["indexed"] == 1
        assert stats["skipped"] == 1
        assert stats["pending"] == 0

        await outbox.stop()
        assert not outbox.running

    @pytest.mark.asyncio
    async def test_worker_survives_failing_job(self):
        indexer = MagicMock()
        indexer.index.side_effect = [RuntimeError("boom"), "entry-2"]
        outbox = IndexingOutbox(indexer)
        outbox.start()

        outbox.enqueue(IndexingJob("ws1", "m1", ContentType.TASK, "first task"))
        outbox.enqueue(IndexingJob("ws1", "m2", ContentType.TASK, "second task"))
        await asyncio.wait_for(outbox.drain(), timeout=5)

        stats = outbox.get_stats()
        assert stats["failed"] == 1
        assert stats["indexed"] == 1
        await outbox.stop()
