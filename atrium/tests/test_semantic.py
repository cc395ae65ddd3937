"""
Tests for SemanticRetriever

Tenant scoping, score threshold, degradation and result hydration.
"""

import logging
from unittest.mock import MagicMock

import pytest

from atrium.common.results import OutcomeStatus
from atrium.common.schemas import ContentType, ResultType, SearchFilter
from atrium.common.vector_store import InMemoryVectorStore
from atrium.indexer import ContentIndexer
from atrium.retriever.semantic import SemanticRetriever

from .conftest import FakeEmbeddingService


class TestSemanticRetriever:
    @pytest.fixture
    def embedding(self):
        return FakeEmbeddingService()

    @pytest.fixture
    def store(self, embedding):
        return InMemoryVectorStore(embedding)

    @pytest.fixture
    def indexer(self, store, embedding):
        return ContentIndexer(store, embedding)

    @pytest.fixture
    def retriever(self, store, embedding):
        return SemanticRetriever(store, embedding, score_threshold=0.3)

    @pytest.mark.asyncio
    async def test_similar_content_above_threshold(self, indexer, retriever):
        indexer.index("ws1", "m1", ContentType.MESSAGE, "sync at 3pm", {"channelId": "c1"})
        indexer.index("ws1", "m2", ContentType.MESSAGE, "quarterly budget review")

        results = await retriever.search("ws1", "sync time")

        assert [r.id for r in results] == ["m1"]
        assert results[0].type == ResultType.MESSAGE
        assert results[0].score >= 0.3
        assert results[0].metadata["channelId"] == "c1"

    @pytest.mark.asyncio
    async def test_never_returns_other_workspace(self, indexer, retriever):
        indexer.index("ws1", "mine", ContentType.NOTE, "deploy checklist")
        indexer.index("ws2", "theirs", ContentType.NOTE, "deploy checklist")

        results = await retriever.search(
            "ws1",
            "deploy checklist",
            filters=[SearchFilter(name="workspaceId", value="ws2")],
        )

        assert [r.id for r in results] == ["mine"]
        assert all(r.workspace_id == "ws1" for r in results)

    @pytest.mark.asyncio
    async def test_content_type_filter(self, indexer, retriever):
        indexer.index("ws1", "t1", ContentType.TASK, "deploy the service")
        indexer.index("ws1", "n1", ContentType.NOTE, "deploy the service")

        results = await retriever.search(
            "ws1", "deploy", filters=[SearchFilter(name="contentType", value="task")]
        )
        assert [r.id for r in results] == ["t1"]

    @pytest.mark.asyncio
    async def test_empty_query(self, retriever):
        outcome = await retriever.search_outcome("ws1", "   ")
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.value == []

    @pytest.mark.asyncio
    async def test_unavailable_provider_degrades(self, caplog):
        embedding = FakeEmbeddingService(available=False)
        store = MagicMock()
        retriever = SemanticRetriever(store, embedding)

        with caplog.at_level(logging.INFO, logger="atrium.retriever.semantic"):
            outcome = await retriever.search_outcome("ws1", "anything")

        assert outcome.status == OutcomeStatus.DEGRADED
        assert outcome.value == []
        assert await retriever.search("ws1", "anything") == []
        store.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_degrades(self, embedding):
        store = MagicMock()
        store.search.side_effect = RuntimeError("index offline")
        retriever = SemanticRetriever(store, embedding)

        outcome = await retriever.search_outcome("ws1", "anything")

        assert outcome.status == OutcomeStatus.DEGRADED
        assert outcome.error == "index offline"
        assert outcome.usable

    @pytest.mark.asyncio
    async def test_hydrates_from_workspace_store(self, embedding, store, indexer, workspace_store):
        retriever = SemanticRetriever(store, embedding, workspace_store=workspace_store)
        indexer.index("ws1", "msg-1", ContentType.MESSAGE, "Launch review moved to Friday")

        results = await retriever.search("ws1", "launch review")

        assert len(results) == 1
        assert results[0].metadata["channelId"] == "ch-general"
        assert results[0].created_at is not None
        assert results[0].score is not None

    @pytest.mark.asyncio
    async def test_vanished_content_is_skipped(self, embedding, store, indexer, workspace_store):
        retriever = SemanticRetriever(store, embedding, workspace_store=workspace_store)
        indexer.index("ws1", "msg-1", ContentType.MESSAGE, "Launch review moved to Friday")
        workspace_store.remove_content(ContentType.MESSAGE, "msg-1")

        assert await retriever.search("ws1", "launch review") == []
