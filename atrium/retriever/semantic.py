"""
Semantic Retriever

Embedding similarity search over the indexed workspace content.

Every search runs inside the requesting workspace's namespace and is pinned
to its ``workspaceId`` tag, so results from other tenants cannot surface
whatever filters the caller passes. An unavailable embedding provider yields
an empty result (the signal for the caller to fall back to lexical search).
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..common.embedding_service import EmbeddingService
from ..common.results import Outcome
from ..common.schemas import (
    ContentType,
    FilterName,
    ResultType,
    RetrievalResult,
    SearchFilter,
)
from ..common.vector_store import VectorHit, VectorStore
from ..common.workspace_store import WorkspaceStore
from .lexical import load_result

logger = logging.getLogger("atrium.retriever.semantic")

DEFAULT_SCORE_THRESHOLD = 0.3


class SemanticRetriever:
    """
    Searches the vector store for content similar to a query.

    Features:
    - Tenant scoping by namespace and workspaceId tag
    - Score threshold (precision/recall knob, default 0.3)
    - Optional hydration from the WorkspaceStore; vanished content is skipped
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_service: EmbeddingService,
        score_threshold: float = DEFAULT_SCORE_THRESHOLD,
        workspace_store: Optional[WorkspaceStore] = None,
    ):
        """
        Initialize semantic retriever.

        Args:
            vector_store: Store holding the indexed content
            embedding_service: Used only for availability checks; the store embeds queries
            score_threshold: Minimum similarity for a hit to be returned
            workspace_store: When set, hits are re-read from the store for provenance
        """
        self._store = vector_store
        self._embedding = embedding_service
        self._threshold = score_threshold
        self._workspace_store = workspace_store

    @property
    def score_threshold(self) -> float:
        return self._threshold

    @property
    def is_available(self) -> bool:
        return self._embedding.is_available

    async def search(
        self,
        workspace_id: str,
        query: str,
        filters: Optional[Sequence[SearchFilter]] = None,
        limit: int = 10,
    ) -> List[RetrievalResult]:
        """Search, returning [] when semantic search is unavailable."""
        outcome = await self.search_outcome(workspace_id, query, filters, limit)
        return outcome.value or []

    async def search_outcome(
        self,
        workspace_id: str,
        query: str,
        filters: Optional[Sequence[SearchFilter]] = None,
        limit: int = 10,
    ) -> Outcome[List[RetrievalResult]]:
        if not query or not query.strip() or limit <= 0:
            return Outcome.success([])

        if not self._embedding.is_available:
            logger.info("Embedding provider unavailable, semantic search skipped")
            return Outcome.degraded([], "embedding provider unavailable")

        tag_filters = self._scoped_filters(workspace_id, filters)
        try:
            hits = await asyncio.to_thread(
                self._store.search,
                workspace_id,
                query.strip(),
                tag_filters,
                limit,
                self._threshold,
            )
        except Exception as e:
            logger.warning("Semantic search failed in %s: %s", workspace_id, e)
            return Outcome.degraded([], str(e))

        results = []
        for hit in hits:
            result = await self._to_result(workspace_id, hit)
            if result is not None:
                results.append(result)
        return Outcome.success(results)

    @staticmethod
    def _scoped_filters(workspace_id: str, filters: Optional[Sequence[SearchFilter]]) -> dict:
        """Tag filters with the workspace pinned; foreign workspaceId filters are ignored."""
        tags = {}
        for f in filters or ():
            if f.name == FilterName.WORKSPACE_ID:
                if f.value != workspace_id:
                    logger.debug("Ignoring workspaceId filter %s outside %s", f.value, workspace_id)
                continue
            tags[FilterName(f.name).value] = f.value
        tags[FilterName.WORKSPACE_ID.value] = workspace_id
        return tags

    async def _to_result(self, workspace_id: str, hit: VectorHit) -> Optional[RetrievalResult]:
        content_type = hit.filter_tags.get(FilterName.CONTENT_TYPE.value)
        if content_type not in {t.value for t in ContentType}:
            logger.debug("Skipping hit %s with unknown content type %r", hit.key, content_type)
            return None

        if self._workspace_store is None:
            return RetrievalResult(
                id=hit.key,
                type=ResultType(content_type),
                text=hit.text,
                workspace_id=workspace_id,
                score=hit.score,
                metadata={"channelId": hit.filter_tags.get(FilterName.CHANNEL_ID.value)},
            )

        result = await load_result(self._workspace_store, workspace_id, ContentType(content_type), hit.key)
        if result is None:
            logger.debug("Indexed %s %s no longer exists, skipping", content_type, hit.key)
            return None
        result.score = hit.score
        return result
