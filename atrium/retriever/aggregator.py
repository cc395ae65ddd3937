"""
Result Aggregator

Merges the four lexical searchers into one recency-ordered result list
(``search_all``) and fronts it with semantic search for the assistant
(``search``).
"""

import asyncio
import logging
import math
from typing import List, Optional, Sequence

from ..common.schemas import CONTENT_RESULT_TYPES, ResultType, RetrievalResult
from .lexical import LexicalSearcher
from .semantic import SemanticRetriever

logger = logging.getLogger("atrium.retriever.aggregator")

TYPE_ORDER = {
    ResultType.MESSAGE: 0,
    ResultType.TASK: 1,
    ResultType.NOTE: 2,
    ResultType.CARD: 3,
}
SEARCHER_COUNT = 4


def per_type_quota(limit: int) -> int:
    """Even share of ``limit`` for each content type."""
    return math.ceil(limit / SEARCHER_COUNT)


def _recency_key(result: RetrievalResult):
    ts = result.created_at.timestamp() if result.created_at else float("-inf")
    return (-ts, TYPE_ORDER.get(result.type, len(TYPE_ORDER)), result.id)


class ResultAggregator:
    """Concurrent fan-out over lexical searchers plus semantic-first search."""

    def __init__(
        self,
        searchers: Sequence[LexicalSearcher],
        semantic: Optional[SemanticRetriever] = None,
        semantic_first: bool = True,
    ):
        self._searchers = list(searchers)
        self._semantic = semantic
        self._semantic_first = semantic_first

    async def search_all(
        self,
        workspace_id: str,
        query: str,
        channel_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[RetrievalResult]:
        """
        Lexical search across all content types.

        Each searcher gets ``ceil(limit / 4)`` slots. A failing searcher
        contributes nothing; the others still count.

        Returns:
            At most ``limit`` results, newest first
        """
        if limit <= 0:
            return []

        quota = per_type_quota(limit)
        outcomes = await asyncio.gather(
            *(s.search(workspace_id, query, limit=quota, channel_id=channel_id) for s in self._searchers),
            return_exceptions=True,
        )

        merged: List[RetrievalResult] = []
        for searcher, outcome in zip(self._searchers, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(
                    "%s failed for %s: %s", type(searcher).__name__, workspace_id, outcome
                )
                continue
            for result in outcome:
                if result.workspace_id != workspace_id:
                    logger.error("Dropping %s %s from workspace %s", result.type, result.id, result.workspace_id)
                    continue
                merged.append(result)

        merged.sort(key=_recency_key)
        return merged[:limit]

    async def search(
        self,
        workspace_id: str,
        query: str,
        channel_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[RetrievalResult]:
        """
        Semantic results when there are any, lexical ``search_all`` otherwise.
        """
        if self._semantic_first and self._semantic is not None and self._semantic.is_available:
            results = await self._semantic.search(workspace_id, query, limit=limit)
            results = [
                r for r in results
                if r.type in CONTENT_RESULT_TYPES
                and (channel_id is None or r.metadata.get("channelId") in (None, channel_id))
            ]
            if results:
                return results[:limit]
            logger.debug("No semantic results for %r, falling back to lexical search", query)

        return await self.search_all(workspace_id, query, channel_id=channel_id, limit=limit)
