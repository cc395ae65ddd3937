"""
Content Indexer

Writes workspace content into the vector store, one namespace per
workspace. Indexing is best effort: short texts and an unconfigured
embedding provider are skipped without error. Store and embedding failures
propagate so the caller (the outbox worker) can log them.
"""

import logging
from typing import Any, Dict, Optional

from ..common.embedding_service import EmbeddingService
from ..common.schemas import ContentEntry, ContentType
from ..common.vector_store import VectorStore

logger = logging.getLogger("atrium.indexer.content_indexer")

MIN_TEXT_LENGTH = 3


class ContentIndexer:
    """Index content entries into a VectorStore."""

    def __init__(self, vector_store: VectorStore, embedding_service: EmbeddingService):
        self._store = vector_store
        self._embedding = embedding_service

    def index(
        self,
        workspace_id: str,
        content_id: str,
        content_type: ContentType,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Upsert one content entry.

        Returns:
            Vector store entry id, or None if the entry was skipped
        """
        if len((text or "").strip()) < MIN_TEXT_LENGTH:
            logger.debug("Skipping %s %s: text too short", content_type, content_id)
            return None

        if not self._embedding.is_available:
            logger.info(
                "Embedding provider unavailable, not indexing %s %s", content_type, content_id
            )
            return None

        metadata = metadata or {}
        entry = ContentEntry.build(
            workspace_id=workspace_id,
            content_id=content_id,
            content_type=content_type,
            text=text.strip(),
            channel_id=metadata.get("channelId"),
        )

        entry_id = self._store.add(
            namespace=entry.workspace_id,
            key=entry.content_id,
            text=entry.text,
            filter_tags=entry.filter_tags,
        )
        logger.debug("Indexed %s %s in %s as %s", content_type, content_id, workspace_id, entry_id)
        return entry_id
