"""
Service wiring.

``build_components`` assembles the full pipeline from an AtriumConfig; the
HTTP server and the MCP server both start from it. ``RetrievalService`` is
the retrieval surface they expose (index, semantic search, lexical search).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..common.config import AtriumConfig
from ..common.embedding_service import EmbeddingService, get_embedding_service
from ..common.llm_client import LLMClient
from ..common.schemas import ContentType, RetrievalResult, SearchFilter
from ..common.vector_store import InMemoryVectorStore, VectorStore
from ..common.workspace_store import InMemoryWorkspaceStore, WorkspaceStore
from ..indexer.content_indexer import ContentIndexer
from ..indexer.outbox import IndexingJob, IndexingOutbox
from ..retriever.aggregator import ResultAggregator
from ..retriever.calendar import CalendarRetriever, WorkspaceCalendarProvider
from ..retriever.context import ContextAssembler
from ..retriever.lexical import default_searchers
from ..retriever.semantic import SemanticRetriever
from .clients import AssistantAPIClient, DirectLLMModel, LanguageModel
from .conversation_store import ConversationStore
from .orchestrator import AssistantOrchestrator

logger = logging.getLogger("atrium.assistant.service")


class RetrievalService:
    """Index and search workspace content."""

    def __init__(
        self,
        outbox: IndexingOutbox,
        semantic: SemanticRetriever,
        aggregator: ResultAggregator,
    ):
        self._outbox = outbox
        self._semantic = semantic
        self._aggregator = aggregator

    def index_content(
        self,
        workspace_id: str,
        content_id: str,
        content_type: ContentType,
        body: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> IndexingJob:
        """Enqueue content for background indexing."""
        job = IndexingJob(
            workspace_id=workspace_id,
            content_id=content_id,
            content_type=ContentType(content_type),
            body=body,
            metadata=metadata or {},
        )
        self._outbox.enqueue(job)
        return job

    async def semantic_search(
        self,
        workspace_id: str,
        query: str,
        filters: Optional[Sequence[SearchFilter]] = None,
        limit: int = 10,
    ) -> List[RetrievalResult]:
        return await self._semantic.search(workspace_id, query, filters=filters, limit=limit)

    async def search_all(
        self,
        workspace_id: str,
        query: str,
        channel_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[RetrievalResult]:
        return await self._aggregator.search_all(workspace_id, query, channel_id=channel_id, limit=limit)


@dataclass
class Components:
    """Everything a server needs, built once at startup"""
    config: AtriumConfig
    embedding_service: EmbeddingService
    vector_store: VectorStore
    workspace_store: WorkspaceStore
    indexer: ContentIndexer
    outbox: IndexingOutbox
    semantic: SemanticRetriever
    aggregator: ResultAggregator
    calendar: CalendarRetriever
    conversations: ConversationStore
    orchestrator: AssistantOrchestrator
    retrieval: RetrievalService
    api_client: Optional[AssistantAPIClient] = None

    async def aclose(self) -> None:
        await self.outbox.stop()
        if self.api_client is not None:
            await self.api_client.close()


def _build_model(config: AtriumConfig, api_client: AssistantAPIClient) -> LanguageModel:
    if config.llm.backend == "direct":
        llm = LLMClient.from_config(config.llm)
        if llm.is_available:
            logger.info("Using direct %s model backend", llm.provider)
            return DirectLLMModel(llm, timeout=config.assistant_api.model_timeout)
        logger.warning("Direct model backend unavailable, using assistant API")
    return api_client


def build_components(
    config: AtriumConfig,
    workspace_store: Optional[WorkspaceStore] = None,
    embedding_service: Optional[EmbeddingService] = None,
    vector_store: Optional[VectorStore] = None,
    model: Optional[LanguageModel] = None,
    api_client: Optional[AssistantAPIClient] = None,
) -> Components:
    """
    Build the pipeline from configuration.

    Any collaborator can be passed in to override the configured one
    (tests inject fakes this way).
    """
    if embedding_service is None:
        embedding_service = get_embedding_service(
            mode=config.embedding.mode,
            model=config.embedding.model,
            openai_api_key=config.embedding.openai_api_key or None,
        )

    if vector_store is None:
        snapshot = config.vector_store.snapshot_path
        vector_store = InMemoryVectorStore(embedding_service, Path(snapshot) if snapshot else None)

    if workspace_store is None:
        if config.workspace.snapshot_path:
            workspace_store = InMemoryWorkspaceStore.from_json(config.workspace.snapshot_path)
        else:
            workspace_store = InMemoryWorkspaceStore()

    indexer = ContentIndexer(vector_store, embedding_service)
    outbox = IndexingOutbox(indexer)

    semantic = SemanticRetriever(
        vector_store,
        embedding_service,
        score_threshold=config.retrieval.score_threshold,
        workspace_store=workspace_store,
    )
    aggregator = ResultAggregator(
        default_searchers(workspace_store, config.retrieval.overfetch_factor),
        semantic=semantic,
        semantic_first=config.retrieval.semantic_first,
    )
    calendar = CalendarRetriever(
        WorkspaceCalendarProvider(workspace_store),
        aggregator,
        timeout=config.calendar.timeout,
    )

    conversations = ConversationStore(config.conversation.store_path or None)

    if api_client is None:
        api_client = AssistantAPIClient(
            config.assistant_api.base_url,
            timeout=max(config.assistant_api.specialist_timeout, config.assistant_api.model_timeout),
        )
    if model is None:
        model = _build_model(config, api_client)

    orchestrator = AssistantOrchestrator(
        conversations=conversations,
        aggregator=aggregator,
        model=model,
        specialist=api_client,
        calendar=calendar,
        assembler=ContextAssembler(history_window=config.conversation.history_window),
        workspace_store=workspace_store,
        search_limit=config.retrieval.search_limit,
        specialist_context_limit=config.retrieval.specialist_context_limit,
        history_window=config.conversation.history_window,
        specialist_timeout=config.assistant_api.specialist_timeout,
        model_timeout=config.assistant_api.model_timeout,
    )

    return Components(
        config=config,
        embedding_service=embedding_service,
        vector_store=vector_store,
        workspace_store=workspace_store,
        indexer=indexer,
        outbox=outbox,
        semantic=semantic,
        aggregator=aggregator,
        calendar=calendar,
        conversations=conversations,
        orchestrator=orchestrator,
        retrieval=RetrievalService(outbox, semantic, aggregator),
        api_client=api_client,
    )
