"""
Atrium

Workspace knowledge retrieval and grounded assistant pipeline.

Philosophy:
- Indexing is best-effort and never blocks the write path
- Every external failure degrades to a defined fallback, never a raw error
- The language model only ever sees retrieved workspace context

Usage:
    from atrium.common import load_config, EmbeddingService, InMemoryVectorStore
    from atrium.indexer import ContentIndexer, IndexingOutbox, extract_text
    from atrium.retriever import SemanticRetriever, ResultAggregator, ContextAssembler
    from atrium.assistant import AssistantOrchestrator, ConversationStore
"""

__version__ = "0.1.0"
