"""
Atrium Common Module

Shared infrastructure for the indexer, retriever and assistant.
"""

from .config import AtriumConfig, load_config
from .results import Outcome, OutcomeStatus
from .embedding_service import EmbeddingService, EmbeddingUnavailableError
from .vector_store import VectorStore, InMemoryVectorStore, VectorHit

__all__ = [
    "AtriumConfig",
    "load_config",
    "Outcome",
    "OutcomeStatus",
    "EmbeddingService",
    "EmbeddingUnavailableError",
    "VectorStore",
    "InMemoryVectorStore",
    "VectorHit",
]
