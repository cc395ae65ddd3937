"""
Indexer - Workspace Content Ingestion

Turns content-mutation events into vector store entries.

Key Components:
- extract_text: Plain text from rich-text bodies
- ContentIndexer: Best-effort upsert into the workspace namespace
- IndexingOutbox: Background queue decoupling writes from indexing
"""

from .text_extractor import extract_text
from .content_indexer import ContentIndexer, MIN_TEXT_LENGTH
from .outbox import IndexingOutbox, IndexingJob

__all__ = [
    "extract_text",
    "ContentIndexer",
    "MIN_TEXT_LENGTH",
    "IndexingOutbox",
    "IndexingJob",
]
