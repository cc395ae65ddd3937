"""
Content and retrieval schemas.

A ContentEntry is what the indexer writes to the vector store; a
RetrievalResult is what every retrieval path (semantic, lexical, calendar)
hands to the assistant.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ContentType(str, Enum):
    """Indexable workspace content"""
    MESSAGE = "message"
    TASK = "task"
    NOTE = "note"
    CARD = "card"


class ResultType(str, Enum):
    """Types a retrieval result can carry"""
    MESSAGE = "message"
    TASK = "task"
    NOTE = "note"
    CARD = "card"
    EVENT = "event"  # rendered calendar event
    INFO = "info"  # synthesized informational result


CONTENT_RESULT_TYPES = frozenset(
    {ResultType.MESSAGE, ResultType.TASK, ResultType.NOTE, ResultType.CARD}
)
CALENDAR_RESULT_TYPES = frozenset({ResultType.EVENT, ResultType.INFO})


class FilterName(str, Enum):
    """Filter tags understood by the vector store"""
    WORKSPACE_ID = "workspaceId"
    CONTENT_TYPE = "contentType"
    CHANNEL_ID = "channelId"


class SearchFilter(BaseModel):
    name: FilterName
    value: str


class ContentEntry(BaseModel):
    """An indexed piece of content, unique per (workspace_id, content_id)"""
    workspace_id: str
    content_id: str
    content_type: ContentType
    text: str
    filter_tags: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        workspace_id: str,
        content_id: str,
        content_type: ContentType,
        text: str,
        channel_id: Optional[str] = None,
    ) -> "ContentEntry":
        tags = {
            FilterName.WORKSPACE_ID.value: workspace_id,
            FilterName.CONTENT_TYPE.value: ContentType(content_type).value,
        }
        if channel_id:
            tags[FilterName.CHANNEL_ID.value] = channel_id
        return cls(
            workspace_id=workspace_id,
            content_id=content_id,
            content_type=content_type,
            text=text,
            filter_tags=tags,
        )


class RetrievalResult(BaseModel):
    """A single retrieved item, always scoped to the requesting workspace"""
    id: str
    type: ResultType
    text: str
    workspace_id: str
    score: Optional[float] = None
    created_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def preview(self, length: int = 100) -> str:
        """First ``length`` characters, with an ellipsis when cut"""
        if len(self.text) <= length:
            return self.text
        return self.text[:length] + "..."
