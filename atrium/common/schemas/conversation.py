"""
Conversation schemas for the assistant chat history.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Source(BaseModel):
    """Preview of a result that grounded an answer"""
    id: str
    type: str
    text: str


class NavigationAction(BaseModel):
    label: str
    type: str
    url: str
    note_id: Optional[str] = None
    channel_id: Optional[str] = None


class Turn(BaseModel):
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    sources: List[Source] = Field(default_factory=list)
    actions: List[NavigationAction] = Field(default_factory=list)


class ConversationRecord(BaseModel):
    """Append-only turn log for one (workspace, member) pair"""
    workspace_id: str
    member_id: str
    turns: List[Turn] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=_utcnow)
