"""
Workspace entities read by the lexical searchers and the calendar provider.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Workspace(BaseModel):
    id: str
    name: str


class Channel(BaseModel):
    id: str
    workspace_id: str
    name: str
    created_at: datetime


class Message(BaseModel):
    id: str
    workspace_id: str
    member_id: str
    body: str  # rich-text body (Quill delta JSON or markup)
    created_at: datetime
    channel_id: Optional[str] = None


class Task(BaseModel):
    id: str
    workspace_id: str
    user_id: str
    title: str
    created_at: datetime
    description: Optional[str] = None
    status: str = "not_started"
    completed: bool = False
    due_date: Optional[datetime] = None


class Note(BaseModel):
    id: str
    workspace_id: str
    channel_id: str
    member_id: str
    title: str
    content: str  # rich-text body
    created_at: datetime


class BoardList(BaseModel):
    id: str
    channel_id: str
    title: str
    created_at: datetime


class Card(BaseModel):
    """Board card. Cards reach their workspace through list -> channel."""
    id: str
    list_id: str
    title: str
    created_at: datetime
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None


class CalendarEntry(BaseModel):
    """Explicit calendar entry, optionally created from a chat message"""
    id: str
    workspace_id: str
    title: str
    date: datetime
    created_at: datetime
    time: Optional[str] = None  # "HH:MM", 24-hour
    message_id: Optional[str] = None
    member_id: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
