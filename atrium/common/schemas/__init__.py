"""
Atrium Schemas

Content, workspace entity, calendar and conversation models.
"""

from .content import (
    ContentType,
    ResultType,
    CONTENT_RESULT_TYPES,
    CALENDAR_RESULT_TYPES,
    FilterName,
    SearchFilter,
    ContentEntry,
    RetrievalResult,
)
from .workspace import (
    Workspace,
    Channel,
    Message,
    Task,
    Note,
    BoardList,
    Card,
    CalendarEntry,
)
from .calendar import (
    CalendarEvent,
    PlainEventSource,
    MessageEventSource,
    TaskEventSource,
    CardEventSource,
)
from .conversation import Role, Source, NavigationAction, Turn, ConversationRecord

__all__ = [
    "ContentType",
    "ResultType",
    "CONTENT_RESULT_TYPES",
    "CALENDAR_RESULT_TYPES",
    "FilterName",
    "SearchFilter",
    "ContentEntry",
    "RetrievalResult",
    "Workspace",
    "Channel",
    "Message",
    "Task",
    "Note",
    "BoardList",
    "Card",
    "CalendarEntry",
    "CalendarEvent",
    "PlainEventSource",
    "MessageEventSource",
    "TaskEventSource",
    "CardEventSource",
    "Role",
    "Source",
    "NavigationAction",
    "Turn",
    "ConversationRecord",
]
