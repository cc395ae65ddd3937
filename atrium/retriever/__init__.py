"""
Retriever - Workspace Knowledge Retrieval

Finds the workspace content that grounds an assistant answer.

Key Components:
- AssistantTypeClassifier / MeetingIntentClassifier: Rule-table routing
- SemanticRetriever: Embedding search, tenant scoped
- Message/Task/Note/CardSearcher: Lexical fallback, one per content type
- ResultAggregator: Concurrent fan-out and recency merge
- CalendarRetriever: Meeting questions answered from calendar events
- ContextAssembler: Grounded prompt composition

Pipeline:
1. Classify the message (specialist type, meeting intent)
2. Retrieve: calendar events or semantic-first content search
3. Assemble the prompt from results and recent history
"""

from .query_classifier import (
    AssistantType,
    AssistantTypeClassifier,
    MeetingIntent,
    MeetingIntentClassifier,
)
from .semantic import SemanticRetriever
from .lexical import (
    LexicalSearcher,
    MessageSearcher,
    TaskSearcher,
    NoteSearcher,
    CardSearcher,
    default_searchers,
)
from .aggregator import ResultAggregator
from .calendar import CalendarProvider, CalendarRetriever, WorkspaceCalendarProvider
from .context import AssembledPrompt, ContextAssembler

__all__ = [
    "AssistantType",
    "AssistantTypeClassifier",
    "MeetingIntent",
    "MeetingIntentClassifier",
    "SemanticRetriever",
    "LexicalSearcher",
    "MessageSearcher",
    "TaskSearcher",
    "NoteSearcher",
    "CardSearcher",
    "default_searchers",
    "ResultAggregator",
    "CalendarProvider",
    "CalendarRetriever",
    "WorkspaceCalendarProvider",
    "AssembledPrompt",
    "ContextAssembler",
]
