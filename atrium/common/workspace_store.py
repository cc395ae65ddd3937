"""
Workspace Store

Read access to workspace entities (messages, tasks, notes, board cards,
calendar entries). The lexical searchers, the calendar provider and the
semantic result hydration all go through this interface.

The ``search_*`` methods behave like a full-text index: they return
candidates sharing at least one term with the query, newest first. Callers
apply their own exact matching on top.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .schemas import (
    BoardList,
    CalendarEntry,
    Card,
    Channel,
    ContentType,
    Message,
    Note,
    Task,
    Workspace,
)
from ..indexer.text_extractor import extract_text

logger = logging.getLogger("atrium.common.workspace_store")

Content = Union[Message, Task, Note, Card]

_TERM_PATTERN = re.compile(r"\w+", re.UNICODE)


def _terms(text: str) -> set:
    return {t.lower() for t in _TERM_PATTERN.findall(text or "")}


def _contains_any(text: str, terms: set) -> bool:
    lowered = (text or "").lower()
    return any(term in lowered for term in terms)


def local_naive(moment: datetime) -> datetime:
    """Aware datetimes converted to naive local time; naive ones unchanged."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def _in_window(moment: Optional[datetime], start: datetime, end: datetime) -> bool:
    if moment is None:
        return False
    return local_naive(start) <= local_naive(moment) < local_naive(end)


class WorkspaceStore(ABC):
    """Abstract read interface over workspace content."""

    @abstractmethod
    async def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        ...

    @abstractmethod
    async def get_channel(self, channel_id: str) -> Optional[Channel]:
        ...

    @abstractmethod
    async def get_list(self, list_id: str) -> Optional[BoardList]:
        ...

    @abstractmethod
    async def list_channels(self, workspace_id: str) -> List[Channel]:
        ...

    @abstractmethod
    async def list_lists(self, channel_id: str) -> List[BoardList]:
        ...

    @abstractmethod
    async def get_content(self, content_type: ContentType, content_id: str) -> Optional[Content]:
        """Fetch one content entity, or None if it no longer exists."""

    @abstractmethod
    async def search_messages(
        self, workspace_id: str, query: str, channel_id: Optional[str] = None, limit: int = 5
    ) -> List[Message]:
        ...

    @abstractmethod
    async def search_tasks(self, workspace_id: str, query: str, limit: int = 5) -> List[Task]:
        ...

    @abstractmethod
    async def search_notes(
        self, workspace_id: str, query: str, channel_id: Optional[str] = None, limit: int = 5
    ) -> List[Note]:
        ...

    @abstractmethod
    async def search_cards(self, list_id: str, query: str, limit: int = 5) -> List[Card]:
        ...

    @abstractmethod
    async def list_calendar_entries(
        self, workspace_id: str, start: datetime, end: datetime
    ) -> List[CalendarEntry]:
        """Entries dated in [start, end)."""

    @abstractmethod
    async def list_tasks_due(self, workspace_id: str, start: datetime, end: datetime) -> List[Task]:
        ...

    @abstractmethod
    async def list_cards_due(self, workspace_id: str, start: datetime, end: datetime) -> List[Card]:
        ...


class InMemoryWorkspaceStore(WorkspaceStore):
    """
    Dictionary-backed workspace store.

    Used by tests and by the standalone server, which can seed it from a
    JSON snapshot (see ``from_json``).
    """

    def __init__(self):
        self._workspaces: Dict[str, Workspace] = {}
        self._channels: Dict[str, Channel] = {}
        self._messages: Dict[str, Message] = {}
        self._tasks: Dict[str, Task] = {}
        self._notes: Dict[str, Note] = {}
        self._lists: Dict[str, BoardList] = {}
        self._cards: Dict[str, Card] = {}
        self._calendar: Dict[str, CalendarEntry] = {}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_workspace(self, workspace: Workspace) -> Workspace:
        self._workspaces[workspace.id] = workspace
        return workspace

    def add_channel(self, channel: Channel) -> Channel:
        self._channels[channel.id] = channel
        return channel

    def add_message(self, message: Message) -> Message:
        self._messages[message.id] = message
        return message

    def add_task(self, task: Task) -> Task:
        self._tasks[task.id] = task
        return task

    def add_note(self, note: Note) -> Note:
        self._notes[note.id] = note
        return note

    def add_list(self, board_list: BoardList) -> BoardList:
        self._lists[board_list.id] = board_list
        return board_list

    def add_card(self, card: Card) -> Card:
        self._cards[card.id] = card
        return card

    def add_calendar_entry(self, entry: CalendarEntry) -> CalendarEntry:
        self._calendar[entry.id] = entry
        return entry

    def remove_content(self, content_type: ContentType, content_id: str) -> bool:
        table = self._table(content_type)
        return table.pop(content_id, None) is not None

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "InMemoryWorkspaceStore":
        """
        Build a store from a JSON snapshot.

        Expected shape: ``{"workspaces": [...], "channels": [...],
        "messages": [...], "tasks": [...], "notes": [...], "lists": [...],
        "cards": [...], "calendar": [...]}``; every key is optional.
        """
        store = cls()
        path = Path(path)
        if not path.exists():
            logger.warning("Workspace snapshot not found: %s", path)
            return store

        with open(path) as f:
            data = json.load(f)

        loaders = (
            ("workspaces", Workspace, store.add_workspace),
            ("channels", Channel, store.add_channel),
            ("messages", Message, store.add_message),
            ("tasks", Task, store.add_task),
            ("notes", Note, store.add_note),
            ("lists", BoardList, store.add_list),
            ("cards", Card, store.add_card),
            ("calendar", CalendarEntry, store.add_calendar_entry),
        )
        for key, model, add in loaders:
            for item in data.get(key, []):
                add(model.model_validate(item))

        logger.info("Loaded workspace snapshot %s (%d workspaces)", path, len(store._workspaces))
        return store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        return self._workspaces.get(workspace_id)

    async def get_channel(self, channel_id: str) -> Optional[Channel]:
        return self._channels.get(channel_id)

    async def get_list(self, list_id: str) -> Optional[BoardList]:
        return self._lists.get(list_id)

    async def list_channels(self, workspace_id: str) -> List[Channel]:
        return [c for c in self._channels.values() if c.workspace_id == workspace_id]

    async def list_lists(self, channel_id: str) -> List[BoardList]:
        return [bl for bl in self._lists.values() if bl.channel_id == channel_id]

    async def get_content(self, content_type: ContentType, content_id: str) -> Optional[Content]:
        return self._table(content_type).get(content_id)

    async def search_messages(
        self, workspace_id: str, query: str, channel_id: Optional[str] = None, limit: int = 5
    ) -> List[Message]:
        candidates = [
            m for m in self._messages.values()
            if m.workspace_id == workspace_id and (channel_id is None or m.channel_id == channel_id)
        ]
        return self._match(candidates, query, lambda m: extract_text(m.body), limit)

    async def search_tasks(self, workspace_id: str, query: str, limit: int = 5) -> List[Task]:
        candidates = [t for t in self._tasks.values() if t.workspace_id == workspace_id]
        return self._match(candidates, query, lambda t: f"{t.title} {t.description or ''}", limit)

    async def search_notes(
        self, workspace_id: str, query: str, channel_id: Optional[str] = None, limit: int = 5
    ) -> List[Note]:
        candidates = [
            n for n in self._notes.values()
            if n.workspace_id == workspace_id and (channel_id is None or n.channel_id == channel_id)
        ]
        return self._match(candidates, query, lambda n: f"{n.title} {extract_text(n.content)}", limit)

    async def search_cards(self, list_id: str, query: str, limit: int = 5) -> List[Card]:
        candidates = [c for c in self._cards.values() if c.list_id == list_id]
        return self._match(candidates, query, lambda c: f"{c.title} {c.description or ''}", limit)

    async def list_calendar_entries(
        self, workspace_id: str, start: datetime, end: datetime
    ) -> List[CalendarEntry]:
        entries = [
            e for e in self._calendar.values()
            if e.workspace_id == workspace_id and _in_window(e.date, start, end)
        ]
        return sorted(entries, key=lambda e: (local_naive(e.date), e.time or "", e.id))

    async def list_tasks_due(self, workspace_id: str, start: datetime, end: datetime) -> List[Task]:
        tasks = [
            t for t in self._tasks.values()
            if t.workspace_id == workspace_id and _in_window(t.due_date, start, end)
        ]
        return sorted(tasks, key=lambda t: (local_naive(t.due_date), t.id))

    async def list_cards_due(self, workspace_id: str, start: datetime, end: datetime) -> List[Card]:
        list_ids = set()
        for channel in await self.list_channels(workspace_id):
            list_ids.update(bl.id for bl in await self.list_lists(channel.id))

        cards = [
            c for c in self._cards.values()
            if c.list_id in list_ids and _in_window(c.due_date, start, end)
        ]
        return sorted(cards, key=lambda c: (local_naive(c.due_date), c.id))

    def get_stats(self) -> Dict[str, int]:
        return {
            "workspaces": len(self._workspaces),
            "channels": len(self._channels),
            "messages": len(self._messages),
            "tasks": len(self._tasks),
            "notes": len(self._notes),
            "lists": len(self._lists),
            "cards": len(self._cards),
            "calendar_entries": len(self._calendar),
        }

    def _table(self, content_type: ContentType) -> dict:
        return {
            ContentType.MESSAGE: self._messages,
            ContentType.TASK: self._tasks,
            ContentType.NOTE: self._notes,
            ContentType.CARD: self._cards,
        }[ContentType(content_type)]

    @staticmethod
    def _match(candidates: list, query: str, text_of, limit: int) -> list:
        """Candidates containing any query term as a substring, newest first.

        Partial words match ('sync' finds 'synchronize'), so the result is a
        superset of the full-query substring matches callers filter down to.
        """
        query_terms = _terms(query)
        if not query_terms or limit <= 0:
            return []
        hits = [c for c in candidates if _contains_any(text_of(c), query_terms)]
        hits.sort(key=lambda c: (c.created_at.timestamp(), c.id), reverse=True)
        return hits[:limit]
