"""
Lexical Fallback Search

One searcher per content type. Each over-fetches candidates from the
WorkspaceStore, keeps those whose extracted text contains the query
(case-insensitive), and truncates to the requested limit.

The ``*_result`` converters are shared with semantic search, which uses
them to hydrate vector hits with provenance.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..common.schemas import (
    BoardList,
    Card,
    Channel,
    ContentType,
    Message,
    Note,
    ResultType,
    RetrievalResult,
    Task,
)
from ..common.workspace_store import WorkspaceStore
from ..indexer.text_extractor import extract_text

logger = logging.getLogger("atrium.retriever.lexical")

UNKNOWN_LIST = "Unknown List"
UNKNOWN_CHANNEL = "Unknown Channel"


# =============================================================================
# Entity -> RetrievalResult
# =============================================================================

def _title_with_description(title: str, description: Optional[str]) -> str:
    return f"{title}: {description}" if description else title


def message_result(message: Message) -> RetrievalResult:
    return RetrievalResult(
        id=message.id,
        type=ResultType.MESSAGE,
        text=extract_text(message.body),
        workspace_id=message.workspace_id,
        created_at=message.created_at,
        metadata={"channelId": message.channel_id, "memberId": message.member_id},
    )


def task_result(task: Task) -> RetrievalResult:
    return RetrievalResult(
        id=task.id,
        type=ResultType.TASK,
        text=_title_with_description(task.title, task.description),
        workspace_id=task.workspace_id,
        created_at=task.created_at,
        metadata={
            "status": task.status or "not_started",
            "completed": task.completed,
            "userId": task.user_id,
        },
    )


def note_result(note: Note) -> RetrievalResult:
    return RetrievalResult(
        id=note.id,
        type=ResultType.NOTE,
        text=f"{note.title}: {extract_text(note.content)}",
        workspace_id=note.workspace_id,
        created_at=note.created_at,
        metadata={"channelId": note.channel_id, "memberId": note.member_id},
    )


def card_result(
    card: Card,
    workspace_id: str,
    board_list: Optional[BoardList] = None,
    channel: Optional[Channel] = None,
) -> RetrievalResult:
    return RetrievalResult(
        id=card.id,
        type=ResultType.CARD,
        text=_title_with_description(card.title, card.description),
        workspace_id=workspace_id,
        created_at=card.created_at,
        metadata={
            "listId": card.list_id,
            "listName": board_list.title if board_list else UNKNOWN_LIST,
            "channelId": channel.id if channel else None,
            "channelName": channel.name if channel else UNKNOWN_CHANNEL,
        },
    )


async def load_result(
    store: WorkspaceStore,
    workspace_id: str,
    content_type: ContentType,
    content_id: str,
) -> Optional[RetrievalResult]:
    """
    Load one content entity as a RetrievalResult.

    Returns None when the entity no longer exists or belongs to another
    workspace.
    """
    content_type = ContentType(content_type)
    entity = await store.get_content(content_type, content_id)
    if entity is None:
        return None

    if content_type == ContentType.CARD:
        board_list = await store.get_list(entity.list_id)
        channel = await store.get_channel(board_list.channel_id) if board_list else None
        if channel is not None and channel.workspace_id != workspace_id:
            return None
        return card_result(entity, workspace_id, board_list, channel)

    if entity.workspace_id != workspace_id:
        return None
    converter = {
        ContentType.MESSAGE: message_result,
        ContentType.TASK: task_result,
        ContentType.NOTE: note_result,
    }[content_type]
    return converter(entity)


# =============================================================================
# Searchers
# =============================================================================

class LexicalSearcher(ABC):
    """Substring search over one content type."""

    result_type: ResultType

    def __init__(self, store: WorkspaceStore, overfetch_factor: int = 3):
        self._store = store
        self._overfetch_factor = max(1, overfetch_factor)

    async def search(
        self,
        workspace_id: str,
        query: str,
        limit: int = 5,
        channel_id: Optional[str] = None,
    ) -> List[RetrievalResult]:
        needle = (query or "").strip().lower()
        if not needle or limit <= 0:
            return []

        candidates = await self._fetch(
            workspace_id, needle, limit * self._overfetch_factor, channel_id
        )
        matched = [r for r in candidates if needle in r.text.lower()]
        return matched[:limit]

    @abstractmethod
    async def _fetch(
        self, workspace_id: str, query: str, fetch_limit: int, channel_id: Optional[str]
    ) -> List[RetrievalResult]:
        """Candidate results, newest first."""


class MessageSearcher(LexicalSearcher):
    result_type = ResultType.MESSAGE

    async def _fetch(self, workspace_id, query, fetch_limit, channel_id):
        messages = await self._store.search_messages(
            workspace_id, query, channel_id=channel_id, limit=fetch_limit
        )
        return [message_result(m) for m in messages]


class TaskSearcher(LexicalSearcher):
    result_type = ResultType.TASK

    async def _fetch(self, workspace_id, query, fetch_limit, channel_id):
        # Tasks are not channel scoped
        tasks = await self._store.search_tasks(workspace_id, query, limit=fetch_limit)
        return [task_result(t) for t in tasks]


class NoteSearcher(LexicalSearcher):
    result_type = ResultType.NOTE

    async def _fetch(self, workspace_id, query, fetch_limit, channel_id):
        notes = await self._store.search_notes(
            workspace_id, query, channel_id=channel_id, limit=fetch_limit
        )
        return [note_result(n) for n in notes]


class CardSearcher(LexicalSearcher):
    """
    Cards reach their workspace through list -> channel, so the search
    resolves channels, then lists, then cards, and carries list and
    channel names along for display.
    """

    result_type = ResultType.CARD

    async def _fetch(self, workspace_id, query, fetch_limit, channel_id):
        channels: Dict[str, Channel] = {
            c.id: c for c in await self._store.list_channels(workspace_id)
        }
        list_groups = await asyncio.gather(
            *(self._store.list_lists(cid) for cid in channels)
        )
        lists: Dict[str, BoardList] = {bl.id: bl for group in list_groups for bl in group}
        if not lists:
            return []

        per_list = math.ceil(fetch_limit / len(lists))
        card_groups = await asyncio.gather(
            *(self._store.search_cards(list_id, query, limit=per_list) for list_id in lists)
        )
        cards = [card for group in card_groups for card in group]
        cards.sort(key=lambda c: (c.created_at.timestamp(), c.id), reverse=True)

        results = []
        for card in cards[:fetch_limit]:
            board_list = lists.get(card.list_id)
            channel = channels.get(board_list.channel_id) if board_list else None
            results.append(card_result(card, workspace_id, board_list, channel))
        return results


def default_searchers(store: WorkspaceStore, overfetch_factor: int = 3) -> List[LexicalSearcher]:
    """The four searchers in type order: message, task, note, card."""
    return [
        MessageSearcher(store, overfetch_factor),
        TaskSearcher(store, overfetch_factor),
        NoteSearcher(store, overfetch_factor),
        CardSearcher(store, overfetch_factor),
    ]
