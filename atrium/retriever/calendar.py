"""
Calendar-Aware Retrieval

Retrieval path for meeting questions. Events for the current month come
from a CalendarProvider; a "today" question narrows them to the local
calendar day. Each event is rendered to a text block through its
provenance variant (see ``atrium.common.schemas.calendar``).

When the provider has no events, fails or times out, retrieval falls back
to the ResultAggregator.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from ..common.results import Outcome
from ..common.schemas import (
    CalendarEntry,
    CalendarEvent,
    CardEventSource,
    ContentType,
    MessageEventSource,
    PlainEventSource,
    ResultType,
    RetrievalResult,
    TaskEventSource,
)
from ..common.workspace_store import WorkspaceStore, local_naive
from ..indexer.text_extractor import extract_text
from .aggregator import ResultAggregator
from .query_classifier import MeetingIntent

logger = logging.getLogger("atrium.retriever.calendar")

DEFAULT_EVENT_LIMIT = 8
NO_MEETINGS_TODAY = "No Meetings Today"


def month_window(month: int, year: int):
    """[start, end) of a calendar month. ``month`` is 1-12."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def _clock_time(moment: datetime) -> Optional[str]:
    """HH:MM of a datetime, None at midnight (date-only values)."""
    if (moment.hour, moment.minute) == (0, 0):
        return None
    return moment.strftime("%H:%M")


class CalendarProvider(ABC):
    @abstractmethod
    async def get_events(self, workspace_id: str, month: int, year: int) -> List[CalendarEvent]:
        """Events dated within the month (1-12) of ``year``."""


class WorkspaceCalendarProvider(CalendarProvider):
    """
    Derives calendar events from workspace content:

    - calendar entries (message-linked or standalone)
    - tasks with a due date
    - board cards with a due date
    """

    def __init__(self, store: WorkspaceStore):
        self._store = store

    async def get_events(self, workspace_id: str, month: int, year: int) -> List[CalendarEvent]:
        start, end = month_window(month, year)

        entries, tasks, cards = await asyncio.gather(
            self._store.list_calendar_entries(workspace_id, start, end),
            self._store.list_tasks_due(workspace_id, start, end),
            self._store.list_cards_due(workspace_id, start, end),
        )

        events = [await self._entry_event(entry) for entry in entries]

        for task in tasks:
            events.append(CalendarEvent(
                id=task.id,
                workspace_id=workspace_id,
                title=task.title,
                date=task.due_date,
                time=_clock_time(local_naive(task.due_date)),
                source=TaskEventSource(
                    task_id=task.id,
                    description=task.description,
                    status=task.status,
                    completed=task.completed,
                ),
            ))

        for card in cards:
            board_list = await self._store.get_list(card.list_id)
            channel = await self._store.get_channel(board_list.channel_id) if board_list else None
            events.append(CalendarEvent(
                id=card.id,
                workspace_id=workspace_id,
                title=card.title,
                date=card.due_date,
                time=_clock_time(local_naive(card.due_date)),
                source=CardEventSource(
                    card_id=card.id,
                    description=card.description,
                    list_name=board_list.title if board_list else None,
                    channel_name=channel.name if channel else None,
                ),
            ))

        return events

    async def _entry_event(self, entry: CalendarEntry) -> CalendarEvent:
        if entry.message_id:
            message = await self._store.get_content(ContentType.MESSAGE, entry.message_id)
            channel = None
            if message is not None and message.channel_id:
                channel = await self._store.get_channel(message.channel_id)
            source = MessageEventSource(
                message_id=entry.message_id,
                text=extract_text(message.body) if message else "",
                channel_id=message.channel_id if message else None,
                channel_name=channel.name if channel else None,
            )
        else:
            source = PlainEventSource(description=entry.description, location=entry.location)

        return CalendarEvent(
            id=entry.id,
            workspace_id=entry.workspace_id,
            title=entry.title,
            date=entry.date,
            time=entry.time,
            source=source,
        )


def format_time(event: CalendarEvent) -> str:
    """12-hour clock time, or "All day"."""
    if event.time:
        try:
            return datetime.strptime(event.time, "%H:%M").strftime("%I:%M %p").lstrip("0")
        except ValueError:
            return event.time
    return "All day"


def render_event(event: CalendarEvent) -> str:
    """Render an event as a labelled text block for the prompt context."""
    day = local_naive(event.date)
    lines = [
        f"Title: {event.title}",
        f"Day: {day.strftime('%A')}",
        f"Date: {day.strftime('%B')} {day.day}, {day.year}",
        f"Time: {format_time(event)}",
        f"Source: {event.source.label}",
    ]
    location = event.source.where()
    if location:
        lines.append(f"Location: {location}")
    details = event.source.details()
    if details:
        lines.append(f"Details: {details}")
    return "\n".join(lines)


def _sort_key(event: CalendarEvent):
    return (local_naive(event.date).date(), event.time or "", event.id)


class CalendarRetriever:
    """Meeting-intent retrieval with today filtering and lexical fallback."""

    def __init__(
        self,
        provider: CalendarProvider,
        aggregator: ResultAggregator,
        timeout: float = 5.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._provider = provider
        self._aggregator = aggregator
        self._timeout = timeout
        self._clock = clock

    async def fetch_events(self, workspace_id: str, month: int, year: int) -> Outcome[List[CalendarEvent]]:
        try:
            events = await asyncio.wait_for(
                self._provider.get_events(workspace_id, month, year), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Calendar provider timed out after %.1fs for %s", self._timeout, workspace_id)
            return Outcome.fatal("calendar provider timed out")
        except Exception as e:
            logger.warning("Calendar provider failed for %s: %s", workspace_id, e)
            return Outcome.fatal(str(e))

        return Outcome.success([e for e in events if e.workspace_id == workspace_id])

    async def retrieve(
        self,
        workspace_id: str,
        query: str,
        intent: MeetingIntent,
        limit: int = DEFAULT_EVENT_LIMIT,
    ) -> List[RetrievalResult]:
        now = local_naive(self._clock())
        outcome = await self.fetch_events(workspace_id, now.month, now.year)

        if not outcome.ok or not outcome.value:
            logger.info("No calendar events for %s, falling back to content search", workspace_id)
            return await self._aggregator.search(workspace_id, query, limit=limit)

        events = sorted(outcome.value, key=_sort_key)

        if intent.is_today:
            start = datetime(now.year, now.month, now.day)
            end = start + timedelta(hours=23, minutes=59, seconds=59)
            events = [e for e in events if start <= local_naive(e.date) <= end]
            if not events:
                return [self._no_meetings_today(workspace_id, start)]

        return [self._event_result(event) for event in events[:limit]]

    @staticmethod
    def _event_result(event: CalendarEvent) -> RetrievalResult:
        return RetrievalResult(
            id=event.id,
            type=ResultType.EVENT,
            text=render_event(event),
            workspace_id=event.workspace_id,
            created_at=event.date,
            metadata={
                "source": event.source.kind,
                "date": event.date.isoformat(),
                "time": event.time,
            },
        )

    @staticmethod
    def _no_meetings_today(workspace_id: str, today: datetime) -> RetrievalResult:
        date_label = f"{today.strftime('%A, %B')} {today.day}, {today.year}"
        return RetrievalResult(
            id=f"no-meetings-{today.date().isoformat()}",
            type=ResultType.INFO,
            text=f"{NO_MEETINGS_TODAY}\nThere are no meetings or events scheduled for today ({date_label}).",
            workspace_id=workspace_id,
            created_at=today,
            metadata={"date": today.date().isoformat()},
        )
