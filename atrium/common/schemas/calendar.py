"""
Calendar event schemas.

An event's provenance is a tagged union discriminated on ``kind``. Each
variant owns its label, details and location rules, so rendering never has
to inspect the payload shape.
"""

from datetime import datetime
from typing import Annotated, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field


class PlainEventSource(BaseModel):
    """Standalone calendar entry"""
    kind: Literal["event"] = "event"
    description: Optional[str] = None
    location: Optional[str] = None

    label: ClassVar[str] = "Calendar Event"

    def details(self) -> Optional[str]:
        return self.description or None

    def where(self) -> Optional[str]:
        return self.location or None


class MessageEventSource(BaseModel):
    """Event created from a chat message"""
    kind: Literal["message"] = "message"
    message_id: str
    text: str = ""  # extracted message body
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None

    label: ClassVar[str] = "Message"

    def details(self) -> Optional[str]:
        return self.text or None

    def where(self) -> Optional[str]:
        return f"#{self.channel_name}" if self.channel_name else None


class TaskEventSource(BaseModel):
    """Task with a due date"""
    kind: Literal["task"] = "task"
    task_id: str
    description: Optional[str] = None
    status: str = "not_started"
    completed: bool = False

    label: ClassVar[str] = "Task"

    def details(self) -> Optional[str]:
        state = "completed" if self.completed else self.status.replace("_", " ")
        if self.description:
            return f"{self.description} ({state})"
        return f"Status: {state}"

    def where(self) -> Optional[str]:
        return None


class CardEventSource(BaseModel):
    """Board card with a due date"""
    kind: Literal["card"] = "card"
    card_id: str
    description: Optional[str] = None
    list_name: Optional[str] = None
    channel_name: Optional[str] = None

    label: ClassVar[str] = "Board Card"

    def details(self) -> Optional[str]:
        return self.description or None

    def where(self) -> Optional[str]:
        parts = [p for p in (self.channel_name, self.list_name) if p]
        return " / ".join(parts) if parts else None


EventSource = Annotated[
    Union[PlainEventSource, MessageEventSource, TaskEventSource, CardEventSource],
    Field(discriminator="kind"),
]


class CalendarEvent(BaseModel):
    id: str
    workspace_id: str
    title: str
    date: datetime
    time: Optional[str] = None  # "HH:MM", 24-hour; None = all day
    source: EventSource = Field(default_factory=PlainEventSource)
