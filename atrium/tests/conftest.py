"""Shared fixtures: deterministic embedder and a seeded workspace store."""

import re
from datetime import datetime, timedelta

import numpy as np
import pytest

from atrium.common.schemas import (
    BoardList,
    CalendarEntry,
    Card,
    Channel,
    Message,
    Note,
    Task,
    Workspace,
)
from atrium.common.vector_store import InMemoryVectorStore
from atrium.common.workspace_store import InMemoryWorkspaceStore

BASE_TIME = datetime(2026, 10, 19, 9, 0, 0)


class FakeEmbeddingService:
    """
    Bag-of-words embedder. Each new word gets the next free dimension, so
    texts sharing words have positive cosine similarity and texts sharing
    none score 0.
    """

    DIM = 512

    def __init__(self, available: bool = True):
        self._available = available
        self._vocab = {}
        self.calls = 0

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def mode(self) -> str:
        return "fake" if self._available else "none"

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self.DIM, dtype=np.float32)
        for word in re.findall(r"\w+", text.lower()):
            if word not in self._vocab:
                self._vocab[word] = len(self._vocab) % self.DIM
            vec[self._vocab[word]] += 1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm else vec

    def embed(self, texts):
        if not self._available:
            from atrium.common.embedding_service import EmbeddingUnavailableError
            raise EmbeddingUnavailableError("fake provider disabled")
        self.calls += 1
        return [self._vector(t).tolist() for t in texts]

    def embed_single(self, text):
        return self.embed([text])[0]


def msg_body(text: str) -> str:
    """Quill delta body for a plain string"""
    import json
    return json.dumps({"ops": [{"insert": text + "\n"}]})


@pytest.fixture
def fake_embedding():
    return FakeEmbeddingService()


@pytest.fixture
def unavailable_embedding():
    return FakeEmbeddingService(available=False)


@pytest.fixture
def vector_store(fake_embedding):
    return InMemoryVectorStore(fake_embedding)


def seed_workspace(store: InMemoryWorkspaceStore, ws: str, name: str, prefix: str = "") -> None:
    """Two channels, a board list, and a few items of every content type."""
    t = BASE_TIME
    store.add_workspace(Workspace(id=ws, name=name))
    store.add_channel(Channel(id=f"{prefix}ch-general", workspace_id=ws, name="general", created_at=t))
    store.add_channel(Channel(id=f"{prefix}ch-eng", workspace_id=ws, name="engineering", created_at=t))
    store.add_list(BoardList(id=f"{prefix}list-todo", channel_id=f"{prefix}ch-eng", title="To Do", created_at=t))

    store.add_message(Message(
        id=f"{prefix}msg-1", workspace_id=ws, member_id="m1", channel_id=f"{prefix}ch-general",
        body=msg_body("Launch review moved to Friday"), created_at=t - timedelta(hours=5),
    ))
    store.add_message(Message(
        id=f"{prefix}msg-2", workspace_id=ws, member_id="m2", channel_id=f"{prefix}ch-eng",
        body=msg_body("The launch checklist is in the notes"), created_at=t - timedelta(hours=1),
    ))
    store.add_task(Task(
        id=f"{prefix}task-1", workspace_id=ws, user_id="u1", title="Prepare launch deck",
        description="slides for the launch review", created_at=t - timedelta(hours=3),
    ))
    store.add_note(Note(
        id=f"{prefix}note-1", workspace_id=ws, channel_id=f"{prefix}ch-eng", member_id="m1",
        title="Launch plan", content=msg_body("Steps for the launch"), created_at=t - timedelta(hours=2),
    ))
    store.add_card(Card(
        id=f"{prefix}card-1", list_id=f"{prefix}list-todo", title="Launch blog post",
        description="draft and publish", created_at=t - timedelta(hours=4),
    ))


@pytest.fixture
def workspace_store():
    store = InMemoryWorkspaceStore()
    seed_workspace(store, "ws1", "Acme", prefix="")
    seed_workspace(store, "ws2", "Globex", prefix="other-")
    return store


@pytest.fixture
def calendar_store(workspace_store):
    """workspace_store plus calendar entries and due dates in October 2026"""
    store = workspace_store
    store.add_calendar_entry(CalendarEntry(
        id="cal-standup", workspace_id="ws1", title="Team standup",
        date=datetime(2026, 10, 19), time="09:30", created_at=BASE_TIME,
        description="Daily sync", location="Room 4",
    ))
    store.add_calendar_entry(CalendarEntry(
        id="cal-msg", workspace_id="ws1", title="Design review",
        date=datetime(2026, 10, 22), time="15:00", created_at=BASE_TIME,
        message_id="msg-1", member_id="m1",
    ))
    store.add_task(Task(
        id="task-due", workspace_id="ws1", user_id="u1", title="Submit report",
        created_at=BASE_TIME, due_date=datetime(2026, 10, 20, 17, 0),
    ))
    store.add_card(Card(
        id="card-due", list_id="list-todo", title="Ship release",
        created_at=BASE_TIME, due_date=datetime(2026, 10, 25),
    ))
    return store


@pytest.fixture
def components(workspace_store, fake_embedding):
    """Full pipeline over the seeded store, with a canned language model"""
    from unittest.mock import AsyncMock, MagicMock

    from atrium.assistant.service import build_components
    from atrium.common.config import AtriumConfig
    from atrium.common.results import Outcome

    config = AtriumConfig()
    config.conversation.store_path = ""  # memory only

    model = MagicMock()
    model.generate = AsyncMock(return_value=Outcome.success("Grounded answer"))

    return build_components(
        config,
        workspace_store=workspace_store,
        embedding_service=fake_embedding,
        model=model,
    )
