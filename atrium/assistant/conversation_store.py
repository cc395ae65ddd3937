"""
Conversation Store

Append-only assistant chat history, one record per (workspace, member).
Records are created lazily on the first append and, when a path is given,
persisted to a JSON file after every write.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..common.schemas import ConversationRecord, Role, Turn

logger = logging.getLogger("atrium.assistant.conversation_store")

WELCOME_MESSAGE = "Hello! I'm your workspace assistant. How can I help you today?"

ConversationKey = Tuple[str, str]


class ConversationStore:
    """
    Per-member assistant history.

    Workflow:
    1. The orchestrator appends the user turn as soon as a message arrives
    2. ``recent`` supplies the trailing window for prompt history
    3. The assistant turn is appended with its sources and actions
    4. ``clear`` resets a history to the welcome message
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize conversation store.

        Args:
            path: JSON file for persistence (None = memory only)
        """
        self._path = Path(path) if path else None
        self._records: Dict[ConversationKey, ConversationRecord] = {}
        self._load()

    def _load(self) -> None:
        """Load records from disk"""
        if not self._path or not self._path.exists():
            return

        try:
            with open(self._path) as f:
                data = json.load(f)

            for item in data:
                record = ConversationRecord.model_validate(item)
                self._records[(record.workspace_id, record.member_id)] = record
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load conversations from %s: %s", self._path, e)
            self._records = {}

    def _save(self) -> None:
        """Save records to disk"""
        if not self._path:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = [record.model_dump(mode="json") for record in self._records.values()]
        with open(self._path, "w") as f:
            json.dump(data, f, indent=2)

    def append(self, workspace_id: str, member_id: str, turn: Turn) -> ConversationRecord:
        key = (workspace_id, member_id)
        record = self._records.get(key)
        if record is None:
            record = ConversationRecord(workspace_id=workspace_id, member_id=member_id)
            self._records[key] = record

        record.turns.append(turn)
        record.updated_at = datetime.now(timezone.utc)
        self._save()
        return record

    def read(self, workspace_id: str, member_id: str) -> List[Turn]:
        """All turns in append order (empty if there is no history)."""
        record = self._records.get((workspace_id, member_id))
        return list(record.turns) if record else []

    def recent(self, workspace_id: str, member_id: str, window: int = 5) -> List[Turn]:
        if window <= 0:
            return []
        return self.read(workspace_id, member_id)[-window:]

    def clear(self, workspace_id: str, member_id: str) -> bool:
        """
        Reset a history to the single welcome turn.

        Returns:
            False if the member has no history (nothing is created)
        """
        record = self._records.get((workspace_id, member_id))
        if record is None:
            return False

        record.turns = [Turn(role=Role.ASSISTANT, content=WELCOME_MESSAGE)]
        record.updated_at = datetime.now(timezone.utc)
        self._save()
        return True

    def get_stats(self) -> Dict[str, int]:
        return {
            "conversations": len(self._records),
            "turns": sum(len(r.turns) for r in self._records.values()),
        }
