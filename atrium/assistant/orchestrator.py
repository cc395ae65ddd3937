"""
Assistant Orchestrator

Runs one assistant turn end to end:

    RECEIVED -> CLASSIFIED -> ROUTED_TO_SPECIALIST -> SPECIALIST_RESPONDED -> RESPONDED -> PERSISTED
                           -> RETRIEVING -> CONTEXT_BUILT -> GENERATING -> RESPONDED -> PERSISTED

The user turn is persisted before any other work. A specialist failure
falls through to retrieval silently, empty retrieval short-circuits with a
fixed answer (the model is never called without grounding), and a model
failure is answered with a fixed apology. Every path ends with a persisted
assistant turn.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from ..common.results import Outcome
from ..common.schemas import (
    CALENDAR_RESULT_TYPES,
    NavigationAction,
    ResultType,
    RetrievalResult,
    Role,
    Source,
    Turn,
)
from ..common.workspace_store import WorkspaceStore
from ..retriever.aggregator import ResultAggregator
from ..retriever.calendar import CalendarRetriever
from ..retriever.context import ContextAssembler
from ..retriever.query_classifier import (
    AssistantType,
    AssistantTypeClassifier,
    MeetingIntent,
    MeetingIntentClassifier,
    NO_MEETING_INTENT,
)
from .clients import LanguageModel, SpecialistClient, SpecialistReply
from .conversation_store import ConversationStore

logger = logging.getLogger("atrium.assistant.orchestrator")

NO_INFORMATION_RESPONSE = (
    "I don't have any information about that in your workspace. "
    "I can only answer questions about content that exists in your workspace."
)
GENERATION_FAILED_RESPONSE = (
    "I'm sorry, I couldn't generate a response right now. Please try again in a moment."
)
INTERNAL_ERROR_RESPONSE = (
    "I'm having trouble processing your request right now. Please try again later."
)

DEFAULT_WORKSPACE_NAME = "your workspace"
SOURCE_PREVIEW_LENGTH = 100
SPECIALIST_PREVIEW_LENGTH = 200


class TurnState(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    ROUTED_TO_SPECIALIST = "routed_to_specialist"
    SPECIALIST_RESPONDED = "specialist_responded"
    RETRIEVING = "retrieving"
    CONTEXT_BUILT = "context_built"
    GENERATING = "generating"
    RESPONDED = "responded"
    PERSISTED = "persisted"


@dataclass
class AssistantReply:
    """Result of one assistant turn"""
    response: str
    sources: List[Source] = field(default_factory=list)
    actions: List[NavigationAction] = field(default_factory=list)
    assistant_type: AssistantType = AssistantType.CHATBOT
    trace: List[TurnState] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def grounded(self) -> bool:
        return bool(self.sources)


def source_previews(results: Sequence[RetrievalResult]) -> List[Source]:
    return [
        Source(id=r.id, type=r.type.value, text=r.preview(SOURCE_PREVIEW_LENGTH))
        for r in results
    ]


def derive_actions(
    workspace_id: str,
    results: Sequence[RetrievalResult],
    meeting_intent: MeetingIntent = NO_MEETING_INTENT,
) -> List[NavigationAction]:
    """Navigation actions for a grounded answer, in a fixed order."""
    base = f"/workspace/{workspace_id}"
    by_type: Dict[ResultType, List[RetrievalResult]] = {}
    for r in results:
        by_type.setdefault(r.type, []).append(r)

    def first_channel(result_type: ResultType) -> Optional[RetrievalResult]:
        return next((r for r in by_type.get(result_type, []) if r.metadata.get("channelId")), None)

    actions = []
    if meeting_intent.is_meeting or any(t in CALENDAR_RESULT_TYPES for t in by_type):
        actions.append(NavigationAction(label="View Calendar", type="calendar", url=f"{base}/calendar"))

    note = first_channel(ResultType.NOTE)
    if note is not None:
        channel_id = note.metadata["channelId"]
        actions.append(NavigationAction(
            label="View Note",
            type="note",
            url=f"{base}/channel/{channel_id}/notes?noteId={note.id}",
            note_id=note.id,
            channel_id=channel_id,
        ))

    if ResultType.CARD in by_type:
        card = first_channel(ResultType.CARD)
        if card is not None:
            channel_id = card.metadata["channelId"]
            actions.append(NavigationAction(
                label="View Board", type="board", url=f"{base}/channel/{channel_id}/board", channel_id=channel_id,
            ))
        else:
            actions.append(NavigationAction(label="View Board", type="board", url=f"{base}/boards"))

    if ResultType.TASK in by_type:
        actions.append(NavigationAction(label="View Tasks", type="tasks", url=f"{base}/tasks"))

    if ResultType.MESSAGE in by_type:
        message = first_channel(ResultType.MESSAGE)
        if message is not None:
            channel_id = message.metadata["channelId"]
            actions.append(NavigationAction(
                label="View Chats", type="chats", url=f"{base}/channel/{channel_id}/chats", channel_id=channel_id,
            ))
        else:
            actions.append(NavigationAction(label="View Chats", type="chats", url=f"{base}/chats"))

    return actions


class AssistantOrchestrator:
    """
    Top-level assistant state machine.

    Turns on the same (workspace, member) conversation are serialized, so
    history order always matches request order.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        aggregator: ResultAggregator,
        model: LanguageModel,
        specialist: Optional[SpecialistClient] = None,
        calendar: Optional[CalendarRetriever] = None,
        assembler: Optional[ContextAssembler] = None,
        workspace_store: Optional[WorkspaceStore] = None,
        type_classifier: Optional[AssistantTypeClassifier] = None,
        meeting_classifier: Optional[MeetingIntentClassifier] = None,
        search_limit: int = 8,
        specialist_context_limit: int = 5,
        history_window: int = 5,
        specialist_timeout: float = 20.0,
        model_timeout: float = 30.0,
    ):
        self._conversations = conversations
        self._aggregator = aggregator
        self._model = model
        self._specialist = specialist
        self._calendar = calendar
        self._assembler = assembler or ContextAssembler(history_window=history_window)
        self._workspaces = workspace_store
        self._type_classifier = type_classifier or AssistantTypeClassifier()
        self._meeting_classifier = meeting_classifier or MeetingIntentClassifier()
        self._search_limit = search_limit
        self._specialist_context_limit = specialist_context_limit
        self._history_window = history_window
        self._specialist_timeout = specialist_timeout
        self._model_timeout = model_timeout
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, workspace_id: str, member_id: str) -> asyncio.Lock:
        key = (workspace_id, member_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def handle(self, workspace_id: str, member_id: str, message: str) -> AssistantReply:
        """
        Answer one user message.

        Never raises for external failures; unexpected internal errors are
        answered with an apology that is persisted like any other turn.
        """
        async with self._lock_for(workspace_id, member_id):
            trace = [TurnState.RECEIVED]
            try:
                self._conversations.append(workspace_id, member_id, Turn(role=Role.USER, content=message))
                return await self._run(workspace_id, member_id, message, trace)
            except Exception as e:
                logger.error("Assistant turn failed in %s: %s", workspace_id, e, exc_info=True)
                reply = AssistantReply(response=INTERNAL_ERROR_RESPONSE, trace=trace, error=str(e))
                reply.trace.append(TurnState.RESPONDED)
                try:
                    self._persist(workspace_id, member_id, reply)
                except Exception:
                    logger.exception("Could not persist error reply for %s/%s", workspace_id, member_id)
                return reply

    async def _run(self, workspace_id: str, member_id: str, message: str, trace: List[TurnState]) -> AssistantReply:
        assistant_type = self._type_classifier.classify(message)
        trace.append(TurnState.CLASSIFIED)
        logger.debug("Classified message in %s as %s", workspace_id, assistant_type.value)

        if assistant_type != AssistantType.CHATBOT and self._specialist is not None:
            trace.append(TurnState.ROUTED_TO_SPECIALIST)
            outcome = await self._ask_specialist(workspace_id, assistant_type, message)
            if outcome.ok:
                trace.append(TurnState.SPECIALIST_RESPONDED)
                specialist: SpecialistReply = outcome.value
                reply = AssistantReply(
                    response=specialist.response,
                    sources=specialist.sources,
                    actions=specialist.actions,
                    assistant_type=assistant_type,
                    trace=trace,
                )
                return self._respond(workspace_id, member_id, reply)
            logger.info("Specialist %s unavailable (%s), using workspace retrieval", assistant_type.value, outcome.error)

        trace.append(TurnState.RETRIEVING)
        intent = self._meeting_classifier.detect(message)
        if intent.is_meeting and self._calendar is not None:
            results = await self._calendar.retrieve(workspace_id, message, intent, limit=self._search_limit)
        else:
            results = await self._aggregator.search(workspace_id, message, limit=self._search_limit)

        if not results:
            reply = AssistantReply(response=NO_INFORMATION_RESPONSE, assistant_type=assistant_type, trace=trace)
            return self._respond(workspace_id, member_id, reply)

        history = self._conversations.recent(workspace_id, member_id, self._history_window)
        assembled = self._assembler.assemble(
            question=message,
            results=results,
            history=history,
            meeting_intent=intent,
            workspace_name=await self._workspace_name(workspace_id),
        )
        trace.append(TurnState.CONTEXT_BUILT)

        trace.append(TurnState.GENERATING)
        outcome = await self._generate(assembled.prompt, assembled.context, workspace_id)
        if not outcome.ok:
            reply = AssistantReply(
                response=GENERATION_FAILED_RESPONSE,
                assistant_type=assistant_type,
                trace=trace,
                error=outcome.error,
            )
            return self._respond(workspace_id, member_id, reply)

        reply = AssistantReply(
            response=outcome.value,
            sources=source_previews(results),
            actions=derive_actions(workspace_id, results, intent),
            assistant_type=assistant_type,
            trace=trace,
        )
        return self._respond(workspace_id, member_id, reply)

    def _respond(self, workspace_id: str, member_id: str, reply: AssistantReply) -> AssistantReply:
        reply.trace.append(TurnState.RESPONDED)
        self._persist(workspace_id, member_id, reply)
        return reply

    def _persist(self, workspace_id: str, member_id: str, reply: AssistantReply) -> None:
        self._conversations.append(
            workspace_id,
            member_id,
            Turn(role=Role.ASSISTANT, content=reply.response, sources=reply.sources, actions=reply.actions),
        )
        reply.trace.append(TurnState.PERSISTED)

    async def _workspace_name(self, workspace_id: str) -> str:
        if self._workspaces is None:
            return DEFAULT_WORKSPACE_NAME
        workspace = await self._workspaces.get_workspace(workspace_id)
        return workspace.name if workspace else DEFAULT_WORKSPACE_NAME

    async def specialist_context(self, workspace_id: str, message: str) -> str:
        """Workspace name plus short previews of related content."""
        results = await self._aggregator.search_all(
            workspace_id, message, limit=self._specialist_context_limit
        )
        lines = [
            f"Workspace: {await self._workspace_name(workspace_id)}",
            "Recent relevant content:",
        ]
        lines.extend(
            f"[{r.type.value.upper()}] {r.text[:SPECIALIST_PREVIEW_LENGTH]}" for r in results
        )
        return "\n".join(lines)

    async def _ask_specialist(
        self, workspace_id: str, assistant_type: AssistantType, message: str
    ) -> Outcome[SpecialistReply]:
        try:
            context = await self.specialist_context(workspace_id, message)
            return await asyncio.wait_for(
                self._specialist.ask(assistant_type.value, message, context, workspace_id),
                timeout=self._specialist_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Specialist %s timed out after %.1fs", assistant_type.value, self._specialist_timeout)
            return Outcome.fatal("specialist timed out")
        except Exception as e:
            logger.warning("Specialist %s failed: %s", assistant_type.value, e)
            return Outcome.fatal(str(e))

    async def _generate(self, prompt: str, context: str, workspace_id: str) -> Outcome[str]:
        try:
            return await asyncio.wait_for(
                self._model.generate(prompt, context, workspace_id), timeout=self._model_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Language model timed out after %.1fs", self._model_timeout)
            return Outcome.fatal("language model timed out")
        except Exception as e:
            logger.warning("Language model failed: %s", e)
            return Outcome.fatal(str(e))
