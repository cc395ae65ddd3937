"""
Tests for the Assistant Orchestrator

Covers the turn state machine: grounding guarantee, specialist routing and
fallthrough, calendar path, generation failures and history persistence.
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from atrium.assistant.clients import SpecialistReply
from atrium.assistant.conversation_store import ConversationStore
from atrium.assistant.orchestrator import (
    GENERATION_FAILED_RESPONSE,
    INTERNAL_ERROR_RESPONSE,
    NO_INFORMATION_RESPONSE,
    AssistantOrchestrator,
    TurnState,
    derive_actions,
    source_previews,
)
from atrium.common.results import Outcome
from atrium.common.schemas import NavigationAction, ResultType, RetrievalResult, Role
from atrium.retriever.aggregator import ResultAggregator
from atrium.retriever.lexical import default_searchers
from atrium.retriever.query_classifier import AssistantType, MeetingIntent


def result(result_id, result_type=ResultType.MESSAGE, text="some content", **metadata):
    return RetrievalResult(
        id=result_id,
        type=result_type,
        text=text,
        workspace_id="ws1",
        created_at=datetime(2026, 10, 19, 9),
        metadata=metadata,
    )


def mock_model(outcome=None):
    model = MagicMock()
    model.generate = AsyncMock(return_value=outcome or Outcome.success("Grounded answer"))
    return model


def mock_aggregator(results=None):
    aggregator = MagicMock()
    aggregator.search = AsyncMock(return_value=results or [])
    aggregator.search_all = AsyncMock(return_value=[])
    return aggregator


class TestGroundedTurn:
    @pytest.fixture
    def conversations(self):
        return ConversationStore()

    @pytest.fixture
    def model(self):
        return mock_model()

    @pytest.fixture
    def orchestrator(self, conversations, model, workspace_store):
        return AssistantOrchestrator(
            conversations=conversations,
            aggregator=ResultAggregator(default_searchers(workspace_store)),
            model=model,
            workspace_store=workspace_store,
        )

    @pytest.mark.asyncio
    async def test_answer_with_sources_and_actions(self, orchestrator, model, conversations):
        reply = await orchestrator.handle("ws1", "m1", "launch review")

        assert reply.response == "Grounded answer"
        assert reply.grounded
        assert [s.id for s in reply.sources] == ["task-1", "msg-1"]
        assert [a.type for a in reply.actions] == ["tasks", "chats"]
        assert reply.actions[1].url == "/workspace/ws1/channel/ch-general/chats"
        assert reply.assistant_type == AssistantType.CHATBOT
        assert reply.trace == [
            TurnState.RECEIVED,
            TurnState.CLASSIFIED,
            TurnState.RETRIEVING,
            TurnState.CONTEXT_BUILT,
            TurnState.GENERATING,
            TurnState.RESPONDED,
            TurnState.PERSISTED,
        ]

        prompt, context, workspace_id = model.generate.call_args.args
        assert "workspace assistant for Acme" in prompt
        assert "[TASK] Prepare launch deck" in context
        assert workspace_id == "ws1"

        turns = conversations.read("ws1", "m1")
        assert [t.role for t in turns] == [Role.USER, Role.ASSISTANT]
        assert turns[1].sources == reply.sources

    @pytest.mark.asyncio
    async def test_model_never_called_without_results(self, orchestrator, model, conversations):
        reply = await orchestrator.handle("ws1", "m1", "zebra migration plan")

        assert reply.response == NO_INFORMATION_RESPONSE
        assert reply.sources == []
        assert not reply.grounded
        model.generate.assert_not_called()
        assert TurnState.GENERATING not in reply.trace
        assert reply.trace[-1] == TurnState.PERSISTED
        assert conversations.read("ws1", "m1")[-1].content == NO_INFORMATION_RESPONSE

    @pytest.mark.asyncio
    async def test_other_workspace_content_is_not_used(self, orchestrator, model):
        reply = await orchestrator.handle("ws1", "m1", "launch review")
        assert all(not s.id.startswith("other-") for s in reply.sources)

    @pytest.mark.asyncio
    async def test_history_includes_current_question(self, orchestrator, model):
        await orchestrator.handle("ws1", "m1", "launch review")
        prompt = model.generate.call_args.args[0]
        assert "User: launch review" in prompt


class TestFailurePaths:
    @pytest.mark.asyncio
    async def test_generation_failure(self):
        conversations = ConversationStore()
        orchestrator = AssistantOrchestrator(
            conversations, mock_aggregator([result("m1")]), mock_model(Outcome.fatal("model down"))
        )

        reply = await orchestrator.handle("ws1", "m1", "status?")

        assert reply.response == GENERATION_FAILED_RESPONSE
        assert reply.error == "model down"
        assert reply.sources == []
        assert conversations.read("ws1", "m1")[-1].content == GENERATION_FAILED_RESPONSE

    @pytest.mark.asyncio
    async def test_model_exception(self):
        model = MagicMock()
        model.generate = AsyncMock(side_effect=RuntimeError("connection reset"))
        orchestrator = AssistantOrchestrator(ConversationStore(), mock_aggregator([result("m1")]), model)

        reply = await orchestrator.handle("ws1", "m1", "status?")
        assert reply.response == GENERATION_FAILED_RESPONSE

    @pytest.mark.asyncio
    async def test_model_timeout(self):
        async def slow_generate(prompt, context, workspace_id):
            await asyncio.sleep(1)
            return Outcome.success("late")

        model = MagicMock()
        model.generate = slow_generate
        orchestrator = AssistantOrchestrator(
            ConversationStore(), mock_aggregator([result("m1")]), model, model_timeout=0.01
        )

        reply = await orchestrator.handle("ws1", "m1", "status?")
        assert reply.response == GENERATION_FAILED_RESPONSE
        assert reply.error == "language model timed out"

    @pytest.mark.asyncio
    async def test_internal_error_is_answered_and_persisted(self):
        aggregator = mock_aggregator()
        aggregator.search.side_effect = RuntimeError("unexpected")
        conversations = ConversationStore()
        orchestrator = AssistantOrchestrator(conversations, aggregator, mock_model())

        reply = await orchestrator.handle("ws1", "m1", "status?")

        assert reply.response == INTERNAL_ERROR_RESPONSE
        assert reply.error == "unexpected"
        assert reply.trace[-2:] == [TurnState.RESPONDED, TurnState.PERSISTED]
        assert [t.content for t in conversations.read("ws1", "m1")] == ["status?", INTERNAL_ERROR_RESPONSE]


class TestSpecialistRouting:
    @pytest.mark.asyncio
    async def test_specialist_answers(self, workspace_store):
        specialist = MagicMock()
        specialist.ask = AsyncMock(return_value=Outcome.success(SpecialistReply(
            response="You have 2 open PRs",
            actions=[NavigationAction(label="Open GitHub", type="github", url="https://github.com")],
        )))
        model = mock_model()
        orchestrator = AssistantOrchestrator(
            ConversationStore(),
            ResultAggregator(default_searchers(workspace_store)),
            model,
            specialist=specialist,
            workspace_store=workspace_store,
        )

        reply = await orchestrator.handle("ws1", "m1", "Show my open pull requests")

        assert reply.response == "You have 2 open PRs"
        assert reply.assistant_type == AssistantType.GITHUB
        assert reply.actions[0].type == "github"
        assert TurnState.SPECIALIST_RESPONDED in reply.trace
        assert TurnState.RETRIEVING not in reply.trace
        model.generate.assert_not_called()

        assistant_type, message, context, workspace_id = specialist.ask.call_args.args
        assert assistant_type == "github"
        assert context.startswith("Workspace: Acme\nRecent relevant content:")
        assert workspace_id == "ws1"

    @pytest.mark.asyncio
    async def test_unreachable_specialist_falls_through(self):
        specialist = MagicMock()
        specialist.ask = AsyncMock(return_value=Outcome.fatal("connection refused"))
        model = mock_model()
        orchestrator = AssistantOrchestrator(
            ConversationStore(), mock_aggregator([result("m1")]), model, specialist=specialist
        )

        reply = await orchestrator.handle("ws1", "m1", "Any new commits on main?")

        assert reply.response == "Grounded answer"
        assert reply.assistant_type == AssistantType.GITHUB
        assert TurnState.ROUTED_TO_SPECIALIST in reply.trace
        assert TurnState.SPECIALIST_RESPONDED not in reply.trace
        assert TurnState.RETRIEVING in reply.trace
        model.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_specialist_exception_falls_through(self):
        specialist = MagicMock()
        specialist.ask = AsyncMock(side_effect=RuntimeError("boom"))
        orchestrator = AssistantOrchestrator(
            ConversationStore(), mock_aggregator([result("m1")]), mock_model(), specialist=specialist
        )

        reply = await orchestrator.handle("ws1", "m1", "Check my inbox")
        assert reply.response == "Grounded answer"

    @pytest.mark.asyncio
    async def test_chatbot_messages_skip_specialist(self):
        specialist = MagicMock()
        specialist.ask = AsyncMock()
        orchestrator = AssistantOrchestrator(
            ConversationStore(), mock_aggregator([result("m1")]), mock_model(), specialist=specialist
        )

        await orchestrator.handle("ws1", "m1", "What did we decide about pricing?")
        specialist.ask.assert_not_called()

    @pytest.mark.asyncio
    async def test_specialist_context(self, workspace_store):
        orchestrator = AssistantOrchestrator(
            ConversationStore(),
            ResultAggregator(default_searchers(workspace_store)),
            mock_model(),
            workspace_store=workspace_store,
            specialist_context_limit=2,
        )

        context = await orchestrator.specialist_context("ws1", "launch")
        lines = context.splitlines()

        assert lines[0] == "Workspace: Acme"
        assert lines[1] == "Recent relevant content:"
        assert lines[2:] == [
            "[MESSAGE] The launch checklist is in the notes",
            "[NOTE] Launch plan: Steps for the launch",
        ]


class TestCalendarPath:
    @pytest.mark.asyncio
    async def test_meeting_questions_use_calendar(self):
        calendar = MagicMock()
        calendar.retrieve = AsyncMock(return_value=[result("cal-1", ResultType.EVENT, "Title: Standup")])
        aggregator = mock_aggregator([result("m1")])
        model = mock_model()
        orchestrator = AssistantOrchestrator(ConversationStore(), aggregator, model, calendar=calendar)

        reply = await orchestrator.handle("ws1", "m1", "What meetings do I have today?")

        aggregator.search.assert_not_called()
        intent = calendar.retrieve.call_args.args[2]
        assert intent == MeetingIntent(is_meeting=True, is_today=True)
        assert reply.actions[0].type == "calendar"
        assert "[EVENT] Title: Standup" in model.generate.call_args.args[1]


class TestSerialization:
    @pytest.mark.asyncio
    async def test_turns_for_one_member_do_not_interleave(self):
        async def slow_generate(prompt, context, workspace_id):
            await asyncio.sleep(0.01)
            return Outcome.success("answer")

        model = MagicMock()
        model.generate = slow_generate
        conversations = ConversationStore()
        orchestrator = AssistantOrchestrator(conversations, mock_aggregator([result("m1")]), model)

        await asyncio.gather(
            orchestrator.handle("ws1", "m1", "first"),
            orchestrator.handle("ws1", "m1", "second"),
        )

        roles = [t.role for t in conversations.read("ws1", "m1")]
        assert roles == [Role.USER, Role.ASSISTANT, Role.USER, Role.ASSISTANT]


class TestDeriveActions:
    def test_fixed_order(self):
        results = [
            result("m1", ResultType.MESSAGE),
            result("t1", ResultType.TASK),
            result("c1", ResultType.CARD, channelId="ch-eng"),
            result("n1", ResultType.NOTE, channelId="ch-eng"),
        ]
        actions = derive_actions("ws1", results, MeetingIntent(is_meeting=True))

        assert [a.label for a in actions] == ["View Calendar", "View Note", "View Board", "View Tasks", "View Chats"]
        assert actions[1].url == "/workspace/ws1/channel/ch-eng/notes?noteId=n1"
        assert actions[1].note_id == "n1"
        assert actions[2].url == "/workspace/ws1/channel/ch-eng/board"
        assert actions[4].url == "/workspace/ws1/chats"

    def test_board_without_channel(self):
        actions = derive_actions("ws1", [result("c1", ResultType.CARD)])
        assert [a.url for a in actions] == ["/workspace/ws1/boards"]

    def test_note_without_channel_has_no_action(self):
        assert derive_actions("ws1", [result("n1", ResultType.NOTE)]) == []

    def test_info_result_links_calendar(self):
        actions = derive_actions("ws1", [result("no-meetings", ResultType.INFO)])
        assert [a.type for a in actions] == ["calendar"]

    def test_source_previews_truncate(self):
        previews = source_previews([result("m1", text="x" * 150)])
        assert previews[0].text == "x" * 100 + "..."
        assert previews[0].type == "message"
