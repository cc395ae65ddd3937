"""Tests for prompt assembly."""

import pytest

from atrium.common.schemas import ResultType, RetrievalResult, Role, Turn
from atrium.retriever.context import (
    NEW_CONVERSATION,
    REFUSAL_PHRASE,
    ContextAssembler,
    render_history,
    render_result,
)
from atrium.retriever.query_classifier import MeetingIntent


def result(result_id, result_type, text):
    return RetrievalResult(id=result_id, type=result_type, text=text, workspace_id="ws1")


class TestRenderResult:
    def test_plain(self):
        assert render_result(result("n1", ResultType.NOTE, "Roadmap")) == "[NOTE] Roadmap"

    def test_meeting_markers(self):
        task = result("t1", ResultType.TASK, "Prep demo meeting")
        note = result("n1", ResultType.NOTE, "Agenda")

        assert render_result(task, meeting_intent=True) == "[TASK] **TASK MEETING:** Prep demo meeting"
        assert render_result(note, meeting_intent=True) == "[NOTE] Agenda"


class TestRenderHistory:
    def test_empty_history(self):
        assert render_history([]) == NEW_CONVERSATION

    def test_window(self):
        turns = [Turn(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=f"t{i}") for i in range(8)]
        rendered = render_history(turns, window=3)

        assert rendered.splitlines() == ["Assistant: t5", "User: t6", "Assistant: t7"]


class TestContextAssembler:
    @pytest.fixture
    def assembler(self):
        return ContextAssembler(history_window=5)

    def test_requires_results(self, assembler):
        with pytest.raises(ValueError):
            assembler.assemble("anything?", [])

    def test_prompt_contents(self, assembler):
        results = [
            result("m1", ResultType.MESSAGE, "Launch is Friday"),
            result("t1", ResultType.TASK, "Write launch post"),
        ]
        history = [Turn(role=Role.USER, content="When is launch?")]

        assembled = assembler.assemble("When is launch?", results, history, workspace_name="Acme")

        assert assembled.context == "[MESSAGE] Launch is Friday\n\n[TASK] Write launch post"
        assert "workspace assistant for Acme" in assembled.prompt
        assert assembled.context in assembled.prompt
        assert "User: When is launch?" in assembled.prompt
        assert "User's question: When is launch?" in assembled.prompt
        assert REFUSAL_PHRASE in assembled.prompt
        assert "MEETING AND EVENT QUESTIONS" not in assembled.prompt

    def test_default_workspace_name_and_new_conversation(self, assembler):
        assembled = assembler.assemble("q", [result("n1", ResultType.NOTE, "x")])
        assert "workspace assistant for your workspace" in assembled.prompt
        assert NEW_CONVERSATION in assembled.prompt

    def test_meeting_instructions(self, assembler):
        assembled = assembler.assemble(
            "meetings this week?",
            [result("t1", ResultType.TASK, "Client call")],
            meeting_intent=MeetingIntent(is_meeting=True),
        )
        assert "MEETING AND EVENT QUESTIONS" in assembled.prompt
        assert "### 🕐 Today" in assembled.prompt
        assert "**TASK MEETING:**" in assembled.context
