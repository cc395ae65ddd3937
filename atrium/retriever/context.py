"""
Context Assembler

Builds the grounded prompt sent to the language model from retrieval
results, recent conversation history and the user's question. Pure string
composition; the caller guarantees at least one result.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from ..common.schemas import ResultType, RetrievalResult, Role, Turn
from .query_classifier import MeetingIntent

DEFAULT_HISTORY_WINDOW = 5

REFUSAL_PHRASE = "I don't have information about that in your workspace."
NEW_CONVERSATION = "This is a new conversation."

MEETING_MARKERS = {
    ResultType.TASK: "**TASK MEETING:**",
    ResultType.MESSAGE: "**MESSAGE MEETING:**",
    ResultType.CARD: "**BOARD CARD MEETING:**",
}

PROMPT_TEMPLATE = """You are a helpful workspace assistant for {workspace_name}, a team collaboration workspace.
You can help users with information about their workspace, tasks, messages, notes and board cards.
Be concise, friendly, and helpful.

IMPORTANT: You must ONLY answer based on the context provided below. If the context doesn't contain information relevant to the user's question, respond with "{refusal}" Do NOT use your general knowledge to answer questions.

Here is the context from the workspace that might be relevant to the user's question:
{context}

Recent conversation history:
{history}

User's question: {question}
{meeting_instructions}
Remember: Only answer based on the context provided. If the context doesn't contain relevant information, say "{refusal}"
"""

MEETING_INSTRUCTIONS = """
INSTRUCTIONS FOR MEETING AND EVENT QUESTIONS:
1. Examine every content type in the context above ([EVENT], [MESSAGE], [TASK], [CARD], [NOTE] and [INFO]). Meetings can be mentioned anywhere.
2. Include all meeting-related content, whatever its source. A task that describes a meeting matters as much as a calendar event.
3. Present meetings in this format:

## 📅 Your Meetings

### 🕐 Today
- 🗓️ **Meeting Title**
  📍 *Time: HH:MM AM/PM*
  📝 *Source: Calendar Event/Task/Message*
  💬 *Details: Brief description if available*

### 📆 Tomorrow
- 🗓️ **Meeting Title**
  📍 *Time: HH:MM AM/PM*
  📝 *Source: Calendar Event/Task/Message*
  💬 *Details: Brief description if available*

### 📅 This Week
- 🗓️ **Meeting Title**
  📍 *Day, Date at HH:MM AM/PM*
  📝 *Source: Calendar Event/Task/Message*
  💬 *Details: Brief description if available*

### 🗓️ Next Week
- 🗓️ **Meeting Title**
  📍 *Day, Date at HH:MM AM/PM*
  📝 *Source: Calendar Event/Task/Message*
  💬 *Details: Brief description if available*

4. Group meetings by Today, Tomorrow, This Week and Next Week, earliest first within each group.
5. Use day names (Monday, Tuesday, ...) and always give times in 12-hour format (AM/PM).
6. Emoji markers: 📅 section headers, 🕐 time periods, 🗓️ individual meetings, 📍 time or location, 📝 source type, 💬 details, ⚡ urgent or high priority.
7. Do not omit any meeting found in the context.
"""


@dataclass
class AssembledPrompt:
    prompt: str
    context: str  # the rendered context block on its own


def render_result(result: RetrievalResult, meeting_intent: bool = False) -> str:
    """``[TYPE] text``, with a meeting marker for task/message/card results."""
    line = f"[{result.type.value.upper()}]"
    if meeting_intent and result.type in MEETING_MARKERS:
        line += f" {MEETING_MARKERS[result.type]}"
    return f"{line} {result.text}"


def render_history(turns: Sequence[Turn], window: int = DEFAULT_HISTORY_WINDOW) -> str:
    recent = list(turns)[-window:] if window > 0 else []
    if not recent:
        return NEW_CONVERSATION
    return "\n".join(
        f"{'User' if turn.role == Role.USER else 'Assistant'}: {turn.content}" for turn in recent
    )


class ContextAssembler:
    def __init__(self, history_window: int = DEFAULT_HISTORY_WINDOW):
        self._history_window = history_window

    def assemble(
        self,
        question: str,
        results: Sequence[RetrievalResult],
        history: Sequence[Turn] = (),
        meeting_intent: Optional[MeetingIntent] = None,
        workspace_name: Optional[str] = None,
    ) -> AssembledPrompt:
        """
        Compose the grounded prompt.

        Raises:
            ValueError: no results; the caller must answer without the model
        """
        if not results:
            raise ValueError("Cannot assemble a grounded prompt without results")

        is_meeting = bool(meeting_intent and meeting_intent.is_meeting)
        context = "\n\n".join(render_result(r, is_meeting) for r in results)

        prompt = PROMPT_TEMPLATE.format(
            workspace_name=workspace_name or "your workspace",
            refusal=REFUSAL_PHRASE,
            context=context,
            history=render_history(history, self._history_window),
            question=question,
            meeting_instructions=MEETING_INSTRUCTIONS if is_meeting else "",
        )
        return AssembledPrompt(prompt=prompt, context=context)
