"""
Query Classifier

Two independent rule-table classifiers over the raw user message:

- AssistantTypeClassifier routes a message to a specialist integration
  (github, gmail, ...) or to the default retrieval chatbot.
- MeetingIntentClassifier detects calendar/meeting questions and the
  narrower "today" sub-intent.

Rules are ordered ``(predicate, label)`` pairs; the first matching rule
wins and the table ends with an unconditional catch-all.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Sequence, Tuple

Predicate = Callable[[str], bool]


class AssistantType(str, Enum):
    """Assistant that should answer a message"""
    GITHUB = "github"
    GMAIL = "gmail"
    SLACK = "slack"
    JIRA = "jira"
    CLICKUP = "clickup"
    NOTION = "notion"
    CALENDAR = "calendar"
    NOTES = "notes"
    TASKS = "tasks"
    BOARD = "board"
    CHATBOT = "chatbot"  # default: retrieval-grounded answer


def matches(pattern: str) -> Predicate:
    """Case-insensitive regex search predicate"""
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda text: compiled.search(text) is not None


def always(_text: str) -> bool:
    return True


# Verbs that turn a workspace noun into an action request
ACTION = r"\b(create|add|make|schedule|book|reschedule|cancel|update|edit|delete|remove|move|assign|write|set up)\b"


def action_on(noun: str) -> Predicate:
    """Action verb followed (anywhere later) by ``noun``"""
    return matches(ACTION + r".*\b" + noun)


class RuleClassifier:
    """First-match-wins classifier over an ordered rule list."""

    def __init__(self, rules: Sequence[Tuple[Predicate, object]]):
        if not rules:
            raise ValueError("Rule table must not be empty")
        if rules[-1][0] is not always:
            raise ValueError("Rule table must end with a catch-all rule")
        self._rules: List[Tuple[Predicate, object]] = list(rules)

    @property
    def labels(self) -> List[object]:
        return [label for _, label in self._rules]

    def classify(self, text: str):
        text = text or ""
        for predicate, label in self._rules:
            if predicate(text):
                return label
        # Unreachable: the last rule always matches
        return self._rules[-1][1]


class AssistantTypeClassifier(RuleClassifier):
    """
    Map a message to an AssistantType.

    Integrations match on their product keywords. Workspace types
    (calendar, notes, tasks, board) only match action requests, so plain
    questions ("what meetings do I have?") stay with the retrieval chatbot.
    """

    RULES: Sequence[Tuple[Predicate, AssistantType]] = (
        (matches(r"\b(github|pull requests?|prs?|repos?|repository|repositories|commits?|branch(es)?)\b"), AssistantType.GITHUB),
        (matches(r"\b(gmail|e-?mails?|inbox|mailbox)\b"), AssistantType.GMAIL),
        (matches(r"\bslack\b"), AssistantType.SLACK),
        (matches(r"\bjira\b"), AssistantType.JIRA),
        (matches(r"\b(clickup|click up)\b"), AssistantType.CLICKUP),
        (matches(r"\bnotion\b"), AssistantType.NOTION),
        (action_on(r"(meetings?|events?|appointments?|calendar)\b"), AssistantType.CALENDAR),
        (action_on(r"notes?\b"), AssistantType.NOTES),
        (matches(r"\bremind me to\b"), AssistantType.TASKS),
        (action_on(r"(tasks?|todos?|to-dos?)\b"), AssistantType.TASKS),
        (action_on(r"(cards?|boards?)\b"), AssistantType.BOARD),
        (always, AssistantType.CHATBOT),
    )

    def __init__(self):
        super().__init__(self.RULES)

    def classify(self, text: str) -> AssistantType:
        return super().classify(text)


@dataclass(frozen=True)
class MeetingIntent:
    is_meeting: bool = False
    is_today: bool = False  # only ever True together with is_meeting


NO_MEETING_INTENT = MeetingIntent()


class MeetingIntentClassifier:
    """Detect meeting/calendar questions and the "today" sub-intent."""

    MEETING_PATTERN = re.compile(
        r"\b(meeting|meetings|event|events|calendar|schedule|appointment|appointments|today['’]s events)\b",
        re.IGNORECASE,
    )
    TODAY_PATTERN = re.compile(r"\b(today|today['’]s)\b", re.IGNORECASE)

    def __init__(self):
        self._meeting = RuleClassifier(
            ((self.MEETING_PATTERN.search, True), (always, False))
        )
        self._today = RuleClassifier(
            ((self.TODAY_PATTERN.search, True), (always, False))
        )

    def detect(self, text: str) -> MeetingIntent:
        is_meeting = bool(self._meeting.classify(text))
        if not is_meeting:
            return NO_MEETING_INTENT
        return MeetingIntent(is_meeting=True, is_today=bool(self._today.classify(text)))
