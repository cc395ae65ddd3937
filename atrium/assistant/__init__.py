"""
Assistant - Grounded Workspace Assistant

Answers member questions from workspace content, routing integration
requests to specialist assistants.

Key Components:
- AssistantOrchestrator: Turn state machine with fallbacks
- ConversationStore: Append-only per-member history
- AssistantAPIClient / DirectLLMModel: Specialist and model backends
- RetrievalService / build_components: Pipeline wiring for the servers
"""

from .conversation_store import ConversationStore, WELCOME_MESSAGE
from .clients import (
    AssistantAPIClient,
    DirectLLMModel,
    LanguageModel,
    SpecialistClient,
    SpecialistReply,
)
from .orchestrator import (
    AssistantOrchestrator,
    AssistantReply,
    TurnState,
    NO_INFORMATION_RESPONSE,
    GENERATION_FAILED_RESPONSE,
    INTERNAL_ERROR_RESPONSE,
)
from .service import Components, RetrievalService, build_components

__all__ = [
    "ConversationStore",
    "WELCOME_MESSAGE",
    "AssistantAPIClient",
    "DirectLLMModel",
    "LanguageModel",
    "SpecialistClient",
    "SpecialistReply",
    "AssistantOrchestrator",
    "AssistantReply",
    "TurnState",
    "NO_INFORMATION_RESPONSE",
    "GENERATION_FAILED_RESPONSE",
    "INTERNAL_ERROR_RESPONSE",
    "Components",
    "RetrievalService",
    "build_components",
]
