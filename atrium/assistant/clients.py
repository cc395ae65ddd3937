"""
External assistant clients.

- SpecialistClient: integration assistants (github, gmail, calendar, ...)
- LanguageModel: grounded answer generation

``AssistantAPIClient`` implements both over the assistant HTTP API
(``POST {base_url}/api/assistant``). ``DirectLLMModel`` generates through a
provider SDK instead. Every failure is reported as ``Outcome.fatal``; the
orchestrator turns it into its next fallback branch.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..common.llm_client import LLMClient
from ..common.results import Outcome
from ..common.schemas import NavigationAction, Source

logger = logging.getLogger("atrium.assistant.clients")

ASSISTANT_PATH = "/api/assistant"
EMPTY_MODEL_RESPONSE = "I'm sorry, I couldn't process your request at the moment."


@dataclass
class SpecialistReply:
    response: str
    actions: List[NavigationAction] = field(default_factory=list)
    sources: List[Source] = field(default_factory=list)


class AssistantAPIError(RuntimeError):
    """Non-success answer from the assistant API."""


class SpecialistClient(ABC):
    @abstractmethod
    async def ask(
        self,
        assistant_type: str,
        message: str,
        workspace_context: str,
        workspace_id: str,
    ) -> Outcome[SpecialistReply]:
        ...


class LanguageModel(ABC):
    @abstractmethod
    async def generate(self, prompt: str, context: str, workspace_id: str) -> Outcome[str]:
        ...


def parse_action(data: Dict[str, Any]) -> NavigationAction:
    """Action dict from the API (camelCase ids) to a NavigationAction"""
    return NavigationAction(
        label=data.get("label", ""),
        type=data.get("type", ""),
        url=data.get("url", ""),
        note_id=data.get("noteId") or data.get("note_id"),
        channel_id=data.get("channelId") or data.get("channel_id"),
    )


def parse_source(data: Dict[str, Any]) -> Source:
    return Source(id=str(data.get("id", "")), type=str(data.get("type", "")), text=str(data.get("text", "")))


class AssistantAPIClient(SpecialistClient, LanguageModel):
    """
    httpx client for the assistant HTTP API.

    Request body: ``{type, message, workspaceContext, workspaceId}``.
    Response body: ``{success, response, actions?, sources?, error?}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: Assistant API origin, e.g. http://localhost:3000
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(ASSISTANT_PATH, json=payload)
        if response.status_code >= 400:
            raise AssistantAPIError(f"Assistant API error: {response.status_code}")

        data = response.json()
        if not isinstance(data, dict):
            raise AssistantAPIError("Assistant API returned a non-object body")
        if data.get("success") is False:
            raise AssistantAPIError(data.get("error") or "Assistant API returned an error")
        return data

    async def ask(
        self,
        assistant_type: str,
        message: str,
        workspace_context: str,
        workspace_id: str,
    ) -> Outcome[SpecialistReply]:
        payload = {
            "type": assistant_type,
            "message": message,
            "workspaceContext": workspace_context,
            "workspaceId": workspace_id,
        }
        try:
            data = await self._post(payload)
        except (httpx.HTTPError, AssistantAPIError, ValueError) as e:
            logger.warning("Specialist %s failed: %s", assistant_type, e)
            return Outcome.fatal(str(e))

        if not data.get("success") or not data.get("response"):
            return Outcome.fatal(f"{assistant_type} assistant returned no response")

        return Outcome.success(SpecialistReply(
            response=data["response"],
            actions=[parse_action(a) for a in data.get("actions") or [] if isinstance(a, dict)],
            sources=[parse_source(s) for s in data.get("sources") or [] if isinstance(s, dict)],
        ))

    async def generate(self, prompt: str, context: str, workspace_id: str) -> Outcome[str]:
        payload = {
            "type": "chatbot",
            "message": prompt,
            "workspaceContext": context,
            "workspaceId": workspace_id,
        }
        try:
            data = await self._post(payload)
        except (httpx.HTTPError, AssistantAPIError, ValueError) as e:
            logger.warning("Model call failed: %s", e)
            return Outcome.fatal(str(e))

        return Outcome.success(data.get("response") or EMPTY_MODEL_RESPONSE)


class DirectLLMModel(LanguageModel):
    """Language model backed by a provider SDK through LLMClient."""

    def __init__(self, llm_client: LLMClient, timeout: float = 30.0, max_tokens: int = 1024):
        self._llm = llm_client
        self._timeout = timeout
        self._max_tokens = max_tokens

    @property
    def is_available(self) -> bool:
        return self._llm.is_available

    async def generate(self, prompt: str, context: str, workspace_id: str) -> Outcome[str]:
        if not self._llm.is_available:
            return Outcome.fatal("LLM client is not available")

        try:
            text = await asyncio.to_thread(
                self._llm.generate, prompt, max_tokens=self._max_tokens, timeout=self._timeout
            )
        except Exception as e:
            logger.warning("%s generation failed: %s", self._llm.provider, e)
            return Outcome.fatal(str(e))

        return Outcome.success(text or EMPTY_MODEL_RESPONSE)
