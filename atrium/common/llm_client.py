"""
Language model client used by the direct model backend.

Wraps the Anthropic, OpenAI and Google Gemini SDKs behind one blocking
``generate`` call. The assistant runs it in a worker thread.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import LLMConfig

logger = logging.getLogger("atrium.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


class LLMClient:
    """Blocking text generation across model providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None
        self._gemini_models = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        init = getattr(self, f"_init_{self.provider}")
        try:
            self._client = init(api_key)
        except ImportError as e:
            logger.warning("SDK for %s not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        provider = (config.provider or "anthropic").lower()
        model = getattr(config, f"{provider}_model", "")
        api_key = getattr(config, f"{provider}_api_key", None)
        return cls(provider=provider, model=model, api_key=api_key)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    @staticmethod
    def _init_anthropic(api_key: str):
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _init_openai(api_key: str):
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @staticmethod
    def _init_google(api_key: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 30.0,
    ) -> str:
        """
        Generate a completion for a single user prompt.

        Raises:
            RuntimeError: client not available
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system or "",
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = [{"role": "system", "content": system}] if system else []
            messages.append({"role": "user", "content": prompt})
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        # google: one GenerativeModel per system instruction
        model = self._gemini_models.get(system)
        if model is None:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            model = self._client.GenerativeModel(**kwargs)
            self._gemini_models[system] = model
        response = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text.strip()
