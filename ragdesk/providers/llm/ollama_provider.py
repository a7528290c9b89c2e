"""Ollama LLM provider adapter.

Talks to a local Ollama server through its OpenAI-compatible ``/v1`` API,
so the request/streaming logic is inherited from
:class:`~ragdesk.providers.llm.openai_provider.OpenAILLMProvider`; only the
client wiring and availability check differ.

Setup: install Ollama, ``ollama pull llama3.2``, and set
``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from ragdesk.config.settings import Settings
from ragdesk.providers.llm.openai_provider import OpenAILLMProvider

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(OpenAILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._api_key = "ollama"  # Ollama ignores the key but the SDK requires one
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key=self._api_key,
            timeout=openai.Timeout(120.0, connect=5.0),
        )
        self._model = settings.ollama_chat_model
        self._provider_label = "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers ``/api/tags``."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
        except (httpx.ConnectError, httpx.TimeoutException):
            logger.debug("ollama_unreachable", base_url=self._base_url)
            return False
        return response.status_code == 200
