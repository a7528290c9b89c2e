"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`
via the Claude Messages API.

Differences from the OpenAI adapter:
    - The system prompt is a top-level parameter, not a message.
    - Response content is a list of blocks; only text blocks are joined.
    - Streaming goes through ``messages.stream()``, whose ``text_stream``
      yields plain text deltas.
"""

from __future__ import annotations

from typing import AsyncIterator

import anthropic
import structlog

from ragdesk.config.settings import Settings
from ragdesk.interfaces.llm_provider import ILLMProvider
from ragdesk.models.chat import LLMCompletion, TokenUsage
from ragdesk.utils.errors import LLMProviderError

logger = structlog.get_logger(logger_name=__name__)


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._model = settings.anthropic_chat_model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMCompletion:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.APIError as exc:
            raise LLMProviderError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMProviderError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return LLMCompletion(
            content="\n".join(text_blocks),
            usage=TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            model=self._model,
        )

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            ) as message_stream:
                async for text in message_stream.text_stream:
                    if text:
                        yield text
        except anthropic.APIError as exc:
            raise LLMProviderError(
                message=f"Anthropic stream error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)
