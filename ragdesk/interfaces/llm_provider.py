"""Abstract base class for LLM service providers.

Defines the contract for the generative backend used by answer synthesis:
a single-shot completion that reports token usage, and a streaming
completion that yields text deltas in emission order.  Implementations
wrap OpenAI, Anthropic (Claude) or a local Ollama server.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from ragdesk.models.chat import LLMCompletion


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider, OllamaLLMProvider
# Located in: ragdesk/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used by the chat service."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMCompletion:
        """Generate a full text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the question and context.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        LLMCompletion
            The response text and the provider-reported token usage.

        Raises
        ------
        ragdesk.utils.errors.LLMProviderError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> AsyncIterator[str]:
        """Stream a completion as incremental text deltas.

        Implementations are async generators.  Deltas are yielded in the
        order the provider emits them, without batching.  Closing the
        generator (``aclose()``) must release the underlying HTTP stream.

        Raises
        ------
        ragdesk.utils.errors.LLMProviderError
            If the call fails before or during streaming.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
