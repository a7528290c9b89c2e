"""LLM provider adapters.

Three concrete implementations of ILLMProvider (ragdesk/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4 by default (also any OpenAI-compatible API)
    - AnthropicLLMProvider -- Claude via the Messages API
    - OllamaLLMProvider    -- local models via an Ollama server

main.py picks the first configured provider (or the one forced with
LLM_PROVIDER) and injects it into the chat service.
"""

from ragdesk.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragdesk.providers.llm.ollama_provider import OllamaLLMProvider
from ragdesk.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider", "OllamaLLMProvider"]
