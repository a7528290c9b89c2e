"""Answer synthesis models: sources, token usage, responses and usage records."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class Source(BaseModel):
    """A document excerpt cited as grounding for a generated answer."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    title: str = ""
    content: str = ""
    score: float = 0.0


class TokenUsage(BaseModel):
    """Token counts reported by the LLM provider for one call."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class LLMCompletion(BaseModel):
    """Text plus usage returned by a non-streaming LLM call."""

    model_config = ConfigDict(frozen=True)

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = ""


class ChatResponse(BaseModel):
    """Complete (non-streamed) grounded answer."""

    model_config = ConfigDict(frozen=True)

    content: str
    sources: list[Source] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)


class UsageRecord(BaseModel):
    """A single metering entry handed to the usage/billing collaborator."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    organization_id: str
    tokens_used: int = Field(ge=0)
    api_calls: int = Field(default=1, ge=0)
    cost: float = Field(ge=0.0)
    date: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
