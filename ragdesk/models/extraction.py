"""Models describing the output of binary-to-text extraction."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DocumentMetadata(BaseModel):
    """Descriptive metadata embedded in a document (PDF info dict, etc.)."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    author: str = ""
    subject: str = ""
    keywords: list[str] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Plain text pulled out of a binary document, with page count and metadata."""

    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int = Field(default=1, ge=0)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
