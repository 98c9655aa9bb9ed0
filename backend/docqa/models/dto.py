"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: Any = Field(default=None, description="User question; validated by the route")
    recent_messages: list[Any] | None = Field(
        default=None, description="Prior conversation turns passed to the prompt as context"
    )


class ChatResponse(BaseModel):
    response: str
    timestamp: datetime


class KnowledgeRequest(BaseModel):
    items: list[str] = Field(description="Raw text snippets or local file paths")


class IngestFailureResult(BaseModel):
    input: str
    reason: str


class KnowledgeResponse(BaseModel):
    succeeded: int
    failed: list[IngestFailureResult]
    documents: int
    chunks: int = 0


class CrawlRequest(BaseModel):
    patterns: list[str] | None = Field(default=None, description="Defaults to the configured patterns")
    max_depth: int | None = Field(default=None, ge=0)


class CrawlResponse(BaseModel):
    pages: int
    urls: list[str]
    knowledge: KnowledgeResponse | None = None


class StatusResponse(BaseModel):
    state: str
    ready: bool
    documents: int
    embedding_backend: str


class DocumentResponse(BaseModel):
    id: str
    content: str
    created_at: datetime
    parent_id: str | None
    is_full_text: bool
    chunk_ids: list[str] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


__all__ = [
    "ChatRequest",
    "ChatResponse",
    "KnowledgeRequest",
    "KnowledgeResponse",
    "IngestFailureResult",
    "CrawlRequest",
    "CrawlResponse",
    "StatusResponse",
    "DocumentResponse",
    "DeleteResponse",
]
