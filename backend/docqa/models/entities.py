"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from docqa.utils.ids import new_document_id
from docqa.utils.time import utc_now


@dataclass(slots=True, frozen=True)
class Document:
    """A stored unit of ingested content with its embedding.

    Full-text documents have ``parent_id = None``; chunk documents point at the
    full-text document they were cut from.
    """

    id: str
    content: str
    embedding: list[float]
    created_at: datetime = field(default_factory=utc_now)
    parent_id: str | None = None
    is_full_text: bool = False

    @classmethod
    def full_text(cls, content: str, embedding: list[float]) -> "Document":
        return cls(
            id=new_document_id(is_full_text=True),
            content=content,
            embedding=list(embedding),
            is_full_text=True,
        )

    @classmethod
    def chunk(cls, parent: "Document", content: str, embedding: list[float]) -> "Document":
        return cls(
            id=new_document_id(is_full_text=False),
            content=content,
            embedding=list(embedding),
            parent_id=parent.id,
            is_full_text=False,
        )


@dataclass(slots=True)
class ScoredDocument:
    document: Document
    score: float


@dataclass(slots=True)
class CrawledPage:
    url: str
    content: str


__all__ = ["Document", "ScoredDocument", "CrawledPage"]
