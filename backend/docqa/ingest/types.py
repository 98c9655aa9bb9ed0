"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from docqa.models.entities import Document


@dataclass(slots=True)
class LoadedDocument:
    """Text extracted from a local file."""

    path: Path
    text: str
    mime: str
    title: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class IngestFailure:
    """An input that could not be turned into documents."""

    input: str
    reason: str


@dataclass(slots=True)
class IngestedInput:
    """Documents produced from a single input: the full text plus its chunks."""

    input: str
    documents: list[Document]

    @property
    def parent(self) -> Document:
        return self.documents[0]

    @property
    def chunks(self) -> list[Document]:
        return self.documents[1:]


@dataclass(slots=True)
class IngestReport:
    """Aggregated outcome of one ingest call."""

    succeeded: list[IngestedInput] = field(default_factory=list)
    failed: list[IngestFailure] = field(default_factory=list)

    @property
    def documents(self) -> list[Document]:
        return [document for item in self.succeeded for document in item.documents]

    @property
    def partial(self) -> bool:
        return bool(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": len(self.succeeded),
            "failed": [{"input": _preview(item.input), "reason": item.reason} for item in self.failed],
            "documents": len(self.documents),
            "chunks": sum(len(item.chunks) for item in self.succeeded),
        }


def _preview(value: str, limit: int = 80) -> str:
    return value if len(value) <= limit else value[:limit] + "..."


__all__ = [
    "LoadedDocument",
    "IngestFailure",
    "IngestedInput",
    "IngestReport",
]
