"""Ingest pipeline orchestration."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from docqa.core.logging import get_logger, log_context
from docqa.ingest.chunker import split_chunks
from docqa.ingest.embeddings import EmbeddingProvider
from docqa.ingest.loaders import LoaderRegistry
from docqa.ingest.types import IngestedInput, IngestFailure, IngestReport
from docqa.models.entities import Document

logger = get_logger(__name__)

CHUNK_THRESHOLD = 512
CHUNK_OVERLAP = 20

_PATH_PREFIXES = ("/", "./", "../", "~/")


class IngestPipeline:
    """Turn raw text or local files into full-text and chunk documents."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        chunk_size: int = CHUNK_THRESHOLD,
        chunk_overlap: int = CHUNK_OVERLAP,
        concurrency: int = 4,
        loader_registry: LoaderRegistry | None = None,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.concurrency = max(1, concurrency)
        self.loader_registry = loader_registry or LoaderRegistry()

    def ingest(self, inputs: Sequence[str]) -> IngestReport:
        """Embed every input; a failing input is recorded and skipped."""
        report = IngestReport()
        for raw in inputs:
            try:
                documents = self._ingest_one(raw)
            except Exception as exc:
                logger.warning(
                    "Failed to process input %r: %s", raw[:80], exc, extra=log_context(input=raw[:80])
                )
                report.failed.append(IngestFailure(input=raw, reason=str(exc) or type(exc).__name__))
                continue
            report.succeeded.append(IngestedInput(input=raw, documents=documents))
        logger.info(
            "Ingested %s of %s inputs (%s documents)",
            len(report.succeeded),
            len(inputs),
            len(report.documents),
        )
        return report

    def resolve_content(self, raw: str) -> str:
        if looks_like_path(raw):
            path = Path(raw).expanduser().resolve()
            loaded = self.loader_registry.load(path)
            logger.info("Read file: %s", path)
            return loaded.text
        return raw

    def _ingest_one(self, raw: str) -> list[Document]:
        content = self.resolve_content(raw)
        if not content.strip():
            raise ValueError("input has no text content")

        parent = Document.full_text(content, self.embedding_provider.get_embedding(content))
        logger.debug("Stored full-text embedding for document %s", parent.id)
        if len(content) <= self.chunk_size:
            return [parent]

        chunks = split_chunks(content, self.chunk_size, self.chunk_overlap)
        with ThreadPoolExecutor(max_workers=min(self.concurrency, len(chunks))) as pool:
            embeddings = list(pool.map(self.embedding_provider.get_embedding, chunks))

        documents = [parent]
        documents.extend(
            Document.chunk(parent, chunk, embedding) for chunk, embedding in zip(chunks, embeddings)
        )
        logger.debug("Processed input with %s chunks", len(chunks))
        return documents


def looks_like_path(value: str) -> bool:
    """Heuristic used to decide whether an input names a local file."""
    return "\n" not in value and value.startswith(_PATH_PREFIXES)


__all__ = ["IngestPipeline", "looks_like_path", "CHUNK_THRESHOLD", "CHUNK_OVERLAP"]
