"""SQLite-backed document store with vector and lexical lookup."""

from __future__ import annotations

import sqlite3
from array import array
from typing import Sequence

from docqa.core.logging import get_logger
from docqa.core.metrics import DOCUMENT_COUNT
from docqa.db.sqlite import SQLiteDatabase
from docqa.models.entities import Document, ScoredDocument
from docqa.retrieval.hybrid import bm25_rank, cosine_similarity, tokenize
from docqa.utils.time import parse_timestamp

logger = get_logger(__name__)

_COLUMNS = "id, content, embedding, created_at, parent_id, is_full_text"
# Lexical candidates are filtered in SQL before BM25 scoring.
_MAX_LEXICAL_TERMS = 16


class VectorStore:
    """Persist documents and rank them by cosine similarity or BM25."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def init(self) -> None:
        self.db.ensure_schema()
        self._update_count_metric()

    def add_knowledge(self, documents: Sequence[Document]) -> None:
        """Insert documents atomically; parents must precede their chunks."""
        if not documents:
            return
        with self.db.transaction() as cursor:
            cursor.executemany(
                f"INSERT INTO documents ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        document.id,
                        document.content,
                        encode_vector(document.embedding),
                        document.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                        document.parent_id,
                        int(document.is_full_text),
                    )
                    for document in documents
                ],
            )
        logger.info("Stored %s documents", len(documents))
        self._update_count_metric()

    def search_by_embedding(self, query_vector: Sequence[float], top_k: int = 10) -> list[Document]:
        return [hit.document for hit in self.score_by_embedding(query_vector, top_k)]

    def score_by_embedding(self, query_vector: Sequence[float], top_k: int = 10) -> list[ScoredDocument]:
        """Top ``top_k`` documents by cosine similarity; ties keep insertion order."""
        if top_k <= 0:
            return []
        rows = self.db.query(f"SELECT {_COLUMNS} FROM documents ORDER BY rowid ASC")
        scored: list[ScoredDocument] = []
        for row in rows:
            document = _row_to_document(row)
            if len(document.embedding) != len(query_vector):
                logger.warning("Skipping document %s with mismatched embedding dimension", document.id)
                continue
            scored.append(ScoredDocument(document, cosine_similarity(query_vector, document.embedding)))
        scored.sort(key=lambda hit: hit.score, reverse=True)
        return scored[:top_k]

    def search_knowledge(self, query_text: str, top_k: int = 10) -> list[Document]:
        """Lexical lookup: documents containing any query term, ranked by BM25."""
        terms = list(dict.fromkeys(tokenize(query_text)))[:_MAX_LEXICAL_TERMS]
        if not terms or top_k <= 0:
            return []
        clause = " OR ".join("content LIKE ? ESCAPE '\\'" for _ in terms)
        rows = self.db.query(
            f"SELECT {_COLUMNS} FROM documents WHERE {clause} ORDER BY rowid ASC",
            [f"%{_escape_like(term)}%" for term in terms],
        )
        documents = {row["id"]: _row_to_document(row) for row in rows}
        scores = dict(bm25_rank(query_text, [(doc_id, document.content) for doc_id, document in documents.items()]))
        # BM25 idf degenerates on small candidate sets, so term coverage ranks first.
        coverage = {
            doc_id: len(set(terms).intersection(tokenize(document.content)))
            for doc_id, document in documents.items()
        }
        ranked = sorted(documents, key=lambda doc_id: (coverage[doc_id], scores[doc_id]), reverse=True)
        return [documents[doc_id] for doc_id in ranked[:top_k]]

    def get_document(self, document_id: str) -> Document | None:
        row = self.db.execute(f"SELECT {_COLUMNS} FROM documents WHERE id = ?", [document_id]).fetchone()
        return _row_to_document(row) if row else None

    def get_chunks(self, parent_id: str) -> list[Document]:
        rows = self.db.query(
            f"SELECT {_COLUMNS} FROM documents WHERE parent_id = ? ORDER BY rowid ASC",
            [parent_id],
        )
        return [_row_to_document(row) for row in rows]

    def delete_document(self, document_id: str) -> int:
        """Delete a document; chunks of a full-text document go with it."""
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM documents WHERE id = ?", [document_id])
            deleted = cursor.rowcount
        self._update_count_metric()
        return deleted

    def count(self) -> int:
        row = self.db.execute("SELECT COUNT(*) AS count FROM documents").fetchone()
        return int(row["count"]) if row else 0

    def _update_count_metric(self) -> None:
        DOCUMENT_COUNT.set(self.count())


def encode_vector(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def decode_vector(payload: bytes) -> list[float]:
    floats = array("f")
    floats.frombytes(payload)
    return list(floats)


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        content=row["content"],
        embedding=decode_vector(row["embedding"]),
        created_at=parse_timestamp(row["created_at"]),
        parent_id=row["parent_id"],
        is_full_text=bool(row["is_full_text"]),
    )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


__all__ = ["VectorStore", "encode_vector", "decode_vector"]
