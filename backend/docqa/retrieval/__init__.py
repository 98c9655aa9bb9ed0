"""Retrieval and answer generation components."""

from .hybrid import bm25_rank, cosine_similarity
from .generation import generate_with_retry
from .vector_store import VectorStore
from .runtime import KnowledgeRuntime, RuntimeState

__all__ = [
    "VectorStore",
    "KnowledgeRuntime",
    "RuntimeState",
    "generate_with_retry",
    "bm25_rank",
    "cosine_similarity",
]
