"""Scoring helpers for lexical and vector lookup."""

from __future__ import annotations

import math
import re
from typing import Sequence, Tuple

from rank_bm25 import BM25Okapi

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def bm25_rank(query: str, documents: Sequence[Tuple[str, str]]) -> list[Tuple[str, float]]:
    """Score ``(id, text)`` pairs against the query with BM25, best first.

    The sort is stable so equal scores keep the input order.
    """
    if not documents:
        return []
    corpus_tokens = [tokenize(text) or [""] for _, text in documents]
    model = BM25Okapi(corpus_tokens)
    scores = model.get_scores(tokenize(query))
    ranked = [(doc_id, float(score)) for (doc_id, _), score in zip(documents, scores)]
    ranked.sort(key=lambda item: item[1], reverse=True)
    return ranked


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; zero when either vector has no magnitude."""
    if len(a) != len(b):
        raise ValueError("Vector dimension mismatch")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


__all__ = ["bm25_rank", "cosine_similarity", "tokenize"]
