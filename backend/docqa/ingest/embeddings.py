"""Embedding providers.

Three interchangeable backends implement :class:`EmbeddingProvider`:

* ``remote`` - OpenAI-compatible embeddings API, with chunked summarization
  through a chat model.
* ``local`` - an in-process sentence-transformers model loaded in the
  background; it cannot summarize.
* ``hashed`` - deterministic bag-of-words hashing, used offline and in tests.

The backend is chosen explicitly by ``Settings.embedding_backend``; a store
must only ever be fed by one backend since dimensions differ between them.
"""

from __future__ import annotations

import hashlib
import math
import re
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable

from openai import OpenAI

from docqa.core.config import Settings
from docqa.core.errors import EmbeddingNotReady, SummarizationUnavailable
from docqa.core.logging import get_logger
from docqa.ingest.chunker import split_chunks
from docqa.models.entities import Document
from docqa.utils.text import truncate

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")

SUMMARY_CHUNK_SIZE = 2000
SUMMARY_CHUNK_OVERLAP = 200
SUMMARY_MAX_CHARS = 3000
SUMMARY_FALLBACK_CHARS = 1000
SUMMARY_PROMPT = "Summarize the following context:\n\n{context}\n\nSummary:"


class EmbeddingProvider(ABC):
    """Capability interface for turning text into vectors."""

    name: str = "base"
    supports_summarization: bool = False

    @property
    def is_ready(self) -> bool:
        return True

    def load(self) -> None:
        """Prepare the backend; a no-op for backends with nothing to load."""

    @abstractmethod
    def get_embedding(self, text: str) -> list[float]:
        raise NotImplementedError

    def summarize(self, text: str) -> str:
        raise SummarizationUnavailable(f"{self.name} embedding provider cannot summarize")

    def join_contents(self, documents: Iterable[Document], separator: str = "\n") -> str:
        return separator.join(document.content for document in documents)


class HashedEmbeddingProvider(EmbeddingProvider):
    """Deterministic hashed bag-of-words embeddings."""

    name = "hashed"

    def __init__(self, dim: int = 384) -> None:
        self.dim = dim

    def get_embedding(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        for token in _TOKEN_RE.findall(text.lower()):
            vector[_hash_token(token, self.dim)] += 1.0
        _normalize(vector)
        return vector


class LocalEmbeddingProvider(EmbeddingProvider):
    """sentence-transformers model held in process.

    :meth:`load` blocks until the model is available; the runtime calls it from
    a background thread so the service can start before the weights are read.
    """

    name = "local"

    def __init__(self, model_name: str, device: str | None = None) -> None:
        self.model_name = model_name
        self.device = device
        self._model: Any = None
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        with self._lock:
            if self._model is not None:
                return
            from sentence_transformers import SentenceTransformer

            logger.info("Loading local embedding model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name, device=self.device)
            logger.info("Local embedding model %s loaded", self.model_name)

    def get_embedding(self, text: str) -> list[float]:
        model = self._model
        if model is None:
            raise EmbeddingNotReady("Local embedding model not yet initialized. Please wait.")
        vector = model.encode(text, normalize_embeddings=True)
        return [float(value) for value in vector]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Remote embeddings plus chunked summarization over an OpenAI-compatible API."""

    name = "remote"
    supports_summarization = True

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        summary_model: str = "gpt-4o-mini",
        base_url: str | None = None,
        max_workers: int = 4,
        timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        self.model = model
        self.summary_model = summary_model
        self.max_workers = max_workers
        self._client = client or OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    def get_embedding(self, text: str) -> list[float]:
        response = self._client.embeddings.create(model=self.model, input=text)
        return list(response.data[0].embedding)

    def summarize(self, text: str) -> str:
        chunks = split_chunks(text, SUMMARY_CHUNK_SIZE, SUMMARY_CHUNK_OVERLAP)
        if not chunks:
            return ""
        try:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunks))) as pool:
                summaries = list(pool.map(self._summarize_chunk, chunks))
        except Exception as exc:
            logger.warning("Summarization failed, truncating context: %s", exc)
            return truncate(text, SUMMARY_FALLBACK_CHARS)
        return truncate(" ".join(summaries), SUMMARY_MAX_CHARS)

    def _summarize_chunk(self, chunk: str) -> str:
        response = self._client.chat.completions.create(
            model=self.summary_model,
            temperature=0.2,
            messages=[{"role": "user", "content": SUMMARY_PROMPT.format(context=chunk)}],
        )
        return response.choices[0].message.content or ""


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Instantiate the backend named by ``settings.embedding_backend``."""
    backend = settings.embedding_backend
    if backend == "remote":
        return OpenAIEmbeddingProvider(
            api_key=settings.require_remote_credentials(),
            model=settings.remote_embedding_model,
            summary_model=settings.summary_model,
            base_url=settings.openai_base_url,
            max_workers=settings.ingest_concurrency,
            timeout=settings.generation_timeout,
        )
    if backend == "hashed":
        return HashedEmbeddingProvider(dim=settings.embedding_dim)
    return LocalEmbeddingProvider(settings.embedding_model)


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingProvider",
    "HashedEmbeddingProvider",
    "LocalEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "build_embedding_provider",
]
