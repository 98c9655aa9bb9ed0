"""Retrieval-augmented answer generation."""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable, Sequence

import orjson

from docqa.core.errors import RuntimeNotReady
from docqa.core.logging import get_logger
from docqa.core.metrics import INGEST_DURATION
from docqa.ingest.embeddings import EmbeddingProvider
from docqa.ingest.pipeline import IngestPipeline
from docqa.ingest.types import IngestReport
from docqa.models.entities import Document
from docqa.retrieval.generation import (
    DEFAULT_INITIAL_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    GenerationProvider,
    generate_with_retry,
)
from docqa.retrieval.vector_store import VectorStore
from docqa.utils.text import truncate_at_word

logger = get_logger(__name__)

APOLOGY_MESSAGE = "I encountered an error while processing your request. Please try again."
DEFAULT_TOP_K = 20
DEFAULT_CONTEXT_CHARS = 5000

PROMPT_TEMPLATE = """
You are an expert assistant providing accurate and insightful responses.

### User Query:
{query}
{recent}
### Context & Relevant Information:
{context}

### Instructions:
- Use the provided context to craft a precise and well-structured response.
- If additional clarification is needed, make reasonable assumptions.
- Keep the response clear, concise, and informative.

Now, generate the best possible response:
"""


class RuntimeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class KnowledgeRuntime:
    """Owns the store, providers and lifecycle state for answering questions.

    ``initialize`` moves the runtime from ``UNINITIALIZED`` through
    ``INITIALIZING`` (schema creation and embedding model load) to ``READY`` or
    ``FAILED``. Knowledge ingestion requires ``READY``; queries issued before
    that receive the apology message.
    """

    def __init__(
        self,
        store: VectorStore,
        embedding_provider: EmbeddingProvider,
        generation_provider: GenerationProvider,
        pipeline: IngestPipeline | None = None,
        top_k: int = DEFAULT_TOP_K,
        context_char_limit: int = DEFAULT_CONTEXT_CHARS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.generation_provider = generation_provider
        self.pipeline = pipeline or IngestPipeline(embedding_provider)
        self.top_k = top_k
        self.context_char_limit = context_char_limit
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.sleep = sleep
        self._state = RuntimeState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._ready = threading.Event()
        self._ingest_lock = threading.Lock()
        self._on_ready: list[Callable[[], None]] = []

    # Lifecycle --------------------------------------------------------

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is RuntimeState.READY

    def on_ready(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once initialization succeeds."""
        self._on_ready.append(callback)

    def initialize(self, background: bool = False) -> None:
        with self._state_lock:
            if self._state in (RuntimeState.INITIALIZING, RuntimeState.READY):
                logger.info("Runtime is already %s", self._state.value)
                return
            self._state = RuntimeState.INITIALIZING
        logger.info("Initializing runtime (embedding backend: %s)", self.embedding_provider.name)
        if background:
            threading.Thread(target=self._initialize, name="docqa-runtime-init", daemon=True).start()
        else:
            self._initialize(raise_errors=True)

    def wait_until_ready(self, timeout: float | None = None) -> bool:
        return self._ready.wait(timeout)

    def require_ready(self) -> None:
        if self._state is not RuntimeState.READY:
            raise RuntimeNotReady(f"Runtime is {self._state.value}; try again in a moment")

    def _initialize(self, raise_errors: bool = False) -> None:
        try:
            self.store.init()
            self.embedding_provider.load()
        except Exception:
            logger.exception("Runtime initialization failed")
            self._state = RuntimeState.FAILED
            if raise_errors:
                raise
            return
        self._state = RuntimeState.READY
        logger.info("Runtime initialized")
        for callback in self._on_ready:
            try:
                callback()
            except Exception:
                logger.exception("Ready callback %r failed", callback)
        self._ready.set()

    # Knowledge --------------------------------------------------------

    def add_knowledge(self, knowledge: Sequence[str]) -> IngestReport | None:
        """Ingest and store raw text items; storage failures propagate."""
        if not knowledge:
            logger.warning("Knowledge list is empty. No action taken.")
            return None
        self.require_ready()
        with self._ingest_lock, INGEST_DURATION.time():
            report = self.pipeline.ingest(knowledge)
            try:
                self.store.add_knowledge(report.documents)
            except Exception:
                logger.exception("Failed to add knowledge")
                raise
        if report.partial:
            logger.warning("%s of %s knowledge items failed to ingest", len(report.failed), len(knowledge))
        return report

    # Querying ---------------------------------------------------------

    def search_by_text(self, query: str, top_k: int = 10) -> list[Document]:
        return self.store.search_knowledge(query, top_k)

    def search_by_embedding(self, query: str, top_k: int = 10) -> list[Document]:
        """Vector search; an embedding failure yields no results."""
        try:
            embedding = self.embedding_provider.get_embedding(query)
        except Exception as exc:
            logger.warning("Failed to generate embedding: %s", exc)
            return []
        return self.store.search_by_embedding(embedding, top_k)

    def summarize(self, documents: Sequence[Document]) -> str:
        if not documents:
            return ""
        if not self.embedding_provider.supports_summarization:
            return self.truncate_content(documents)
        try:
            full_text = self.embedding_provider.join_contents(documents)
            return self.embedding_provider.summarize(full_text)
        except Exception as exc:
            logger.warning("Failed to summarize text: %s", exc)
            return self.truncate_content(documents)

    def truncate_content(self, documents: Sequence[Document]) -> str:
        full_text = "\n".join(document.content for document in documents)
        return truncate_at_word(full_text, self.context_char_limit)

    def generate_response(self, query: str, recent_context: Sequence[Any] | None = None) -> str:
        """Answer ``query``; any failure degrades to :data:`APOLOGY_MESSAGE`."""
        if not self.is_ready:
            logger.warning("Query received while runtime is %s", self._state.value)
            return APOLOGY_MESSAGE
        try:
            documents = self.search_by_embedding(query, self.top_k)
            summary = self.summarize(documents)
            prompt = build_prompt(query, summary, recent_context)
            return generate_with_retry(
                self.generation_provider,
                prompt,
                max_attempts=self.max_attempts,
                initial_delay=self.initial_delay,
                sleep=self.sleep,
            )
        except Exception:
            logger.exception("Error generating response")
            return APOLOGY_MESSAGE


def build_prompt(query: str, context: str, recent_context: Sequence[Any] | None = None) -> str:
    recent = ""
    if recent_context:
        history = orjson.dumps(list(recent_context), default=str).decode("utf-8")
        recent = f"\n### Recent Conversation\n{history}\n"
    return PROMPT_TEMPLATE.format(query=query, recent=recent, context=context)


__all__ = [
    "KnowledgeRuntime",
    "RuntimeState",
    "APOLOGY_MESSAGE",
    "build_prompt",
]
