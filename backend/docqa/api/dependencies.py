"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from docqa.core.config import Settings, get_settings
from docqa.crawl.crawler import WebCrawler
from docqa.db.sqlite import SQLiteDatabase
from docqa.ingest.embeddings import EmbeddingProvider, build_embedding_provider
from docqa.ingest.pipeline import IngestPipeline
from docqa.retrieval import KnowledgeRuntime, VectorStore
from docqa.retrieval.generation import GenerationProvider, build_generation_provider

_DB: SQLiteDatabase | None = None
_STORE: VectorStore | None = None
_EMBEDDINGS: EmbeddingProvider | None = None
_GENERATION: GenerationProvider | None = None
_RUNTIME: KnowledgeRuntime | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        _DB = SQLiteDatabase(get_app_settings().db_path)
    return _DB


def get_vector_store() -> VectorStore:
    global _STORE
    if _STORE is None:
        _STORE = VectorStore(get_database())
    return _STORE


def get_embedding_provider() -> EmbeddingProvider:
    global _EMBEDDINGS
    if _EMBEDDINGS is None:
        _EMBEDDINGS = build_embedding_provider(get_app_settings())
    return _EMBEDDINGS


def get_generation_provider() -> GenerationProvider:
    global _GENERATION
    if _GENERATION is None:
        _GENERATION = build_generation_provider(get_app_settings())
    return _GENERATION


def get_runtime() -> KnowledgeRuntime:
    global _RUNTIME
    if _RUNTIME is None:
        settings = get_app_settings()
        embedding_provider = get_embedding_provider()
        _RUNTIME = KnowledgeRuntime(
            store=get_vector_store(),
            embedding_provider=embedding_provider,
            generation_provider=get_generation_provider(),
            pipeline=IngestPipeline(
                embedding_provider,
                chunk_size=settings.chunk_size,
                chunk_overlap=settings.chunk_overlap,
                concurrency=settings.ingest_concurrency,
            ),
            top_k=settings.top_k,
            context_char_limit=settings.context_char_limit,
            max_attempts=settings.generation_max_attempts,
            initial_delay=settings.generation_initial_delay,
        )
    return _RUNTIME


def get_crawler() -> WebCrawler:
    """A fresh crawler per request; crawl state is never shared."""
    settings = get_app_settings()
    return WebCrawler(timeout=settings.crawl_timeout, user_agent=settings.crawl_user_agent)


__all__ = [
    "get_app_settings",
    "get_database",
    "get_vector_store",
    "get_embedding_provider",
    "get_generation_provider",
    "get_runtime",
    "get_crawler",
]
