"""Test fixtures for docqa."""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


def _reset_singletons() -> None:
    from docqa.api import dependencies as deps
    from docqa.core import config

    config.get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    if deps._DB is not None:
        deps._DB.close()
    deps._DB = None
    deps._STORE = None
    deps._EMBEDDINGS = None
    deps._GENERATION = None
    deps._RUNTIME = None


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("DOCQA_DB_PATH", str(tmp_path / "docqa.db"))
    monkeypatch.setenv("DOCQA_EMBEDDING_BACKEND", "hashed")
    monkeypatch.delenv("DOCQA_CONFIG", raising=False)
    monkeypatch.delenv("DOCQA_OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("DOCQA_CRAWL_ON_STARTUP", raising=False)
    _reset_singletons()
    yield
    _reset_singletons()


class FakeGenerationProvider:
    """Scripted generation provider; exceptions in ``outcomes`` are raised in turn."""

    def __init__(self, outcomes: list[Any] | None = None, default: str = "generated answer") -> None:
        self.outcomes = list(outcomes or [])
        self.default = default
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, content: bytes | None = None) -> None:
        self.text = text
        self.status_code = status_code
        self.content = content if content is not None else text.encode("utf-8")


class FakeSession:
    """Maps URLs to canned responses and records every fetch."""

    def __init__(self, pages: dict[str, FakeResponse | str]) -> None:
        self.pages = {
            url: page if isinstance(page, FakeResponse) else FakeResponse(page)
            for url, page in pages.items()
        }
        self.requested: list[str] = []

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.requested.append(url)
        return self.pages.get(url, FakeResponse("not found", status_code=404))


class FakeOpenAIClient:
    """Minimal stand-in for the ``openai.OpenAI`` client surface we call."""

    def __init__(self, embedding: list[float] | None = None, summary: str = "summary", fail_chat: bool = False) -> None:
        self.embedding_calls: list[str] = []
        self.chat_calls: list[str] = []
        self._embedding = embedding or [0.1, 0.2, 0.3]
        self._summary = summary
        self._fail_chat = fail_chat
        self.embeddings = SimpleNamespace(create=self._create_embedding)
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create_completion))

    def _create_embedding(self, model: str, input: str) -> Any:
        self.embedding_calls.append(input)
        return SimpleNamespace(data=[SimpleNamespace(embedding=list(self._embedding))])

    def _create_completion(self, model: str, messages: list[dict[str, str]], **kwargs: Any) -> Any:
        self.chat_calls.append(messages[-1]["content"])
        if self._fail_chat:
            raise ConnectionError("chat endpoint unavailable")
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self._summary))])


@pytest.fixture
def fake_generation() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@pytest.fixture
def store(tmp_path: Path):
    from docqa.db.sqlite import SQLiteDatabase
    from docqa.retrieval.vector_store import VectorStore

    db = SQLiteDatabase(tmp_path / "store.db")
    vector_store = VectorStore(db)
    vector_store.init()
    yield vector_store
    db.close()


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
