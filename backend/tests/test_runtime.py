"""Tests for the retrieval runtime and generation retry policy."""

import time
from unittest.mock import MagicMock

import pytest

from conftest import FakeGenerationProvider
from docqa.core.errors import GenerationError, RuntimeNotReady
from docqa.ingest.embeddings import HashedEmbeddingProvider
from docqa.models.entities import Document
from docqa.retrieval.generation import generate_with_retry
from docqa.retrieval.runtime import APOLOGY_MESSAGE, KnowledgeRuntime, RuntimeState, build_prompt
from docqa.retrieval.vector_store import VectorStore


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class BrokenEmbeddings(HashedEmbeddingProvider):
    def get_embedding(self, text: str) -> list[float]:
        raise ConnectionError("embedding API unreachable")


class SummarizingEmbeddings(HashedEmbeddingProvider):
    supports_summarization = True

    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.summarized: list[str] = []

    def summarize(self, text: str) -> str:
        self.summarized.append(text)
        if self.fail:
            raise RuntimeError("summary model overloaded")
        return "condensed context"


def _runtime(store, generation, embeddings=None, sleep=None) -> KnowledgeRuntime:
    runtime = KnowledgeRuntime(
        store=store,
        embedding_provider=embeddings or HashedEmbeddingProvider(),
        generation_provider=generation,
        sleep=sleep or RecordingSleep(),
    )
    runtime.initialize()
    return runtime


def test_retry_succeeds_after_four_failures() -> None:
    provider = FakeGenerationProvider([RuntimeError("busy")] * 4 + ["finally"])
    sleep = RecordingSleep()
    assert generate_with_retry(provider, "prompt", sleep=sleep) == "finally"
    assert len(provider.prompts) == 5
    assert sleep.delays == [1.0, 2.0, 4.0, 8.0]


def test_retry_exhaustion_raises_with_attempt_count() -> None:
    provider = FakeGenerationProvider([RuntimeError("down")] * 10)
    sleep = RecordingSleep()
    with pytest.raises(GenerationError) as excinfo:
        generate_with_retry(provider, "prompt", sleep=sleep)
    assert excinfo.value.attempts == 5
    assert "5 attempts" in str(excinfo.value)
    assert len(provider.prompts) == 5
    assert sleep.delays == [1.0, 2.0, 4.0, 8.0]


def test_generate_response_retries_then_answers(store) -> None:
    generation = FakeGenerationProvider([TimeoutError("slow")] * 4 + ["the answer"])
    sleep = RecordingSleep()
    runtime = _runtime(store, generation, sleep=sleep)
    assert runtime.generate_response("How are modules published?") == "the answer"
    assert sleep.delays == [1.0, 2.0, 4.0, 8.0]


def test_generate_response_exhaustion_returns_apology(store) -> None:
    generation = FakeGenerationProvider([RuntimeError("down")] * 5)
    runtime = _runtime(store, generation)
    assert runtime.generate_response("anything") == APOLOGY_MESSAGE
    assert len(generation.prompts) == 5


def test_generate_response_uses_retrieved_context(store) -> None:
    generation = FakeGenerationProvider()
    runtime = _runtime(store, generation)
    runtime.add_knowledge(["Move modules are published with the aptos CLI.", "Unrelated gardening tips."])

    answer = runtime.generate_response("How are Move modules published?", [{"role": "user", "content": "hi"}])
    assert answer == "generated answer"
    prompt = generation.prompts[0]
    assert "How are Move modules published?" in prompt
    assert "Move modules are published with the aptos CLI." in prompt
    assert "### Recent Conversation" in prompt
    assert '"content":"hi"' in prompt


def test_embedding_failure_degrades_to_empty_context(store) -> None:
    generation = FakeGenerationProvider()
    runtime = _runtime(store, generation, embeddings=BrokenEmbeddings())
    assert runtime.search_by_embedding("query") == []
    assert runtime.generate_response("query") == "generated answer"
    assert "### Context & Relevant Information:\n\n" in generation.prompts[0]


def test_summarize_uses_provider_when_supported(store) -> None:
    embeddings = SummarizingEmbeddings()
    runtime = _runtime(store, FakeGenerationProvider(), embeddings=embeddings)
    documents = [Document.full_text("alpha", [1.0]), Document.full_text("beta", [1.0])]
    assert runtime.summarize(documents) == "condensed context"
    assert embeddings.summarized == ["alpha\nbeta"]


def test_summarize_failure_truncates_at_word_boundary(store) -> None:
    runtime = _runtime(store, FakeGenerationProvider(), embeddings=SummarizingEmbeddings(fail=True))
    documents = [Document.full_text("word " * 1200, [1.0])]
    summary = runtime.summarize(documents)
    assert len(summary) <= 5000
    assert summary.endswith("word")
    assert summary == ("word " * 1000).rstrip()


def test_summarize_without_support_truncates(store) -> None:
    runtime = _runtime(store, FakeGenerationProvider())
    documents = [Document.full_text("short", [1.0]), Document.full_text("text", [1.0])]
    assert runtime.summarize(documents) == "short\ntext"
    assert runtime.summarize([]) == ""


def test_add_knowledge_empty_makes_no_storage_calls() -> None:
    store = MagicMock(spec=VectorStore)
    runtime = KnowledgeRuntime(store, HashedEmbeddingProvider(), FakeGenerationProvider())
    assert runtime.add_knowledge([]) is None
    assert store.method_calls == []


def test_add_knowledge_reports_and_stores(store) -> None:
    runtime = _runtime(store, FakeGenerationProvider())
    report = runtime.add_knowledge(["short item", "x" * 1500])
    assert report is not None
    assert len(report.succeeded) == 2
    assert store.count() == len(report.documents)
    assert len(report.documents) >= 5


def test_add_knowledge_storage_failure_propagates() -> None:
    store = MagicMock(spec=VectorStore)
    store.add_knowledge.side_effect = RuntimeError("disk full")
    runtime = KnowledgeRuntime(store, HashedEmbeddingProvider(), FakeGenerationProvider())
    runtime.initialize()
    with pytest.raises(RuntimeError, match="disk full"):
        runtime.add_knowledge(["item"])


def test_state_machine_gates_operations(store) -> None:
    generation = FakeGenerationProvider()
    runtime = KnowledgeRuntime(store, HashedEmbeddingProvider(), generation)
    assert runtime.state is RuntimeState.UNINITIALIZED
    assert runtime.generate_response("too early") == APOLOGY_MESSAGE
    assert generation.prompts == []
    with pytest.raises(RuntimeNotReady):
        runtime.add_knowledge(["item"])

    runtime.initialize()
    assert runtime.state is RuntimeState.READY
    assert runtime.wait_until_ready(timeout=0)
    runtime.initialize()
    assert runtime.state is RuntimeState.READY


def test_failed_initialization() -> None:
    store = MagicMock(spec=VectorStore)
    store.init.side_effect = OSError("cannot open database")
    runtime = KnowledgeRuntime(store, HashedEmbeddingProvider(), FakeGenerationProvider())
    with pytest.raises(OSError):
        runtime.initialize()
    assert runtime.state is RuntimeState.FAILED
    assert runtime.generate_response("question") == APOLOGY_MESSAGE


def test_background_initialization_runs_ready_callbacks(store) -> None:
    runtime = KnowledgeRuntime(store, HashedEmbeddingProvider(), FakeGenerationProvider())
    called: list[bool] = []

    def slow_callback() -> None:
        time.sleep(0.01)
        called.append(True)

    runtime.on_ready(slow_callback)
    runtime.initialize(background=True)
    assert runtime.wait_until_ready(timeout=5)
    assert runtime.is_ready
    assert called == [True]


def test_failing_ready_callback_does_not_block_readiness(store) -> None:
    runtime = KnowledgeRuntime(store, HashedEmbeddingProvider(), FakeGenerationProvider())
    called: list[str] = []

    def broken() -> None:
        raise RuntimeError("callback failed")

    runtime.on_ready(broken)
    runtime.on_ready(lambda: called.append("after"))
    runtime.initialize(background=True)
    assert runtime.wait_until_ready(timeout=5)
    assert called == ["after"]


def test_search_by_text(store) -> None:
    runtime = _runtime(store, FakeGenerationProvider())
    runtime.add_knowledge(["The indexer exposes a GraphQL API.", "Wallets sign transactions."])
    results = runtime.search_by_text("graphql indexer")
    assert [document.content for document in results] == ["The indexer exposes a GraphQL API."]


def test_build_prompt_without_history() -> None:
    prompt = build_prompt("question?", "some context")
    assert "question?" in prompt
    assert "some context" in prompt
    assert "Recent Conversation" not in prompt
