"""API integration tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenerationProvider
from docqa.api import dependencies as deps
from docqa.app import app


@pytest.fixture
def generation() -> FakeGenerationProvider:
    provider = FakeGenerationProvider(default="Modules are published with the CLI.")
    deps._GENERATION = provider
    return provider


@pytest.fixture
def client(generation: FakeGenerationProvider) -> TestClient:
    with TestClient(app) as test_client:
        assert deps.get_runtime().wait_until_ready(timeout=10)
        yield test_client


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_status_reports_ready(client: TestClient) -> None:
    resp = client.get("/status")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["state"] == "ready"
    assert payload["ready"] is True
    assert payload["documents"] == 0
    assert payload["embedding_backend"] == "hashed"


@pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}, {"message": 42}])
def test_chat_rejects_malformed_requests(
    client: TestClient, generation: FakeGenerationProvider, body: dict
) -> None:
    resp = client.post("/chat", json=body)
    assert resp.status_code == 400
    assert generation.prompts == []


def test_knowledge_and_chat_flow(tmp_path: Path, client: TestClient, generation: FakeGenerationProvider) -> None:
    sample = tmp_path / "publishing.md"
    sample.write_text("# Publishing\n\nMove modules are published with the aptos CLI.", encoding="utf-8")

    ingest_resp = client.post(
        "/knowledge",
        json={"items": [str(sample), "Accounts hold resources.", "word " * 300]},
    )
    assert ingest_resp.status_code == 200
    ingest_data = ingest_resp.json()
    assert ingest_data["succeeded"] == 3
    assert ingest_data["failed"] == []
    assert ingest_data["chunks"] >= 2
    assert ingest_data["documents"] == 3 + ingest_data["chunks"]

    chat_resp = client.post(
        "/chat",
        json={"message": "How do I publish a module?", "recent_messages": [{"role": "user", "content": "hello"}]},
    )
    assert chat_resp.status_code == 200
    payload = chat_resp.json()
    assert payload["response"] == "Modules are published with the CLI."
    assert payload["timestamp"]
    assert "Move modules are published with the aptos CLI." in generation.prompts[-1]

    status = client.get("/status").json()
    assert status["documents"] == ingest_data["documents"]


def test_knowledge_reports_partial_failures(tmp_path: Path, client: TestClient) -> None:
    resp = client.post("/knowledge", json={"items": ["valid text", str(tmp_path / "missing.txt")]})
    assert resp.status_code == 200
    data = resp.json()
    assert data["succeeded"] == 1
    assert len(data["failed"]) == 1


def test_empty_knowledge_is_noop(client: TestClient) -> None:
    resp = client.post("/knowledge", json={"items": []})
    assert resp.status_code == 200
    assert resp.json() == {"succeeded": 0, "failed": [], "documents": 0, "chunks": 0}


def test_chat_generation_failure_returns_apology(client: TestClient, generation: FakeGenerationProvider) -> None:
    from docqa.retrieval.runtime import APOLOGY_MESSAGE

    runtime = deps.get_runtime()
    runtime.sleep = lambda delay: None
    generation.outcomes = [RuntimeError("provider down")] * 5
    resp = client.post("/chat", json={"message": "anything"})
    assert resp.status_code == 200
    assert resp.json()["response"] == APOLOGY_MESSAGE
    assert len(generation.prompts) == 5


def test_document_lookup_and_cascade_delete(client: TestClient) -> None:
    client.post("/knowledge", json={"items": ["token " * 300]})
    store = deps.get_vector_store()
    parent = next(document for document in store.search_knowledge("token", top_k=50) if document.is_full_text)

    resp = client.get(f"/documents/{parent.id}")
    assert resp.status_code == 200
    chunk_ids = resp.json()["chunk_ids"]
    assert chunk_ids

    resp = client.delete(f"/documents/{parent.id}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert client.get(f"/documents/{chunk_ids[0]}").status_code == 404
    assert client.delete(f"/documents/{parent.id}").status_code == 404


def test_crawl_requires_patterns(client: TestClient) -> None:
    resp = client.post("/crawl", json={})
    assert resp.status_code == 400


def test_metrics_endpoint(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "docqa_requests_total" in resp.text
