"""Tests for the ingest pipeline."""

from pathlib import Path

from docqa.ingest.embeddings import HashedEmbeddingProvider
from docqa.ingest.pipeline import IngestPipeline, looks_like_path


class ExplodingProvider(HashedEmbeddingProvider):
    def get_embedding(self, text: str) -> list[float]:
        if "boom" in text:
            raise RuntimeError("embedding service down")
        return super().get_embedding(text)


def test_short_input_yields_single_full_text_document() -> None:
    pipeline = IngestPipeline(HashedEmbeddingProvider(dim=32))
    report = pipeline.ingest(["x" * 100])
    assert len(report.documents) == 1
    document = report.documents[0]
    assert document.is_full_text
    assert document.parent_id is None
    assert len(document.embedding) == 32


def test_input_at_threshold_is_not_chunked() -> None:
    pipeline = IngestPipeline(HashedEmbeddingProvider())
    report = pipeline.ingest(["y " * 256])
    assert len(report.documents) == 1


def test_long_input_is_chunked_under_parent() -> None:
    text = ("lorem ipsum dolor sit amet " * 60)[:1500]
    pipeline = IngestPipeline(HashedEmbeddingProvider(), chunk_size=512, chunk_overlap=20, concurrency=2)
    report = pipeline.ingest([text])

    item = report.succeeded[0]
    parent = item.parent
    assert parent.is_full_text and parent.content == text
    assert len(item.chunks) >= 3
    assert all(chunk.parent_id == parent.id for chunk in item.chunks)
    assert all(not chunk.is_full_text for chunk in item.chunks)
    assert all(len(chunk.content) <= 512 for chunk in item.chunks)
    assert len({chunk.id for chunk in report.documents}) == len(report.documents)

    # Chunks appear in text order and together cover every word.
    position = 0
    for chunk in item.chunks:
        found = text.find(chunk.content, max(0, position - 20))
        assert found != -1
        assert found <= position + 1
        position = found + len(chunk.content)
    assert position == len(text.rstrip())


def test_failed_input_is_reported_and_skipped() -> None:
    pipeline = IngestPipeline(ExplodingProvider())
    report = pipeline.ingest(["first fine input", "boom goes this one", "last fine input"])
    assert [item.input for item in report.succeeded] == ["first fine input", "last fine input"]
    assert len(report.failed) == 1
    assert report.failed[0].input == "boom goes this one"
    assert "embedding service down" in report.failed[0].reason
    assert report.partial
    assert report.to_dict()["documents"] == 2


def test_blank_input_fails() -> None:
    report = IngestPipeline(HashedEmbeddingProvider()).ingest(["   "])
    assert not report.succeeded
    assert report.failed[0].reason == "input has no text content"


def test_path_inputs_are_read_from_disk(tmp_path: Path) -> None:
    notes = tmp_path / "notes.md"
    notes.write_text("---\ntitle: Notes\n---\n# Heading\n\nSome *markdown* body.", encoding="utf-8")
    plain = tmp_path / "plain.txt"
    plain.write_text("plain file contents", encoding="utf-8")

    pipeline = IngestPipeline(HashedEmbeddingProvider())
    report = pipeline.ingest([str(notes), str(plain)])
    contents = [item.parent.content for item in report.succeeded]
    assert contents == ["Heading\nSome markdown body.", "plain file contents"]


def test_missing_path_is_a_failure(tmp_path: Path) -> None:
    report = IngestPipeline(HashedEmbeddingProvider()).ingest([str(tmp_path / "missing.txt")])
    assert len(report.failed) == 1


def test_looks_like_path() -> None:
    assert looks_like_path("/tmp/file.txt")
    assert looks_like_path("~/docs/readme.md")
    assert not looks_like_path("Move modules are published on chain")
    assert not looks_like_path("/tmp/file\nwith newline")
