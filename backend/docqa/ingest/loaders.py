"""Local file loaders used when an ingest input is a filesystem path."""

from __future__ import annotations

from pathlib import Path

import fitz
import yaml
from docx import Document as DocxDocument
from markdown_it import MarkdownIt
from markdown_it.token import Token

from docqa.ingest.types import LoadedDocument
from docqa.utils.text import normalize

_MD = MarkdownIt()


class BaseLoader:
    """Common loader interface."""

    suffixes: tuple[str, ...] = ()
    mime_type: str = "application/octet-stream"

    def can_load(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes

    def load(self, path: Path) -> LoadedDocument:  # pragma: no cover - interface
        raise NotImplementedError


class TextLoader(BaseLoader):
    suffixes = (".txt", ".text", ".log", ".rst")
    mime_type = "text/plain"

    def load(self, path: Path) -> LoadedDocument:
        text = path.read_bytes().decode("utf-8", errors="ignore")
        return LoadedDocument(path=path, text=text, mime=self.mime_type, title=path.stem)


class MarkdownLoader(BaseLoader):
    suffixes = (".md", ".markdown", ".mdx")
    mime_type = "text/markdown"

    def load(self, path: Path) -> LoadedDocument:
        text = path.read_bytes().decode("utf-8", errors="ignore")
        front_matter, body = split_front_matter(text)
        metadata: dict[str, object] = {}
        if front_matter:
            metadata["front_matter"] = front_matter
        title = front_matter.get("title") if front_matter else None
        return LoadedDocument(
            path=path,
            text=markdown_to_text(body),
            mime=self.mime_type,
            title=str(title) if title else path.stem,
            metadata=metadata,
        )


class PDFLoader(BaseLoader):
    suffixes = (".pdf",)
    mime_type = "application/pdf"

    def load(self, path: Path) -> LoadedDocument:
        with fitz.open(str(path)) as doc:
            pages = [page.get_text("text", sort=True) for page in doc]
        text = "\n\n".join(page.strip() for page in pages if page.strip())
        return LoadedDocument(
            path=path,
            text=text,
            mime=self.mime_type,
            title=path.stem,
            metadata={"page_count": len(pages)},
        )


class DocxLoader(BaseLoader):
    suffixes = (".docx",)
    mime_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

    def load(self, path: Path) -> LoadedDocument:
        document = DocxDocument(str(path))
        paragraphs = [para.text for para in document.paragraphs if para.text.strip()]
        core = document.core_properties
        return LoadedDocument(
            path=path,
            text="\n".join(paragraphs),
            mime=self.mime_type,
            title=core.title or path.stem,
            metadata={"author": core.author or None},
        )


class LoaderRegistry:
    """Selects a loader by suffix; unknown suffixes are read as plain text."""

    def __init__(self) -> None:
        self._loaders: list[BaseLoader] = [
            MarkdownLoader(),
            PDFLoader(),
            DocxLoader(),
            TextLoader(),
        ]
        self._fallback: BaseLoader = TextLoader()

    def for_path(self, path: Path) -> BaseLoader:
        for loader in self._loaders:
            if loader.can_load(path):
                return loader
        return self._fallback

    def load(self, path: Path) -> LoadedDocument:
        return self.for_path(path).load(path)


def split_front_matter(text: str) -> tuple[dict[str, object] | None, str]:
    if text.startswith("---"):
        parts = text.split("---", 2)
        if len(parts) >= 3:
            try:
                front_matter = yaml.safe_load(parts[1]) or {}
            except yaml.YAMLError:
                return None, text
            if isinstance(front_matter, dict):
                return front_matter, parts[2]
    return None, text


def markdown_to_text(text: str) -> str:
    """Flatten Markdown to its textual content, one block per line."""
    parts: list[str] = []
    for token in _MD.parse(text):
        if token.type == "inline":
            content = normalize(_inline_text(token))
        elif token.type in {"fence", "code_block", "html_block"}:
            content = token.content.strip()
        else:
            continue
        if content:
            parts.append(content)
    return "\n".join(parts) if parts else text.strip()


def _inline_text(token: Token) -> str:
    pieces: list[str] = []
    for child in token.children or []:
        if child.type in {"text", "code_inline", "html_inline"}:
            pieces.append(child.content)
        elif child.type in {"softbreak", "hardbreak"}:
            pieces.append(" ")
    return "".join(pieces)


__all__ = [
    "BaseLoader",
    "TextLoader",
    "MarkdownLoader",
    "PDFLoader",
    "DocxLoader",
    "LoaderRegistry",
    "split_front_matter",
    "markdown_to_text",
]
