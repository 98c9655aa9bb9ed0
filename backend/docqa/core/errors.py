"""Exception hierarchy shared across the knowledge pipeline."""

from __future__ import annotations


class DocQAError(Exception):
    """Base class for all docqa errors."""


class ConfigurationError(DocQAError):
    """Settings are inconsistent or incomplete."""


class CrawlError(DocQAError):
    """Fetching or extracting text from a single resource failed."""

    def __init__(self, url: str, cause: BaseException | str) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to crawl URL: {url}. Error: {cause}")


class EmbeddingNotReady(DocQAError):
    """The embedding model has not finished loading."""


class SummarizationUnavailable(DocQAError):
    """The active embedding provider cannot summarize text."""


class GenerationError(DocQAError):
    """The generation provider kept failing after every retry."""

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to generate valid response after {attempts} attempts")


class RuntimeNotReady(DocQAError):
    """An operation was requested before the runtime reached the ready state."""


__all__ = [
    "DocQAError",
    "ConfigurationError",
    "CrawlError",
    "EmbeddingNotReady",
    "SummarizationUnavailable",
    "GenerationError",
    "RuntimeNotReady",
]
