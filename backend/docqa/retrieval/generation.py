"""Text generation provider and the retry policy wrapped around it."""

from __future__ import annotations

import time
from typing import Any, Callable, Protocol

from openai import OpenAI

from docqa.core.config import Settings
from docqa.core.errors import GenerationError
from docqa.core.logging import get_logger, log_context
from docqa.core.metrics import GENERATION_ATTEMPTS

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_DELAY = 1.0


class GenerationProvider(Protocol):
    """Opaque text-in, text-out completion capability."""

    def generate(self, prompt: str) -> str: ...


class OpenAIGenerationProvider:
    """Chat-completion call against any OpenAI-compatible endpoint."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        self.model = model
        # Self-hosted compatible endpoints accept any key.
        self._client = client or OpenAI(api_key=api_key or "unused", base_url=base_url, timeout=timeout)

    def generate(self, prompt: str) -> str:
        if not prompt:
            logger.error("Generation prompt is empty")
            return ""
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.choices[0].message.content or ""


def generate_with_retry(
    provider: GenerationProvider,
    prompt: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Call ``provider`` until it succeeds, doubling the delay after each failure.

    With the defaults the waits between attempts are 1s, 2s, 4s and 8s. Raises
    :class:`GenerationError` once ``max_attempts`` calls have failed.
    """
    delay = initial_delay
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            response = provider.generate(prompt)
        except Exception as exc:
            last_error = exc
            GENERATION_ATTEMPTS.labels(outcome="error").inc()
            logger.warning(
                "Generation attempt %s/%s failed: %s",
                attempt,
                max_attempts,
                exc,
                extra=log_context(attempt=attempt, max_attempts=max_attempts),
            )
            if attempt == max_attempts:
                break
            logger.debug("Retrying in %.1fs (attempt %s/%s)", delay, attempt + 1, max_attempts)
            sleep(delay)
            delay *= 2
            continue
        GENERATION_ATTEMPTS.labels(outcome="success").inc()
        return response
    raise GenerationError(max_attempts, last_error) from last_error


def build_generation_provider(settings: Settings) -> OpenAIGenerationProvider:
    return OpenAIGenerationProvider(
        model=settings.generation_model,
        api_key=settings.generation_key,
        base_url=settings.generation_base_url,
        timeout=settings.generation_timeout,
    )


__all__ = [
    "GenerationProvider",
    "OpenAIGenerationProvider",
    "generate_with_retry",
    "build_generation_provider",
]
