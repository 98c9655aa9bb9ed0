"""ID helpers."""

from __future__ import annotations

import uuid

DOCUMENT_PREFIX = "doc"
CHUNK_PREFIX = "chk"


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 hex string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def new_document_id(is_full_text: bool) -> str:
    """Identifier for a stored document; chunks get their own prefix."""
    return new_id(DOCUMENT_PREFIX if is_full_text else CHUNK_PREFIX)
