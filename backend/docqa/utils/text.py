"""Text processing helpers."""

from __future__ import annotations

import re


WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to ``limit`` characters, appending ``suffix`` when shortened."""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix


def truncate_at_word(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters without splitting a word."""
    if len(text) <= limit:
        return text
    head = text[:limit]
    last_space = head.rfind(" ")
    return head[:last_space] if last_space != -1 else head
