"""Chunking utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


@dataclass(slots=True)
class Segment:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(slots=True)
class TextChunk:
    text: str
    start_char: int
    end_char: int


def split_text(
    text: str,
    chunk_size: int = 512,
    chunk_overlap: int = 20,
    separators: Sequence[str] = DEFAULT_SEPARATORS,
) -> list[TextChunk]:
    """Split text into overlapping chunks of at most ``chunk_size`` characters.

    The text is first cut into contiguous pieces on the coarsest separator that
    keeps every piece within ``chunk_size`` (paragraphs, then lines, then words,
    then raw characters). Pieces are packed greedily into chunks; each new chunk
    starts with the trailing pieces of the previous one that fit in
    ``chunk_overlap`` characters. Every chunk is a slice of ``text`` so the
    chunks cover the whole input.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be in [0, chunk_size)")
    if not text.strip():
        return []

    pieces = _split_pieces(text, 0, len(text), chunk_size, tuple(separators))

    chunks: list[TextChunk] = []
    current: list[Segment] = []
    current_len = 0
    for piece in pieces:
        if current and current_len + piece.length > chunk_size:
            _append_chunk(chunks, text, current)
            current = _apply_overlap(current, chunk_overlap)
            current_len = sum(segment.length for segment in current)
            while current and current_len + piece.length > chunk_size:
                current_len -= current.pop(0).length
        current.append(piece)
        current_len += piece.length

    if current:
        _append_chunk(chunks, text, current)
    return chunks


def split_chunks(content: str, chunk_size: int = 512, overlap: int = 20) -> list[str]:
    """Return only the chunk texts of :func:`split_text`."""
    return [chunk.text for chunk in split_text(content, chunk_size, overlap)]


def _split_pieces(
    text: str,
    start: int,
    end: int,
    chunk_size: int,
    separators: tuple[str, ...],
) -> list[Segment]:
    if end - start <= chunk_size:
        return [Segment(start, end)]

    separator, remaining = _pick_separator(text, start, end, separators)
    if not separator:
        return [Segment(cursor, min(end, cursor + chunk_size)) for cursor in range(start, end, chunk_size)]

    pieces: list[Segment] = []
    cursor = start
    while cursor < end:
        found = text.find(separator, cursor, end)
        # The separator stays attached to the piece before it.
        piece_end = end if found == -1 else found + len(separator)
        if piece_end - cursor <= chunk_size:
            pieces.append(Segment(cursor, piece_end))
        else:
            pieces.extend(_split_pieces(text, cursor, piece_end, chunk_size, remaining))
        cursor = piece_end
    return pieces


def _pick_separator(
    text: str,
    start: int,
    end: int,
    separators: tuple[str, ...],
) -> tuple[str, tuple[str, ...]]:
    for idx, separator in enumerate(separators):
        if separator == "" or text.find(separator, start, end) != -1:
            return separator, separators[idx + 1 :]
    return "", ()


def _apply_overlap(segments: Sequence[Segment], overlap: int) -> list[Segment]:
    if not segments or overlap <= 0:
        return []
    retained: list[Segment] = []
    budget = 0
    for segment in reversed(segments):
        if budget + segment.length > overlap:
            break
        retained.append(segment)
        budget += segment.length
    return list(reversed(retained))


def _append_chunk(chunks: list[TextChunk], text: str, segments: Sequence[Segment]) -> None:
    start = segments[0].start
    end = segments[-1].end
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start < end:
        chunks.append(TextChunk(text=text[start:end], start_char=start, end_char=end))


__all__ = ["TextChunk", "split_text", "split_chunks", "DEFAULT_SEPARATORS"]
