"""Chunking utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


@dataclass(slots=True)
class PageText:
    text: str
    page_number: int | None


@dataclass(slots=True)
class TextChunk:
    content: str
    page_number: int | None


def split_text(
    text: str,
    chunk_size: int = 512,
    chunk_overlap: int = 100,
    separators: Sequence[str] = DEFAULT_SEPARATORS,
) -> list[str]:
    """Split text into pieces of at most ``chunk_size`` characters.

    Splits on the coarsest separator present (paragraphs, then lines, then
    sentences, then words, then characters) and merges neighbouring pieces
    back together, carrying up to ``chunk_overlap`` characters from the end
    of one chunk into the start of the next.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")
    if not text.strip():
        return []
    return [chunk for chunk in _split(text, list(separators), chunk_size, chunk_overlap) if chunk]


def split_pages(
    pages: Iterable[PageText],
    chunk_size: int = 512,
    chunk_overlap: int = 100,
) -> list[TextChunk]:
    """Chunk each page independently, tagging chunks with their page."""
    chunks: list[TextChunk] = []
    for page in pages:
        for content in split_text(page.text, chunk_size=chunk_size, chunk_overlap=chunk_overlap):
            chunks.append(TextChunk(content=content, page_number=page.page_number))
    return chunks


def _split(text: str, separators: list[str], chunk_size: int, chunk_overlap: int) -> list[str]:
    separator = separators[-1] if separators else ""
    remaining: list[str] = []
    for idx, candidate in enumerate(separators):
        if candidate == "":
            separator = ""
            break
        if candidate in text:
            separator = candidate
            remaining = separators[idx + 1 :]
            break

    pieces = text.split(separator) if separator else list(text)
    chunks: list[str] = []
    pending: list[str] = []
    for piece in pieces:
        if len(piece) <= chunk_size:
            pending.append(piece)
            continue
        if pending:
            chunks.extend(_merge(pending, separator, chunk_size, chunk_overlap))
            pending = []
        if remaining:
            chunks.extend(_split(piece, remaining, chunk_size, chunk_overlap))
        else:
            chunks.extend(_hard_wrap(piece, chunk_size))
    if pending:
        chunks.extend(_merge(pending, separator, chunk_size, chunk_overlap))
    return chunks


def _merge(pieces: Sequence[str], separator: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    sep_len = len(separator)
    merged: list[str] = []
    window: list[str] = []
    total = 0
    for piece in pieces:
        piece_len = len(piece)
        joined_len = total + piece_len + (sep_len if window else 0)
        if window and joined_len > chunk_size:
            chunk = _join(window, separator)
            if chunk:
                merged.append(chunk)
            # drop from the front until the window fits the overlap budget and the next piece
            while window and (total > chunk_overlap or total + piece_len + (sep_len if window else 0) > chunk_size):
                total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                window.pop(0)
        total += piece_len + (sep_len if window else 0)
        window.append(piece)
    chunk = _join(window, separator)
    if chunk:
        merged.append(chunk)
    return merged


def _join(pieces: Sequence[str], separator: str) -> str:
    return separator.join(pieces).strip()


def _hard_wrap(text: str, chunk_size: int) -> Iterator[str]:
    for start in range(0, len(text), chunk_size):
        yield text[start : start + chunk_size]


__all__ = ["DEFAULT_SEPARATORS", "PageText", "TextChunk", "split_text", "split_pages"]
