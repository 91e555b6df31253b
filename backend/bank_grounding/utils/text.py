"""Text processing helpers."""

from __future__ import annotations

import re

_INLINE_WS_RE = re.compile(r"[ \t\f\v\r]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def normalize(text: str) -> str:
    """Collapse runs of inline whitespace while keeping paragraph breaks.

    Line structure matters to the chunker, which splits on blank lines
    before falling back to single newlines and sentences.
    """
    text = text.replace("\x00", "")
    lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


__all__ = ["normalize"]
