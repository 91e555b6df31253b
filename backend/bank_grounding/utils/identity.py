"""Identifier and content-digest helpers."""

from __future__ import annotations

import hashlib
import uuid
from pathlib import Path


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def sha256_file(path: Path) -> str:
    """Return hex digest for file contents."""
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(8192), b""):
            h.update(block)
    return h.hexdigest()


__all__ = ["new_id", "sha256_file"]
