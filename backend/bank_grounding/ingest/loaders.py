"""Document loaders for supported filing formats."""

from __future__ import annotations

from pathlib import Path

import fitz
import yaml
from markdown_it import MarkdownIt

from bank_grounding.ingest.types import LoadedDocument
from bank_grounding.ingest.chunker import PageText
from bank_grounding.utils.text import normalize

_MD = MarkdownIt()


class BaseLoader:
    """Common loader interface."""

    suffixes: tuple[str, ...] = ()
    mime_type: str = "application/octet-stream"

    def can_load(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes

    def load(self, path: Path) -> LoadedDocument:  # pragma: no cover - interface
        raise NotImplementedError


class PDFLoader(BaseLoader):
    """One section per PDF page, numbered from 1."""

    suffixes = (".pdf",)
    mime_type = "application/pdf"

    def load(self, path: Path) -> LoadedDocument:
        raw = path.read_bytes()
        with fitz.open(stream=raw, filetype="pdf") as doc:
            pages = [
                PageText(text=normalize(page.get_text("text", sort=True)), page_number=number)
                for number, page in enumerate(doc, start=1)
            ]
            title = (doc.metadata or {}).get("title") or None
        return LoadedDocument(path=path, pages=pages, mime=self.mime_type, title=title, size_bytes=len(raw))


class TextLoader(BaseLoader):
    """Whole file as a single section with page number 0."""

    suffixes = (".txt", ".text")
    mime_type = "text/plain"

    def load(self, path: Path) -> LoadedDocument:
        raw = path.read_bytes()
        text = normalize(raw.decode("utf-8", errors="ignore"))
        return LoadedDocument(
            path=path,
            pages=[PageText(text=text, page_number=0)],
            mime=self.mime_type,
            title=None,
            size_bytes=len(raw),
        )


class MarkdownLoader(BaseLoader):
    suffixes = (".md", ".markdown")
    mime_type = "text/markdown"

    def load(self, path: Path) -> LoadedDocument:
        raw = path.read_bytes()
        front_matter, body = _split_front_matter(raw.decode("utf-8", errors="ignore"))
        title = front_matter.get("title") if front_matter else None
        return LoadedDocument(
            path=path,
            pages=[PageText(text=_markdown_to_text(body), page_number=0)],
            mime=self.mime_type,
            title=str(title) if title else None,
            size_bytes=len(raw),
        )


class LoaderRegistry:
    """Registry that selects an appropriate loader for a path."""

    def __init__(self) -> None:
        self._loaders: list[BaseLoader] = [PDFLoader(), TextLoader(), MarkdownLoader()]

    def for_path(self, path: Path) -> BaseLoader | None:
        for loader in self._loaders:
            if loader.can_load(path):
                return loader
        return None

    def supports(self, path: Path) -> bool:
        return self.for_path(path) is not None

    def load(self, path: Path) -> LoadedDocument:
        loader = self.for_path(path)
        if loader is None:
            raise ValueError(f"No loader registered for suffix {path.suffix}")
        return loader.load(path)


def _split_front_matter(text: str) -> tuple[dict[str, object] | None, str]:
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


def _markdown_to_text(text: str) -> str:
    # block-level tokens carry the text; blank lines keep paragraphs apart for the chunker
    parts = [token.content.strip() for token in _MD.parse(text) if token.content.strip()]
    return normalize("\n\n".join(parts) if parts else text)


__all__ = ["BaseLoader", "PDFLoader", "TextLoader", "MarkdownLoader", "LoaderRegistry"]
