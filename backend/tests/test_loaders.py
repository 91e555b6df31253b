"""Tests for document loaders and tag suggestions."""

from pathlib import Path

import fitz
import pytest

from bank_grounding.ingest.loaders import LoaderRegistry
from bank_grounding.ingest.tagging import suggest_tags


def test_pdf_pages_are_numbered_from_one(tmp_path: Path) -> None:
    path = tmp_path / "filing.pdf"
    doc = fitz.open()
    for text in ("Liquidity coverage improved.", "Capital ratios remain strong."):
        page = doc.new_page()
        page.insert_text((72, 72), text)
    doc.save(str(path))
    doc.close()

    loaded = LoaderRegistry().load(path)

    assert loaded.mime == "application/pdf"
    assert [page.page_number for page in loaded.pages] == [1, 2]
    assert "Liquidity" in loaded.pages[0].text
    assert "Capital" in loaded.pages[1].text


def test_text_loader_single_section(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("First   line\n\nSecond paragraph")

    loaded = LoaderRegistry().load(path)

    assert loaded.page_count == 1
    assert loaded.pages[0].page_number == 0
    assert loaded.pages[0].text == "First line\n\nSecond paragraph"


def test_markdown_front_matter_title(tmp_path: Path) -> None:
    path = tmp_path / "guide.md"
    path.write_text("---\ntitle: Deposit Strategy\n---\n# Heading\n\nCore deposits fund *growth*.\n")

    loaded = LoaderRegistry().load(path)

    assert loaded.title == "Deposit Strategy"
    assert "Heading" in loaded.text
    assert "Core deposits fund" in loaded.text
    assert "---" not in loaded.text


def test_unsupported_suffix(tmp_path: Path) -> None:
    registry = LoaderRegistry()
    path = tmp_path / "sheet.xlsx"
    assert not registry.supports(path)
    with pytest.raises(ValueError):
        registry.load(path)


def test_suggest_tags_matches_keywords() -> None:
    suggestion = suggest_tags("Our community bank plan targets liquidity and digital banking.")
    assert "liquidity" in suggestion.topics
    assert "technology" in suggestion.topics
    assert "strategy" in suggestion.topics
    assert suggestion.bank_types == ["community"]


def test_suggest_tags_fallbacks() -> None:
    suggestion = suggest_tags("Nothing relevant here.")
    assert suggestion.topics == ["general"]
    assert suggestion.bank_types == ["all"]
    assert suggestion.asset_size_range == "all"
