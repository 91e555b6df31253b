"""Tests for chunker."""

import pytest

from bank_grounding.ingest.chunker import PageText, split_pages, split_text


def test_short_text_is_one_chunk(sample_text: str) -> None:
    chunks = split_text(sample_text, chunk_size=512, chunk_overlap=100)
    assert chunks == [sample_text]


def test_chunks_respect_size_limit() -> None:
    text = "\n\n".join(f"Paragraph {index} talks about liquidity coverage and deposit funding." for index in range(40))
    chunks = split_text(text, chunk_size=200, chunk_overlap=40)
    assert len(chunks) > 1
    assert all(0 < len(chunk) <= 200 for chunk in chunks)


def test_consecutive_chunks_overlap() -> None:
    words = " ".join(f"word{index}" for index in range(300))
    chunks = split_text(words, chunk_size=100, chunk_overlap=30)
    assert len(chunks) > 2
    for previous, current in zip(chunks, chunks[1:]):
        assert current.split(" ")[0] in previous


def test_unbroken_text_is_hard_wrapped() -> None:
    chunks = split_text("x" * 250, chunk_size=100, chunk_overlap=10)
    assert all(len(chunk) <= 100 for chunk in chunks)
    assert "".join(chunks).count("x") >= 250


def test_blank_text_yields_nothing() -> None:
    assert split_text("   \n\n  ") == []


@pytest.mark.parametrize(("size", "overlap"), [(0, 0), (100, 100), (100, 150)])
def test_invalid_sizes_rejected(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        split_text("some text", chunk_size=size, chunk_overlap=overlap)


def test_split_pages_keeps_page_numbers() -> None:
    pages = [PageText(text="First page text.", page_number=1), PageText(text="", page_number=2), PageText(text="Third.", page_number=3)]
    chunks = split_pages(pages, chunk_size=100, chunk_overlap=10)
    assert [(chunk.content, chunk.page_number) for chunk in chunks] == [("First page text.", 1), ("Third.", 3)]
