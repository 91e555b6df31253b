"""Tests for chunk retrieval and feedback counters."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.sqlite import SQLiteDatabase


@pytest.fixture
def chunks(chunk_store_factory) -> ChunkStore:
    return chunk_store_factory(2)


@pytest.fixture
def chunk_id(chunks, make_document, make_records) -> str:
    return chunks.insert_chunks(make_document(), make_records([1.0, 0.0]))[0]


def test_record_retrieval_increments_and_stamps(chunks, chunk_id) -> None:
    assert chunks.record_retrieval(chunk_id) is True
    assert chunks.record_retrieval(chunk_id) is True

    chunk = chunks.get(chunk_id)
    assert chunk.retrieval_count == 2
    assert chunk.last_retrieved_at is not None


def test_concurrent_retrievals_are_not_lost(chunks, chunk_id) -> None:
    workers = 8
    per_worker = 25

    def hammer(_: int) -> None:
        for _ in range(per_worker):
            chunks.record_retrieval(chunk_id)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        list(pool.map(hammer, range(workers)))

    assert chunks.get(chunk_id).retrieval_count == workers * per_worker


def test_concurrent_retrievals_across_connections(db, chunks, chunk_id) -> None:
    def hammer(_: int) -> None:
        # a separate wrapper per worker, as separate processes would have
        with SQLiteDatabase(db.db_path) as local:
            store = ChunkStore(local, dim=2)
            for _ in range(20):
                store.record_retrieval(chunk_id)

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(hammer, range(4)))

    assert chunks.get(chunk_id).retrieval_count == 80


def test_feedback_average_uses_halving_formula(chunks, chunk_id) -> None:
    assert chunks.get(chunk_id).avg_rating is None

    chunks.record_feedback(chunk_id, 5)
    assert chunks.get(chunk_id).avg_rating == pytest.approx(5.0)

    chunks.record_feedback(chunk_id, 1)
    assert chunks.get(chunk_id).avg_rating == pytest.approx(3.0)

    chunks.record_feedback(chunk_id, 4)
    assert chunks.get(chunk_id).avg_rating == pytest.approx(3.5)


@pytest.mark.parametrize(
    ("rating", "positive", "negative"),
    [(5, 1, 0), (4, 1, 0), (3, 0, 0), (2, 0, 1), (1, 0, 1)],
)
def test_feedback_polarity_counters(chunks, chunk_id, rating, positive, negative) -> None:
    chunks.record_feedback(chunk_id, rating)

    chunk = chunks.get(chunk_id)
    assert chunk.positive_count == positive
    assert chunk.negative_count == negative
    assert chunk.avg_rating == pytest.approx(float(rating))


@pytest.mark.parametrize("rating", [0, 6, 2.5, "5", True])
def test_feedback_rejects_invalid_rating(chunks, chunk_id, rating) -> None:
    with pytest.raises(ValueError):
        chunks.record_feedback(chunk_id, rating)
    assert chunks.get(chunk_id).avg_rating is None


def test_missing_chunk_is_a_logged_noop(chunks, caplog) -> None:
    with caplog.at_level("WARNING"):
        assert chunks.record_retrieval("chk_missing") is False
        assert chunks.record_feedback("chk_missing", 4) is False
    assert "missing chunk" in caplog.text


def test_usage_stats_aggregate_by_document(chunks, make_document, make_records) -> None:
    document = make_document()
    first, second = chunks.insert_chunks(document, make_records([1.0, 0.0], [0.0, 1.0]))
    chunks.record_retrieval(first)
    chunks.record_retrieval(second)
    chunks.record_retrieval(second)
    chunks.record_feedback(first, 5)
    chunks.record_feedback(second, 3)

    stats = chunks.usage_stats(document_id=document.id)

    assert stats["total_retrievals"] == 3
    assert stats["avg_rating"] == pytest.approx(4.0)
