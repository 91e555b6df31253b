"""Tests for filtered vector search over the chunk store."""

from __future__ import annotations

import pytest

from bank_grounding.core.errors import DimensionMismatch, SearchTimeout
from bank_grounding.models.entities import Chunk
from bank_grounding.models.filters import BankScope, ChunkFilters
from bank_grounding.retrieval.vector_index import BruteForceVectorIndex, InMemoryVectorIndex


@pytest.fixture
def chunks(chunk_store_factory):
    return chunk_store_factory(2)


@pytest.fixture
def index(chunks, documents) -> BruteForceVectorIndex:
    return BruteForceVectorIndex(chunks, documents)


def _seed_scoped_corpus(make_document, make_records, chunks):
    global_doc = make_document("Global guidance", idrssd=None, bank_types=("consumer",))
    bank_doc = make_document("Bank plan", idrssd="12345", bank_types=("commercial",))
    shared_doc = make_document("Shared", idrssd=None, bank_types=("all",), topics=("capital",))
    chunks.insert_chunks(global_doc, make_records([1.0, 0.0]))
    chunks.insert_chunks(bank_doc, make_records([1.0, 0.1]))
    chunks.insert_chunks(shared_doc, make_records([0.9, 0.2]))
    return global_doc, bank_doc, shared_doc


def test_end_to_end_ranking(index, chunks, make_document, make_records) -> None:
    document = make_document()
    chunks.insert_chunks(document, make_records([1.0, 0.0], [0.0, 1.0], [0.7, 0.7]))

    hits = index.search([1.0, 0.0], limit=2)

    assert [hit.chunk.content for hit in hits] == ["chunk 0", "chunk 2"]
    assert hits[0].score == pytest.approx(1.0)
    assert hits[1].score == pytest.approx(0.7071, abs=1e-3)
    assert hits[0].document["id"] == document.id
    assert hits[0].document["title"] == document.title


def test_results_sorted_and_limited(index, chunks, make_document, make_records) -> None:
    document = make_document()
    chunks.insert_chunks(
        document,
        make_records([0.0, 1.0], [0.5, 0.5], [1.0, 0.2], [0.9, -0.9], [-1.0, 0.0]),
    )

    hits = index.search([1.0, 0.0], limit=3)

    assert len(hits) == 3
    scores = [hit.score for hit in hits]
    assert scores == sorted(scores, reverse=True)
    assert len(index.search([1.0, 0.0], limit=50)) == 5


def test_ties_keep_store_order(index, chunks, make_document, make_records) -> None:
    document = make_document()
    chunks.insert_chunks(document, make_records([1.0, 1.0], [1.0, 1.0], [1.0, 1.0]))

    hits = index.search([1.0, 1.0], limit=3)

    assert [hit.chunk.chunk_index for hit in hits] == [0, 1, 2]


def test_explicit_null_scope_returns_global_only(index, chunks, make_document, make_records) -> None:
    global_doc, bank_doc, shared_doc = _seed_scoped_corpus(make_document, make_records, chunks)

    hits = index.search([1.0, 0.0], filters=ChunkFilters.build(bank_scope=BankScope.global_only()), limit=10)

    assert {hit.chunk.document_id for hit in hits} == {global_doc.id, shared_doc.id}
    assert all(hit.chunk.idrssd is None for hit in hits)


def test_bank_scope_returns_one_bank(index, chunks, make_document, make_records) -> None:
    _, bank_doc, _ = _seed_scoped_corpus(make_document, make_records, chunks)

    hits = index.search([1.0, 0.0], filters=ChunkFilters.build(bank_scope=BankScope.bank("12345")), limit=10)

    assert [hit.chunk.document_id for hit in hits] == [bank_doc.id]


def test_omitted_scope_searches_everything(index, chunks, make_document, make_records) -> None:
    _seed_scoped_corpus(make_document, make_records, chunks)

    assert len(index.search([1.0, 0.0], filters=ChunkFilters(), limit=10)) == 3


def test_bank_type_filter_honours_all_sentinel(index, chunks, make_document, make_records) -> None:
    global_doc, bank_doc, shared_doc = _seed_scoped_corpus(make_document, make_records, chunks)

    hits = index.search([1.0, 0.0], filters=ChunkFilters.build(bank_types=["consumer"]), limit=10)

    returned = {hit.chunk.document_id for hit in hits}
    assert returned == {global_doc.id, shared_doc.id}
    assert bank_doc.id not in returned


def test_topic_filter_matches_any_overlap(index, chunks, make_document, make_records) -> None:
    _, _, shared_doc = _seed_scoped_corpus(make_document, make_records, chunks)

    hits = index.search([1.0, 0.0], filters=ChunkFilters.build(topics=["capital", "earnings"]), limit=10)

    assert [hit.chunk.document_id for hit in hits] == [shared_doc.id]


def test_clauses_are_combined(index, chunks, make_document, make_records) -> None:
    _seed_scoped_corpus(make_document, make_records, chunks)

    filters = ChunkFilters.build(bank_scope=BankScope.bank("12345"), topics=["capital"])

    assert index.search([1.0, 0.0], filters=filters, limit=10) == []


def test_empty_store_returns_empty(index) -> None:
    assert index.search([1.0, 0.0], limit=5) == []


def test_zero_timeout_raises(index, chunks, make_document, make_records) -> None:
    chunks.insert_chunks(make_document(), make_records([1.0, 0.0], [0.0, 1.0]))

    with pytest.raises(SearchTimeout) as excinfo:
        index.search([1.0, 0.0], limit=2, timeout_ms=0)
    assert excinfo.value.total == 2


def test_generous_timeout_completes(index, chunks, make_document, make_records) -> None:
    chunks.insert_chunks(make_document(), make_records([1.0, 0.0]))

    assert len(index.search([1.0, 0.0], limit=1, timeout_ms=60_000)) == 1


def test_query_dimension_mismatch_propagates(index, chunks, make_document, make_records) -> None:
    chunks.insert_chunks(make_document(), make_records([1.0, 0.0]))

    with pytest.raises(DimensionMismatch):
        index.search([1.0, 0.0, 0.0], limit=1)


def test_stored_dimension_mismatch_propagates(db, documents, chunk_store_factory, make_document, make_records) -> None:
    wide = chunk_store_factory(3)
    wide.insert_chunks(make_document(), make_records([1.0, 0.0, 0.0]))
    index = BruteForceVectorIndex(chunk_store_factory(2), documents)

    with pytest.raises(DimensionMismatch) as excinfo:
        index.search([1.0, 0.0], limit=1)
    assert excinfo.value.chunk_id is not None


def test_insert_rejects_wrong_dimension(chunks, make_document, make_records) -> None:
    with pytest.raises(DimensionMismatch):
        chunks.insert_chunks(make_document(), make_records([1.0, 0.0, 0.0]))
    assert chunks.count() == 0


@pytest.mark.parametrize("limit", [0, -1, True])
def test_invalid_limit_rejected(index, limit) -> None:
    with pytest.raises(ValueError):
        index.search([1.0, 0.0], limit=limit)


def test_search_has_no_side_effects(index, chunks, make_document, make_records) -> None:
    chunks.insert_chunks(make_document(), make_records([1.0, 0.0]))

    hit = index.search([1.0, 0.0], limit=1)[0]

    assert chunks.get(hit.chunk.id).retrieval_count == 0


def test_in_memory_index_matches_contract() -> None:
    index = InMemoryVectorIndex(dim=2)
    index.upsert(
        [
            Chunk(id="a", document_id="d1", content="a", chunk_index=0, embedding=[1.0, 0.0], idrssd=None),
            Chunk(id="b", document_id="d2", content="b", chunk_index=0, embedding=[0.7, 0.7], idrssd="99"),
            Chunk(id="c", document_id="d3", content="c", chunk_index=0, embedding=[0.0, 1.0], bank_types=["all"]),
        ]
    )

    hits = index.search([1.0, 0.0], limit=2)
    assert [hit.chunk.id for hit in hits] == ["a", "b"]

    global_hits = index.search([1.0, 0.0], filters=ChunkFilters.build(bank_scope=BankScope.global_only()), limit=5)
    assert [hit.chunk.id for hit in global_hits] == ["a", "c"]

    typed_hits = index.search([1.0, 0.0], filters=ChunkFilters.build(bank_types=["community"]), limit=5)
    assert [hit.chunk.id for hit in typed_hits] == ["c"]

    index.remove_document("d1")
    assert index.size == 2


def test_bank_scope_from_request() -> None:
    assert BankScope.from_request(set(), None) == BankScope.any()
    assert BankScope.from_request({"idrssd"}, None) == BankScope.global_only()
    assert BankScope.from_request({"idrssd"}, "42") == BankScope.bank("42")
    with pytest.raises(ValueError):
        BankScope.bank("")
