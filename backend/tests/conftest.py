"""Test fixtures for Bank Grounding."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from bank_grounding.db.chunks import ChunkStore  # noqa: E402
from bank_grounding.db.documents import DocumentStore  # noqa: E402
from bank_grounding.db.sqlite import SQLiteDatabase  # noqa: E402
from bank_grounding.models.entities import ChunkRecord, GroundingDocument  # noqa: E402

TEST_DIM = 32


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("BGR_DB_PATH", str(tmp_path / "grounding.db"))
    monkeypatch.setenv("BGR_FILES_DIR", str(tmp_path / "files"))
    monkeypatch.setenv("BGR_EMBEDDING_DIM", str(TEST_DIM))
    monkeypatch.setenv("BGR_EMBEDDING_BACKEND", "hashed")
    monkeypatch.delenv("BGR_CONFIG", raising=False)
    monkeypatch.delenv("BGR_SEARCH_TIMEOUT_MS", raising=False)

    from bank_grounding.api import dependencies as deps

    deps.reset_dependencies()
    yield
    deps.reset_dependencies()


@pytest.fixture
def db(tmp_path: Path) -> SQLiteDatabase:
    database = SQLiteDatabase(tmp_path / "store.db")
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def documents(db: SQLiteDatabase) -> DocumentStore:
    return DocumentStore(db)


@pytest.fixture
def make_document(documents: DocumentStore) -> Callable[..., GroundingDocument]:
    def _make(
        title: str = "Liquidity playbook",
        idrssd: str | None = None,
        topics: Sequence[str] = ("liquidity",),
        bank_types: Sequence[str] = ("all",),
    ) -> GroundingDocument:
        return documents.create(
            filename=f"{title.lower().replace(' ', '_')}.pdf",
            title=title,
            idrssd=idrssd,
            topics=topics,
            bank_types=bank_types,
            asset_size_range="all",
        )

    return _make


@pytest.fixture
def make_records() -> Callable[..., list[ChunkRecord]]:
    def _make(*embeddings: Sequence[float]) -> list[ChunkRecord]:
        return [
            ChunkRecord(content=f"chunk {index}", chunk_index=index, embedding=list(vector), page_number=index + 1)
            for index, vector in enumerate(embeddings)
        ]

    return _make


@pytest.fixture
def chunk_store_factory(db: SQLiteDatabase) -> Callable[[int], ChunkStore]:
    def _factory(dim: int) -> ChunkStore:
        return ChunkStore(db, dim=dim)

    return _factory


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
