"""Chunk persistence and retrieval bookkeeping."""

from __future__ import annotations

import sqlite3
from array import array
from typing import Any, Sequence

import orjson

from bank_grounding.core.errors import DimensionMismatch
from bank_grounding.core.logging import get_logger
from bank_grounding.db.sqlite import SQLiteDatabase
from bank_grounding.models.entities import Chunk, ChunkRecord, GroundingDocument
from bank_grounding.models.filters import ChunkFilters
from bank_grounding.utils.identity import new_id
from bank_grounding.utils.time import ms_to_datetime, now_ms

logger = get_logger(__name__)

_CHUNK_COLUMNS = """
  chunks.id, chunks.document_id, chunks.content, chunks.chunk_index, chunks.page_number,
  chunks.embedding, chunks.dim, chunks.document_title, chunks.topics, chunks.bank_types,
  chunks.asset_size_range, chunks.idrssd, chunks.retrieval_count, chunks.last_retrieved_at,
  chunks.avg_rating, chunks.positive_count, chunks.negative_count
"""


class ChunkStore:
    """Durable chunk table with atomic usage counters.

    Every embedding written must have ``dim`` components. Counter updates are
    single UPDATE statements so concurrent callers never lose increments.
    """

    def __init__(self, db: SQLiteDatabase, dim: int) -> None:
        self.db = db
        self.dim = dim

    # Writes ------------------------------------------------------------

    def insert_chunks(self, document: GroundingDocument, records: Sequence[ChunkRecord]) -> list[str]:
        with self.db.transaction() as cursor:
            return self._insert(cursor, document, records)

    def replace_document_chunks(self, document: GroundingDocument, records: Sequence[ChunkRecord]) -> list[str]:
        """Swap a document's chunks for ``records`` in one transaction."""
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM chunks WHERE document_id = ?", [document.id])
            return self._insert(cursor, document, records)

    def delete_for_document(self, document_id: str) -> int:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM chunks WHERE document_id = ?", [document_id])
            return cursor.rowcount

    def delete_all(self) -> int:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM chunks")
            return cursor.rowcount

    def sync_document_metadata(self, document: GroundingDocument) -> int:
        """Copy the document's filter fields onto every one of its chunks."""
        with self.db.transaction() as cursor:
            cursor.execute(
                """
                UPDATE chunks
                SET document_title = ?, topics = ?, bank_types = ?, asset_size_range = ?,
                    idrssd = ?, updated_at = ?
                WHERE document_id = ?
                """,
                [
                    document.title,
                    _dump_list(document.topics),
                    _dump_list(document.bank_types),
                    document.asset_size_range,
                    document.idrssd,
                    now_ms(),
                    document.id,
                ],
            )
            return cursor.rowcount

    def _insert(
        self,
        cursor: sqlite3.Cursor,
        document: GroundingDocument,
        records: Sequence[ChunkRecord],
    ) -> list[str]:
        now = now_ms()
        rows: list[tuple[Any, ...]] = []
        ids: list[str] = []
        for record in records:
            if len(record.embedding) != self.dim:
                raise DimensionMismatch(expected=self.dim, actual=len(record.embedding))
            if not record.content.strip():
                raise ValueError(f"Chunk {record.chunk_index} of {document.id} has no content")
            chunk_id = new_id("chk")
            ids.append(chunk_id)
            rows.append(
                (
                    chunk_id,
                    document.id,
                    record.content,
                    record.chunk_index,
                    record.page_number,
                    _pack(record.embedding),
                    self.dim,
                    document.title,
                    _dump_list(document.topics),
                    _dump_list(document.bank_types),
                    document.asset_size_range,
                    document.idrssd,
                    now,
                    now,
                )
            )
        cursor.executemany(
            """
            INSERT INTO chunks (
              id, document_id, content, chunk_index, page_number, embedding, dim,
              document_title, topics, bank_types, asset_size_range, idrssd,
              created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        return ids

    # Reads -------------------------------------------------------------

    def get(self, chunk_id: str) -> Chunk | None:
        row = self.db.execute(f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE chunks.id = ?", [chunk_id]).fetchone()
        return _row_to_chunk(row) if row else None

    def fetch_candidates(self, filters: ChunkFilters) -> list[Chunk]:
        """Return every chunk satisfying ``filters`` in insertion order."""
        where, params = filters.to_sql("chunks")
        rows = self.db.query(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE {where} ORDER BY chunks.rowid ASC",
            params,
        )
        return [_row_to_chunk(row) for row in rows]

    def list_for_document(self, document_id: str) -> list[Chunk]:
        rows = self.db.query(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE chunks.document_id = ? ORDER BY chunks.chunk_index ASC",
            [document_id],
        )
        return [_row_to_chunk(row) for row in rows]

    def count(self, idrssd: str | None = None) -> int:
        if idrssd is None:
            row = self.db.execute("SELECT COUNT(*) AS count FROM chunks").fetchone()
        else:
            row = self.db.execute("SELECT COUNT(*) AS count FROM chunks WHERE idrssd = ?", [idrssd]).fetchone()
        return int(row["count"]) if row else 0

    def usage_stats(self, document_id: str | None = None, idrssd: str | None = None) -> dict[str, Any]:
        clauses: list[str] = []
        params: list[Any] = []
        if document_id is not None:
            clauses.append("document_id = ?")
            params.append(document_id)
        if idrssd is not None:
            clauses.append("idrssd = ?")
            params.append(idrssd)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        row = self.db.execute(
            f"SELECT COALESCE(SUM(retrieval_count), 0) AS total, AVG(avg_rating) AS avg_rating FROM chunks {where}",
            params,
        ).fetchone()
        return {
            "total_retrievals": int(row["total"]),
            "avg_rating": float(row["avg_rating"]) if row["avg_rating"] is not None else None,
        }

    # Bookkeeping -------------------------------------------------------

    def record_retrieval(self, chunk_id: str) -> bool:
        """Count one use of ``chunk_id``. Not idempotent.

        Returns False, after logging a warning, when the chunk no longer
        exists (for example after its document was reprocessed).
        """
        now = now_ms()
        with self.db.transaction() as cursor:
            cursor.execute(
                """
                UPDATE chunks
                SET retrieval_count = retrieval_count + 1, last_retrieved_at = ?, updated_at = ?
                WHERE id = ?
                """,
                [now, now, chunk_id],
            )
            updated = cursor.rowcount
        if not updated:
            logger.warning("Retrieval recorded for missing chunk %s", chunk_id, extra={"ctx_chunk_id": chunk_id})
            return False
        return True

    def record_feedback(self, chunk_id: str, rating: int) -> bool:
        """Apply a 1-5 rating to ``chunk_id``.

        Ratings of 4 and 5 count as positive, 1 and 2 as negative, 3 as
        neither. The average becomes ``rating`` when unset and otherwise
        ``(previous + rating) / 2``.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValueError(f"rating must be an integer between 1 and 5, got {rating!r}")
        positive = 1 if rating >= 4 else 0
        negative = 1 if rating <= 2 else 0
        with self.db.transaction() as cursor:
            cursor.execute(
                """
                UPDATE chunks
                SET positive_count = positive_count + ?,
                    negative_count = negative_count + ?,
                    avg_rating = CASE
                      WHEN avg_rating IS NULL THEN CAST(? AS REAL)
                      ELSE (avg_rating + ?) / 2.0
                    END,
                    updated_at = ?
                WHERE id = ?
                """,
                [positive, negative, rating, rating, now_ms(), chunk_id],
            )
            updated = cursor.rowcount
        if not updated:
            logger.warning("Feedback recorded for missing chunk %s", chunk_id, extra={"ctx_chunk_id": chunk_id})
            return False
        return True


def _pack(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def _unpack(blob: bytes) -> list[float]:
    floats = array("f")
    floats.frombytes(blob)
    return list(floats)


def _dump_list(values: Sequence[str] | None) -> str:
    return orjson.dumps(list(values or [])).decode("utf-8")


def _load_list(raw: str | None) -> list[str]:
    return list(orjson.loads(raw)) if raw else []


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        chunk_index=row["chunk_index"],
        page_number=row["page_number"],
        embedding=_unpack(row["embedding"]),
        document_title=row["document_title"],
        topics=_load_list(row["topics"]),
        bank_types=_load_list(row["bank_types"]),
        asset_size_range=row["asset_size_range"],
        idrssd=row["idrssd"],
        retrieval_count=row["retrieval_count"],
        last_retrieved_at=ms_to_datetime(row["last_retrieved_at"]),
        avg_rating=row["avg_rating"],
        positive_count=row["positive_count"],
        negative_count=row["negative_count"],
    )


__all__ = ["ChunkStore"]
