"""Grounding document records."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, Sequence

import orjson

from bank_grounding.core.errors import DocumentNotFound
from bank_grounding.db.sqlite import SQLiteDatabase
from bank_grounding.models.entities import PROCESSING_STATUSES, GroundingDocument
from bank_grounding.utils.identity import new_id
from bank_grounding.utils.time import ms_to_datetime, now_ms

_DOCUMENT_COLUMNS = """
  id, filename, title, idrssd, file_path, file_size, page_count, sha256, topics, bank_types,
  asset_size_range, processing_status, processing_error, chunk_count, times_retrieved,
  created_at, updated_at
"""

_EDITABLE_FIELDS = ("title", "topics", "bank_types", "asset_size_range")


class DocumentStore:
    """CRUD helpers over the ``documents`` table."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def create(
        self,
        filename: str,
        title: str,
        file_path: str | None = None,
        file_size: int | None = None,
        sha256: str | None = None,
        idrssd: str | None = None,
        topics: Sequence[str] | None = None,
        bank_types: Sequence[str] | None = None,
        asset_size_range: str | None = None,
    ) -> GroundingDocument:
        document_id = new_id("doc")
        now = now_ms()
        self.db.execute(
            """
            INSERT INTO documents (
              id, filename, title, idrssd, file_path, file_size, sha256, topics, bank_types,
              asset_size_range, processing_status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
            """,
            [
                document_id,
                filename,
                title,
                idrssd,
                file_path,
                file_size,
                sha256,
                _dump_list(topics),
                _dump_list(bank_types),
                asset_size_range,
                now,
                now,
            ],
        )
        self.db.commit()
        return self.get(document_id)

    def get(self, document_id: str) -> GroundingDocument:
        row = self.db.execute(f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", [document_id]).fetchone()
        if row is None:
            raise DocumentNotFound(document_id)
        return _row_to_document(row)

    def get_many(self, document_ids: Iterable[str]) -> dict[str, GroundingDocument]:
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        rows = self.db.query(f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id IN ({placeholders})", ids)
        return {row["id"]: _row_to_document(row) for row in rows}

    def find_by_bank_filename(self, idrssd: str, filename: str) -> GroundingDocument | None:
        row = self.db.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE idrssd = ? AND filename = ?",
            [idrssd, filename],
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(
        self,
        status: str | None = None,
        topic: str | None = None,
        bank_type: str | None = None,
        idrssd: str | None = None,
    ) -> list[GroundingDocument]:
        clauses: list[str] = []
        params: list[Any] = []
        if status:
            clauses.append("processing_status = ?")
            params.append(status)
        if topic:
            clauses.append("EXISTS (SELECT 1 FROM json_each(documents.topics) WHERE json_each.value = ?)")
            params.append(topic)
        if bank_type:
            clauses.append("EXISTS (SELECT 1 FROM json_each(documents.bank_types) WHERE json_each.value = ?)")
            params.append(bank_type)
        if idrssd:
            clauses.append("idrssd = ?")
            params.append(idrssd)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.query(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents {where} ORDER BY created_at DESC, rowid DESC",
            params,
        )
        return [_row_to_document(row) for row in rows]

    def update_metadata(self, document_id: str, updates: dict[str, Any]) -> GroundingDocument:
        sets: list[str] = []
        params: list[Any] = []
        for key in _EDITABLE_FIELDS:
            if key not in updates:
                continue
            value = updates[key]
            if key in ("topics", "bank_types"):
                value = _dump_list(value)
            sets.append(f"{key} = ?")
            params.append(value)
        if sets:
            sets.append("updated_at = ?")
            params.extend([now_ms(), document_id])
            cursor = self.db.execute(f"UPDATE documents SET {', '.join(sets)} WHERE id = ?", params)
            self.db.commit()
            if not cursor.rowcount:
                raise DocumentNotFound(document_id)
        return self.get(document_id)

    def set_status(
        self,
        document_id: str,
        status: str,
        error: str | None = None,
        chunk_count: int | None = None,
        page_count: int | None = None,
    ) -> None:
        if status not in PROCESSING_STATUSES:
            raise ValueError(f"Unknown processing status {status!r}")
        sets = ["processing_status = ?", "processing_error = ?", "updated_at = ?"]
        params: list[Any] = [status, error, now_ms()]
        if chunk_count is not None:
            sets.append("chunk_count = ?")
            params.append(chunk_count)
        if page_count is not None:
            sets.append("page_count = ?")
            params.append(page_count)
        params.append(document_id)
        cursor = self.db.execute(f"UPDATE documents SET {', '.join(sets)} WHERE id = ?", params)
        self.db.commit()
        if not cursor.rowcount:
            raise DocumentNotFound(document_id)

    def increment_times_retrieved(self, document_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self.db.transaction() as cursor:
            cursor.execute(
                f"UPDATE documents SET times_retrieved = times_retrieved + 1 WHERE id IN ({placeholders})",
                ids,
            )
            return cursor.rowcount

    def delete(self, document_id: str) -> None:
        cursor = self.db.execute("DELETE FROM documents WHERE id = ?", [document_id])
        self.db.commit()
        if not cursor.rowcount:
            raise DocumentNotFound(document_id)

    def wipe(self) -> int:
        cursor = self.db.execute("DELETE FROM documents")
        self.db.commit()
        return cursor.rowcount

    # Aggregates --------------------------------------------------------

    def count(self, idrssd: str | None = None) -> int:
        where, params = _bank_clause(idrssd)
        row = self.db.execute(f"SELECT COUNT(*) AS count FROM documents {where}", params).fetchone()
        return int(row["count"])

    def status_breakdown(self, idrssd: str | None = None) -> dict[str, int]:
        where, params = _bank_clause(idrssd)
        rows = self.db.query(
            f"SELECT processing_status, COUNT(*) AS count FROM documents {where} GROUP BY processing_status",
            params,
        )
        return {row["processing_status"]: int(row["count"]) for row in rows}

    def size_stats(self, idrssd: str | None = None) -> dict[str, float]:
        where, params = _bank_clause(idrssd)
        row = self.db.execute(
            f"SELECT COALESCE(SUM(file_size), 0) AS total, COALESCE(AVG(file_size), 0) AS average FROM documents {where}",
            params,
        ).fetchone()
        return {"total_size": int(row["total"]), "avg_size": float(row["average"])}

    def top_banks(self, limit: int = 10) -> list[dict[str, Any]]:
        rows = self.db.query(
            """
            SELECT idrssd, COUNT(*) AS count FROM documents
            WHERE idrssd IS NOT NULL
            GROUP BY idrssd
            ORDER BY count DESC, idrssd ASC
            LIMIT ?
            """,
            [limit],
        )
        return [{"idrssd": row["idrssd"], "count": int(row["count"])} for row in rows]


def _bank_clause(idrssd: str | None) -> tuple[str, list[Any]]:
    if idrssd is None:
        return "", []
    return "WHERE idrssd = ?", [idrssd]


def _dump_list(values: Sequence[str] | None) -> str:
    return orjson.dumps(list(values or [])).decode("utf-8")


def _row_to_document(row: sqlite3.Row) -> GroundingDocument:
    return GroundingDocument(
        id=row["id"],
        filename=row["filename"],
        title=row["title"],
        idrssd=row["idrssd"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        page_count=row["page_count"],
        sha256=row["sha256"],
        topics=list(orjson.loads(row["topics"] or "[]")),
        bank_types=list(orjson.loads(row["bank_types"] or "[]")),
        asset_size_range=row["asset_size_range"],
        processing_status=row["processing_status"],
        processing_error=row["processing_error"],
        chunk_count=row["chunk_count"],
        times_retrieved=row["times_retrieved"],
        created_at=ms_to_datetime(row["created_at"]),
        updated_at=ms_to_datetime(row["updated_at"]),
    )


__all__ = ["DocumentStore"]
