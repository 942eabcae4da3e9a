"""SQLite-backed document metadata store.

Persists :class:`DocumentRecord` rows to a local SQLite database at
``data/documents.db``.  Uses ``aiosqlite`` for async I/O.  List columns
(tags, categories) are stored as JSON text; timestamps as UTC ISO-8601
strings so that lexical ``ORDER BY`` matches chronological order.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docindex.interfaces.metadata_store_provider import IMetadataStoreProvider
from docindex.models.chat import ChatDocument
from docindex.models.document import DocumentRecord, DocumentStats, DocumentStatus, utc_now
from docindex.utils.errors import MetadataStoreError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_COLUMNS = (
    "id",
    "file_name",
    "file_type",
    "file_size",
    "uploaded_by",
    "uploaded_at",
    "blob_name",
    "blob_url",
    "search_index_id",
    "pages",
    "confidence",
    "status",
    "tags",
    "categories",
    "description",
    "is_deleted",
    "created_at",
    "updated_at",
)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id               TEXT    PRIMARY KEY,
    file_name        TEXT    NOT NULL,
    file_type        TEXT    NOT NULL,
    file_size        INTEGER NOT NULL,
    uploaded_by      TEXT    NOT NULL,
    uploaded_at      TEXT    NOT NULL,
    blob_name        TEXT    NOT NULL,
    blob_url         TEXT    NOT NULL DEFAULT '',
    search_index_id  TEXT,
    pages            INTEGER NOT NULL DEFAULT 0,
    confidence       REAL    NOT NULL DEFAULT 0,
    status           TEXT    NOT NULL,
    tags             TEXT    NOT NULL DEFAULT '[]',
    categories       TEXT    NOT NULL DEFAULT '[]',
    description      TEXT,
    is_deleted       INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT    NOT NULL,
    updated_at       TEXT    NOT NULL
);
"""

_CREATE_CHAT_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS chat_documents (
    id              TEXT    PRIMARY KEY,
    chat_thread_id  TEXT    NOT NULL,
    user_id         TEXT    NOT NULL,
    name            TEXT    NOT NULL,
    is_deleted      INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(uploaded_by);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_documents_type ON documents(file_type);",
    "CREATE INDEX IF NOT EXISTS idx_chat_documents_thread ON chat_documents(chat_thread_id);",
]

_INSERT_SQL = (
    f"INSERT INTO documents ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)

_REPLACE_SQL = (
    f"UPDATE documents SET {', '.join(f'{c} = ?' for c in _COLUMNS if c != 'id')} "
    "WHERE id = ?"
)

_SELECT_LIVE_SQL = (
    f"SELECT {', '.join(_COLUMNS)} FROM documents WHERE is_deleted = 0"
)

_ORDER_SQL = " ORDER BY uploaded_at DESC"


def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value.astimezone(timezone.utc).isoformat()  # noqa: UP017


class SQLiteMetadataStoreProvider(IMetadataStoreProvider):
    """SQLite-backed document record persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_CREATE_CHAT_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("metadata_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Document records
    # ------------------------------------------------------------------

    async def create(self, record: DocumentRecord) -> str:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_INSERT_SQL, self._record_to_row(record))
                await db.commit()
        except sqlite3.Error as exc:
            raise MetadataStoreError(
                message=f"Failed to create record {record.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "document_record_created",
            document_id=record.id,
            uploaded_by=record.uploaded_by,
            status=record.status.value,
        )
        return record.id

    async def read(self, document_id: str) -> DocumentRecord | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_LIVE_SQL + " AND id = ?", (document_id,))
                row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise self._store_error(f"Failed to read record {document_id}", exc) from exc
        return self._row_to_record(row) if row else None

    async def update(self, document_id: str, updates: dict[str, Any]) -> DocumentRecord:
        """Read, merge *updates*, stamp ``updated_at`` and replace the row."""
        unknown = set(updates) - set(DocumentRecord.model_fields)
        if unknown or "id" in updates:
            raise MetadataStoreError(
                message=f"Cannot update fields: {sorted(unknown | ({'id'} & set(updates)))}",
                provider_name=self.get_provider_name(),
            )

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_LIVE_SQL + " AND id = ?", (document_id,))
                row = await cursor.fetchone()
                if row is None:
                    raise NotFoundError(
                        message=f"Document {document_id} not found",
                        provider_name=self.get_provider_name(),
                    )
                existing = self._row_to_record(row)
                merged = DocumentRecord.model_validate(
                    {**existing.model_dump(), **updates, "updated_at": utc_now()}
                )
                row_values = self._record_to_row(merged)
                await db.execute(_REPLACE_SQL, (*row_values[1:], document_id))
                await db.commit()
        except sqlite3.Error as exc:
            raise MetadataStoreError(
                message=f"Failed to update record {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("document_record_updated", document_id=document_id, fields=sorted(updates))
        return merged

    async def logical_delete(self, document_id: str) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "UPDATE documents SET is_deleted = 1, updated_at = ? "
                    "WHERE id = ? AND is_deleted = 0",
                    (_ts(utc_now()), document_id),
                )
                await db.commit()
                changed = cursor.rowcount
        except sqlite3.Error as exc:
            raise self._store_error(f"Failed to delete record {document_id}", exc) from exc
        if changed == 0:
            raise NotFoundError(
                message=f"Document {document_id} not found",
                provider_name=self.get_provider_name(),
            )
        logger.info("document_record_deleted", document_id=document_id)

    async def list_all(self) -> list[DocumentRecord]:
        return await self._select(_SELECT_LIVE_SQL + _ORDER_SQL, ())

    async def list_by_owner(self, uploaded_by: str) -> list[DocumentRecord]:
        return await self._select(
            _SELECT_LIVE_SQL + " AND uploaded_by = ?" + _ORDER_SQL, (uploaded_by,)
        )

    async def list_by_type(self, file_type: str) -> list[DocumentRecord]:
        return await self._select(
            _SELECT_LIVE_SQL + " AND file_type = ?" + _ORDER_SQL, (file_type,)
        )

    async def list_by_status(self, status: DocumentStatus) -> list[DocumentRecord]:
        return await self._select(
            _SELECT_LIVE_SQL + " AND status = ?" + _ORDER_SQL, (DocumentStatus(status).value,)
        )

    async def search_by_file_name(self, fragment: str) -> list[DocumentRecord]:
        # instr() keeps % and _ in the fragment literal.
        return await self._select(
            _SELECT_LIVE_SQL + " AND instr(lower(file_name), lower(?)) > 0" + _ORDER_SQL,
            (fragment,),
        )

    async def stats(self) -> DocumentStats:
        """Return totals over live records in two grouped queries."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "SELECT status, COUNT(*), COALESCE(SUM(file_size), 0) "
                    "FROM documents WHERE is_deleted = 0 GROUP BY status"
                )
                status_rows = await cursor.fetchall()
                cursor = await db.execute(
                    "SELECT file_type, COUNT(*) FROM documents "
                    "WHERE is_deleted = 0 GROUP BY file_type"
                )
                type_rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise self._store_error("Failed to compute document stats", exc) from exc

        by_status = {status: count for status, count, _ in status_rows}
        return DocumentStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_type={file_type: count for file_type, count in type_rows},
            total_size=sum(size for _, _, size in status_rows),
        )

    # ------------------------------------------------------------------
    # Chat thread attachments
    # ------------------------------------------------------------------

    async def record_chat_document(self, document: ChatDocument) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    "INSERT OR REPLACE INTO chat_documents "
                    "(id, chat_thread_id, user_id, name, is_deleted, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        document.id,
                        document.chat_thread_id,
                        document.user_id,
                        document.name,
                        int(document.is_deleted),
                        _ts(document.created_at),
                    ),
                )
                await db.commit()
        except sqlite3.Error as exc:
            raise self._store_error(
                f"Failed to record chat document {document.id}", exc
            ) from exc
        logger.info(
            "chat_document_recorded",
            chat_thread_id=document.chat_thread_id,
            name=document.name,
        )

    async def list_chat_documents(self, chat_thread_id: str) -> list[ChatDocument]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT id, chat_thread_id, user_id, name, is_deleted, created_at "
                    "FROM chat_documents WHERE chat_thread_id = ? AND is_deleted = 0 "
                    "ORDER BY created_at ASC",
                    (chat_thread_id,),
                )
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise self._store_error(
                f"Failed to list chat documents for {chat_thread_id}", exc
            ) from exc
        return [
            ChatDocument(
                id=r["id"],
                chat_thread_id=r["chat_thread_id"],
                user_id=r["user_id"],
                name=r["name"],
                is_deleted=bool(r["is_deleted"]),
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    async def delete_chat_documents(self, chat_thread_id: str) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "UPDATE chat_documents SET is_deleted = 1 "
                    "WHERE chat_thread_id = ? AND is_deleted = 0",
                    (chat_thread_id,),
                )
                await db.commit()
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise self._store_error(
                f"Failed to delete chat documents for {chat_thread_id}", exc
            ) from exc

    def get_provider_name(self) -> str:
        return "sqlite_metadata"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _select(self, sql: str, params: tuple) -> list[DocumentRecord]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise self._store_error("Failed to list records", exc) from exc
        return [self._row_to_record(r) for r in rows]

    def _store_error(self, action: str, exc: sqlite3.Error) -> MetadataStoreError:
        return MetadataStoreError(
            message=f"{action}: {exc}",
            provider_name=self.get_provider_name(),
        )

    @staticmethod
    def _record_to_row(record: DocumentRecord) -> tuple:
        return (
            record.id,
            record.file_name,
            record.file_type,
            record.file_size,
            record.uploaded_by,
            _ts(record.uploaded_at),
            record.blob_name,
            record.blob_url,
            record.search_index_id,
            record.pages,
            record.confidence,
            record.status.value,
            json.dumps(record.tags),
            json.dumps(record.categories),
            record.description,
            int(record.is_deleted),
            _ts(record.created_at),
            _ts(record.updated_at),
        )

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> DocumentRecord:
        data = dict(row)
        data["tags"] = json.loads(data["tags"] or "[]")
        data["categories"] = json.loads(data["categories"] or "[]")
        data["is_deleted"] = bool(data["is_deleted"])
        return DocumentRecord.model_validate(data)
