"""SQLite document store for scraped packages.

One row per import path, holding the serialised ``Package`` and the raw page
markup. Writes are upserts (last write wins, no versioning). The store is
best-effort: ``aiosqlite.Error`` is wrapped in
``GoPkgDocsError(CACHE_UNAVAILABLE)`` and the scraper logs it and carries on
as if the cache were disabled.

A store opened without a database path is disabled: lookups always miss and
upserts are skipped.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import structlog
from pydantic import ValidationError

from gopkgdocs.errors import ErrorCode, GoPkgDocsError
from gopkgdocs.models import Document, Package

log = structlog.get_logger()

_CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT PRIMARY KEY,
    package     TEXT NOT NULL,
    raw_html    TEXT NOT NULL DEFAULT '',
    updated_at  TEXT NOT NULL
)
"""


def _unavailable(operation: str, doc_id: str, exc: Exception) -> GoPkgDocsError:
    return GoPkgDocsError(
        code=ErrorCode.CACHE_UNAVAILABLE,
        message=f"Document store {operation} failed for {doc_id}: {exc}",
        suggestion="The package will be fetched from pkg.go.dev instead.",
        recoverable=True,
    )


class DocumentStore:
    """aiosqlite-backed document store implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection | None) -> None:
        self._db = db

    @property
    def enabled(self) -> bool:
        return self._db is not None

    async def init_db(self) -> None:
        """Create the documents table. Called once after connecting."""
        if self._db is None:
            return
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_DOCUMENTS_TABLE)
        await self._db.commit()

    async def close(self) -> None:
        if self._db is None:
            log.debug("store_close_skipped", reason="disabled")
            return
        await self._db.close()
        self._db = None
        log.debug("store_closed")

    async def get_by_id(self, doc_id: str) -> Document | None:
        """Return the stored document for ``doc_id``, or ``None`` on a miss."""
        if self._db is None:
            log.debug("store_get_skipped", id=doc_id, reason="disabled")
            return None
        try:
            cursor = await self._db.execute(
                "SELECT id, package, raw_html FROM documents WHERE id = ?",
                (doc_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            log.warning("store_read_error", id=doc_id, exc_info=True)
            raise _unavailable("read", doc_id, exc) from exc

        if row is None:
            log.debug("store_miss", id=doc_id)
            return None

        try:
            package = Package.model_validate_json(row[1])
        except ValidationError as exc:
            log.warning("store_decode_error", id=doc_id, exc_info=True)
            raise _unavailable("decode", doc_id, exc) from exc

        log.debug("store_hit", id=doc_id)
        return Document(id=row[0], package=package, raw_html=row[2])

    async def upsert(self, document: Document) -> None:
        """Insert or replace ``document`` by id."""
        if self._db is None:
            log.debug("store_upsert_skipped", id=document.id, reason="disabled")
            return
        if not document.id:
            raise GoPkgDocsError(
                code=ErrorCode.CACHE_UNAVAILABLE,
                message="Refusing to store a document without an id",
                recoverable=False,
            )
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO documents (id, package, raw_html, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (
                    document.id,
                    document.package.model_dump_json(),
                    document.raw_html,
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            log.warning("store_write_error", id=document.id, exc_info=True)
            raise _unavailable("write", document.id, exc) from exc
        log.debug("store_upserted", id=document.id)


async def open_store(db_path: str) -> DocumentStore:
    """Connect to the store at ``db_path``.

    An empty path, or a database that cannot be opened, yields a disabled
    store so scraping still works without persistence.
    """
    if not db_path:
        log.debug("store_disabled", reason="no_db_path")
        return DocumentStore(None)

    path = Path(db_path).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(path))
    except (OSError, aiosqlite.Error):
        log.warning("store_open_failed", db_path=str(path), exc_info=True)
        return DocumentStore(None)

    store = DocumentStore(db)
    try:
        await store.init_db()
    except aiosqlite.Error:
        log.warning("store_init_failed", db_path=str(path), exc_info=True)
        await db.close()
        return DocumentStore(None)
    log.debug("store_opened", db_path=str(path))
    return store
