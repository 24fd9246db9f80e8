"""Async SQLite document store for LabBoard.

Uses aiosqlite for async access.  Each logical table holds JSON documents
plus an integer ``version`` column used for compare-and-swap updates.
Designed for dev/testing; production uses DynamoDB.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from labboard.exceptions import ConcurrentUpdateError, StorageError
from labboard.storage.base import Table, matches_filters, resolve_table

DEFAULT_DB_PATH = Path(os.environ.get("LB_DB_PATH", "labboard.db"))

SCHEMA_SQL = "\n".join(
    f"""
CREATE TABLE IF NOT EXISTS {t.value} (
    id TEXT PRIMARY KEY,
    doc TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
);
"""
    for t in Table
)


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except aiosqlite.Error as exc:
        raise StorageError(f"SQLite {operation} failed: {exc}") from exc


class Database:
    """Async SQLite database wrapper."""

    backend_name = "sqlite"

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        with _storage_errors("connect"):
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(SCHEMA_SQL)
            await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db

    @staticmethod
    def _row_to_doc(row: aiosqlite.Row) -> dict[str, Any]:
        doc = json.loads(row["doc"])
        doc["version"] = row["version"]
        return doc

    async def get(self, table: str, key: str) -> dict[str, Any] | None:
        name = resolve_table(table).value
        with _storage_errors("get"):
            cursor = await self.db.execute(f"SELECT doc, version FROM {name} WHERE id = ?", (key,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_doc(row)

    async def put(self, table: str, item: dict[str, Any]) -> None:
        name = resolve_table(table).value
        if not item.get("id"):
            raise ValueError("Document must have an 'id'")
        version = int(item.get("version") or 0)
        with _storage_errors("put"):
            await self.db.execute(
                f"INSERT OR REPLACE INTO {name} (id, doc, version) VALUES (?, ?, ?)",
                (item["id"], json.dumps(item), version),
            )
            await self.db.commit()

    async def update(
        self,
        table: str,
        key: str,
        changes: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> dict[str, Any] | None:
        name = resolve_table(table).value
        current = await self.get(name, key)
        if current is None:
            return None

        base_version = current["version"]
        if expected_version is not None and expected_version != base_version:
            raise ConcurrentUpdateError(
                f"{name}/{key} is at version {base_version}, expected {expected_version}"
            )

        updated = {**current, **changes, "id": key, "version": base_version + 1}
        with _storage_errors("update"):
            cursor = await self.db.execute(
                f"UPDATE {name} SET doc = ?, version = ? WHERE id = ? AND version = ?",
                (json.dumps(updated), base_version + 1, key, base_version),
            )
            await self.db.commit()
        if cursor.rowcount == 0:
            raise ConcurrentUpdateError(f"{name}/{key} changed during update")
        return updated

    async def delete(self, table: str, key: str) -> dict[str, Any] | None:
        name = resolve_table(table).value
        existing = await self.get(name, key)
        if existing is None:
            return None
        with _storage_errors("delete"):
            await self.db.execute(f"DELETE FROM {name} WHERE id = ?", (key,))
            await self.db.commit()
        return existing

    async def scan(self, table: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        name = resolve_table(table).value
        with _storage_errors("scan"):
            cursor = await self.db.execute(f"SELECT doc, version FROM {name} ORDER BY rowid")
            rows = await cursor.fetchall()
        docs = [self._row_to_doc(row) for row in rows]
        return [doc for doc in docs if matches_filters(doc, filters)]
