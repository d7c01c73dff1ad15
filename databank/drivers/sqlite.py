"""SQLite databank driver.

All types share one ``records`` table keyed by ``(type, id)`` with the
value stored as JSON text. SQLite gives us the atomic primitives the
other drivers lack:

- ``INSERT`` fails on the primary key, so create is exactly-once
- ``UPDATE``/``DELETE`` report the rows they touched
- ``INSERT .. ON CONFLICT DO UPDATE`` is a native save
- read-modify-write runs inside one ``BEGIN IMMEDIATE`` transaction

Indexed properties from the schema become expression indexes on
``json_extract(value, '$.path')`` and narrow searches; the matcher then
checks every candidate, so results agree with the other drivers.
"""

import asyncio
import logging
import re
import sqlite3
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..codec import decode, encode_text
from ..errors import AlreadyExistsError, NoSuchThingError, NotConnectedError
from ..matcher import matches_criteria
from .base import Databank

logger = logging.getLogger(__name__)

_SAFE_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAX_VARIABLES = 500

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS records (
        type TEXT NOT NULL,
        id TEXT NOT NULL,
        value TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (type, id)
    );

    CREATE TRIGGER IF NOT EXISTS records_update_timestamp
    AFTER UPDATE OF value ON records
    BEGIN
        UPDATE records SET updated_at = CURRENT_TIMESTAMP
        WHERE type = NEW.type AND id = NEW.id;
    END;
"""


def json_path(prop: str) -> str | None:
    """SQLite JSON path for a dotted property, or None if it is not safe to inline."""
    segments = prop.split(".")
    if not all(_SAFE_SEGMENT.match(segment) for segment in segments):
        return None
    return "$." + ".".join(segments)


def _index_name(type_: str, prop: str) -> str:
    raw = f"idx_records_{type_}_{prop}"
    return re.sub(r"\W", "_", raw)


def _sql_narrowable(value: Any) -> bool:
    """Values SQLite compares the same way the matcher does."""
    if isinstance(value, bool):
        return False
    return isinstance(value, str | int | float)


class SQLiteDatabank(Databank):
    """SQLite-backed databank. ``path=":memory:"`` keeps data in process."""

    driver = "sqlite"
    native_errors = (sqlite3.Error,)

    def __init__(
        self,
        path: str | Path = ":memory:",
        schema: Mapping[str, Any] | None = None,
    ):
        super().__init__(schema)
        self.path = str(path)
        self._lock = threading.RLock()
        self.conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the connection, ensuring it exists."""
        if self.conn is None:
            raise NotConnectedError()
        return self.conn

    async def _connect(self, params: dict[str, Any]) -> None:
        await asyncio.to_thread(self._open)

    async def _disconnect(self) -> None:
        await asyncio.to_thread(self._close)

    async def _create(self, type_: str, id_: Any, value: Any) -> Any:
        await asyncio.to_thread(self._insert, type_, str(id_), encode_text(value))
        return value

    async def _read(self, type_: str, id_: Any) -> Any:
        text = await asyncio.to_thread(self._select, type_, str(id_))
        return decode(text)

    async def _update(self, type_: str, id_: Any, value: Any) -> Any:
        await asyncio.to_thread(self._replace, type_, str(id_), encode_text(value))
        return value

    async def _delete(self, type_: str, id_: Any) -> None:
        await asyncio.to_thread(self._remove, type_, str(id_))

    async def _save(self, type_: str, id_: Any, value: Any) -> Any:
        await asyncio.to_thread(self._upsert, type_, str(id_), encode_text(value))
        return value

    async def _search(self, type_: str, criteria: dict[str, Any]) -> list[Any]:
        rows = await asyncio.to_thread(self._select_candidates, type_, criteria)
        values = (decode(text) for text in rows)
        return [value for value in values if matches_criteria(value, criteria)]

    async def _read_all(self, type_: str, ids: list[Any]) -> dict[Any, Any]:
        found = await asyncio.to_thread(
            self._select_many, type_, [str(id_) for id_ in ids]
        )
        return {
            id_: decode(found[str(id_)]) if str(id_) in found else None
            for id_ in ids
        }

    async def _read_and_modify(
        self,
        type_: str,
        id_: Any,
        default: Any,
        modify: Callable[[Any], Any],
    ) -> Any:
        return await asyncio.to_thread(
            self._modify_row, type_, str(id_), default, modify
        )

    # Blocking helpers

    def _open(self) -> None:
        conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            if self.path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
            self._create_indexes(conn)
        except Exception:
            conn.close()
            raise
        self.conn = conn

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        for type_, declaration in self.schema.items():
            for prop in declaration.indices:
                path = json_path(prop)
                if path is None:
                    logger.warning(
                        f"Cannot build SQL index for '{type_}.{prop}'; "
                        "searches on it will scan"
                    )
                    continue
                conn.execute(
                    f'CREATE INDEX IF NOT EXISTS "{_index_name(type_, prop)}" '
                    f"ON records(type, json_extract(value, '{path}'))"
                )

    def _close(self) -> None:
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception:
                conn.rollback()
                raise
            conn.commit()

    def _insert(self, type_: str, id_: str, text: str) -> None:
        with self._lock:
            try:
                self.connection.execute(
                    "INSERT INTO records (type, id, value) VALUES (?, ?, ?)",
                    (type_, id_, text),
                )
            except sqlite3.IntegrityError:
                raise AlreadyExistsError(type_, id_) from None

    def _select(self, type_: str, id_: str) -> str:
        with self._lock:
            row = self.connection.execute(
                "SELECT value FROM records WHERE type = ? AND id = ?", (type_, id_)
            ).fetchone()
        if row is None:
            raise NoSuchThingError(type_, id_)
        return row["value"]

    def _replace(self, type_: str, id_: str, text: str) -> None:
        with self._lock:
            cursor = self.connection.execute(
                "UPDATE records SET value = ? WHERE type = ? AND id = ?",
                (text, type_, id_),
            )
        if cursor.rowcount == 0:
            raise NoSuchThingError(type_, id_)

    def _remove(self, type_: str, id_: str) -> None:
        with self._lock:
            cursor = self.connection.execute(
                "DELETE FROM records WHERE type = ? AND id = ?", (type_, id_)
            )
        if cursor.rowcount == 0:
            raise NoSuchThingError(type_, id_)

    def _upsert(self, type_: str, id_: str, text: str) -> None:
        with self._lock:
            self.connection.execute(
                """
                INSERT INTO records (type, id, value) VALUES (?, ?, ?)
                ON CONFLICT(type, id) DO UPDATE SET value = excluded.value
                """,
                (type_, id_, text),
            )

    def _select_candidates(self, type_: str, criteria: dict[str, Any]) -> list[str]:
        conditions = ["type = ?"]
        params: list[Any] = [type_]

        declaration = self.schema.get(type_)
        indices = declaration.indices if declaration else ()
        for prop, expected in criteria.items():
            path = json_path(prop) if prop in indices else None
            if path is None or not _sql_narrowable(expected):
                continue
            conditions.append(f"json_extract(value, '{path}') = ?")
            params.append(expected)

        where_clause = " AND ".join(conditions)
        with self._lock:
            cursor = self.connection.execute(
                f"SELECT value FROM records WHERE {where_clause} ORDER BY id", params
            )
            return [row["value"] for row in cursor]

    def _select_many(self, type_: str, ids: list[str]) -> dict[str, str]:
        found: dict[str, str] = {}
        unique = list(dict.fromkeys(ids))
        with self._lock:
            for start in range(0, len(unique), _MAX_VARIABLES):
                chunk = unique[start : start + _MAX_VARIABLES]
                placeholders = ", ".join("?" for _ in chunk)
                cursor = self.connection.execute(
                    f"SELECT id, value FROM records "
                    f"WHERE type = ? AND id IN ({placeholders})",
                    (type_, *chunk),
                )
                for row in cursor:
                    found[row["id"]] = row["value"]
        return found

    def _modify_row(
        self,
        type_: str,
        id_: str,
        default: Any,
        modify: Callable[[Any], Any],
    ) -> Any:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT value FROM records WHERE type = ? AND id = ?", (type_, id_)
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO records (type, id, value) VALUES (?, ?, ?)",
                    (type_, id_, encode_text(default)),
                )
                return default
            value = modify(decode(row["value"]))
            conn.execute(
                "UPDATE records SET value = ? WHERE type = ? AND id = ?",
                (encode_text(value), type_, id_),
            )
            return value

    def get_statistics(self) -> dict[str, Any]:
        """Record counts per type."""
        with self._lock:
            cursor = self.connection.execute("""
                SELECT type, COUNT(*) as count
                FROM records
                GROUP BY type
                ORDER BY count DESC
            """)
            by_type = {row["type"]: row["count"] for row in cursor}
        return {"total_records": sum(by_type.values()), "by_type": by_type}
