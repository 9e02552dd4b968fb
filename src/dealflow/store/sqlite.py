from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dealflow.domain.rules import ServerError
from dealflow.store.migrations import apply_schema


class SqliteSession:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, query: str, params: Iterable[Any] | None = None) -> int:
        cur = self._conn.execute(query, params or [])
        return cur.rowcount

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        cur = self._conn.execute(query, params or [])
        return cur.fetchall()

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        cur = self._conn.execute(query, params or [])
        return cur.fetchone()

    def exists(self, table: str, id_field: str, record_id: str) -> bool:
        row = self.fetch_one(f"SELECT 1 FROM {table} WHERE {id_field} = ?", (record_id,))
        return row is not None

    def count(self, table: str, where: str | None = None, params: Iterable[Any] | None = None) -> int:
        query = f"SELECT COUNT(*) AS n FROM {table}"
        if where:
            query += f" WHERE {where}"
        row = self.fetch_one(query, params)
        return int(row["n"]) if row else 0


class SqliteStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def connect(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise ServerError(f"Could not open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON;")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise ServerError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def session(self) -> SqliteSession:
        with self.connect() as conn:
            yield SqliteSession(conn)

    def apply_schema(self, schema_path: Path) -> None:
        with self.connect() as conn:
            apply_schema(conn, schema_path)

    def execute(self, query: str, params: Iterable[Any] | None = None) -> int:
        with self.session() as session:
            return session.execute(query, params)

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        with self.session() as session:
            return session.fetch_all(query, params)

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        with self.session() as session:
            return session.fetch_one(query, params)

    def exists(self, table: str, id_field: str, record_id: str) -> bool:
        with self.session() as session:
            return session.exists(table, id_field, record_id)

    def count(self, table: str, where: str | None = None, params: Iterable[Any] | None = None) -> int:
        with self.session() as session:
            return session.count(table, where, params)
