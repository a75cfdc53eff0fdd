from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from halo.store.migrations import apply_schema
from halo.store.records import StoreError


class SqliteSession:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, query: str, params: Iterable[Any] | None = None) -> int:
        cur = self._conn.execute(query, list(params or []))
        return cur.rowcount

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        cur = self._conn.execute(query, list(params or []))
        return cur.fetchall()

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        cur = self._conn.execute(query, list(params or []))
        return cur.fetchone()


class SqliteStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open store: {exc}") from exc
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def session(self) -> Iterator[SqliteSession]:
        with self.connect() as conn:
            yield SqliteSession(conn)

    def apply_schema(self, schema_path: Path) -> None:
        with self.connect() as conn:
            apply_schema(conn, schema_path)

    def execute(self, query: str, params: Iterable[Any] | None = None) -> int:
        with self.connect() as conn:
            cur = conn.execute(query, list(params or []))
            return cur.rowcount

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        with self.connect() as conn:
            cur = conn.execute(query, list(params or []))
            return cur.fetchall()

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        with self.connect() as conn:
            cur = conn.execute(query, list(params or []))
            return cur.fetchone()
