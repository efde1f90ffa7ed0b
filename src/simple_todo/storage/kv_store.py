# src/simple_todo/storage/kv_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
import time
import uuid
from pathlib import Path

from ..core.ports import KVChange

logger = logging.getLogger(__name__)


def _new_origin() -> str:
    return uuid.uuid4().hex


class SqliteKeyValueStore:
    """
    SQLite-backed key-value store shared by every open app instance.

    Each write bumps a store-wide version and records the writer's origin, so
    other instances can pull "what changed since cursor N, not written by me".

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "store.sqlite3", *, origin: str | None = None) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._origin = origin or _new_origin()
        self._ensure_schema()
        logger.info("KeyValueStore ready db=%s origin=%s", self._db_path, self._origin)

    @property
    def origin(self) -> str:
        return self._origin

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    origin TEXT NOT NULL DEFAULT '',
                    version INTEGER NOT NULL DEFAULT 0,
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_kv_version ON kv(version)")
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def get(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            # BEGIN IMMEDIATE serializes version allocation across processes.
            conn.execute("BEGIN IMMEDIATE")
            (current,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM kv").fetchone()
            version = int(current) + 1
            conn.execute(
                """
                INSERT INTO kv(key, value, origin, version, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    origin = excluded.origin,
                    version = excluded.version,
                    updated_at = excluded.updated_at
                """,
                (key, value, self._origin, version, time.time()),
            )
            conn.commit()
            logger.debug("kv set key=%s version=%s bytes=%s", key, version, len(value))
        finally:
            conn.close()

    def current_cursor(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM kv").fetchone()
            return int(n)
        finally:
            conn.close()

    def changes_since(self, cursor: int) -> tuple[list[KVChange], int]:
        """
        Writes by other origins with version > cursor, oldest first.

        The returned cursor also skips over this origin's own writes.
        """
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT key, value, origin, version FROM kv WHERE version > ? ORDER BY version ASC",
                (int(cursor),),
            ).fetchall()
        finally:
            conn.close()

        new_cursor = int(cursor)
        out: list[KVChange] = []
        for row in rows:
            new_cursor = max(new_cursor, int(row["version"]))
            if row["origin"] == self._origin:
                continue
            out.append(
                KVChange(
                    key=str(row["key"]),
                    value=row["value"],
                    origin=str(row["origin"]),
                    version=int(row["version"]),
                )
            )
        return out, new_cursor


class _MemoryBackend:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.values: dict[str, tuple[str, str, int]] = {}  # key -> (value, origin, version)
        self.version = 0


class InMemoryKeyValueStore:
    """
    Process-local store with the same contract as SqliteKeyValueStore.

    `fork()` returns another context (new origin) over the same data, which is
    how tests simulate a second open instance.
    """

    def __init__(self, *, origin: str | None = None, _backend: _MemoryBackend | None = None) -> None:
        self._backend = _backend or _MemoryBackend()
        self._origin = origin or _new_origin()

    @property
    def origin(self) -> str:
        return self._origin

    def fork(self, *, origin: str | None = None) -> InMemoryKeyValueStore:
        return InMemoryKeyValueStore(origin=origin, _backend=self._backend)

    def close(self) -> None:
        return

    def get(self, key: str) -> str | None:
        with self._backend.lock:
            entry = self._backend.values.get(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str) -> None:
        with self._backend.lock:
            self._backend.version += 1
            self._backend.values[key] = (value, self._origin, self._backend.version)

    def current_cursor(self) -> int:
        with self._backend.lock:
            return self._backend.version

    def changes_since(self, cursor: int) -> tuple[list[KVChange], int]:
        with self._backend.lock:
            entries = sorted(
                (
                    (version, key, value, origin)
                    for key, (value, origin, version) in self._backend.values.items()
                    if version > cursor
                ),
            )
            new_cursor = max([cursor, *(e[0] for e in entries)])

        out = [
            KVChange(key=key, value=value, origin=origin, version=version)
            for version, key, value, origin in entries
            if origin != self._origin
        ]
        return out, new_cursor
