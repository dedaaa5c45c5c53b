"""SQLite-backed key-value store with atomic compare-and-set transactions.

Keys are ``(index, key)`` pairs and values are scalar strings. A transaction
is a list of checks (expected current values, ``None`` meaning absent)
followed by a list of writes; either every write lands or none does.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from src.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    idx TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (idx, key)
);
"""

Key = tuple[str, str]


@dataclass(frozen=True)
class Check:
    key: Key
    expected: str | None


@dataclass(frozen=True)
class Write:
    key: Key
    value: str


class KeyValueStore:
    """Durable map over a single SQLite file.

    Provides:
    - WAL mode for crash recovery
    - ``BEGIN IMMEDIATE`` transactions so checks and writes are serialized
      against other writers
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode: transactions are opened explicitly in transact()
            self._conn = sqlite3.connect(
                db_path, isolation_level=None, check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(SCHEMA_SQL)
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"cannot open store at {db_path}: {exc}") from exc

    def get(self, key: Key) -> str | None:
        idx, name = key
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv WHERE idx = ? AND key = ?", (idx, name),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"read failed for {idx}/{name}: {exc}") from exc
        return row[0] if row else None

    def transact(self, checks: list[Check], writes: list[Write]) -> bool:
        """Apply ``writes`` if every check holds.

        Returns True on commit, False on conflict (nothing written).
        """
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StorageError(f"cannot begin transaction: {exc}") from exc
            try:
                for check in checks:
                    idx, name = check.key
                    row = self._conn.execute(
                        "SELECT value FROM kv WHERE idx = ? AND key = ?", (idx, name),
                    ).fetchone()
                    current = row[0] if row else None
                    if current != check.expected:
                        self._conn.execute("ROLLBACK")
                        return False
                for write in writes:
                    idx, name = write.key
                    self._conn.execute(
                        """INSERT INTO kv (idx, key, value) VALUES (?, ?, ?)
                           ON CONFLICT(idx, key) DO UPDATE SET value=excluded.value""",
                        (idx, name, write.value),
                    )
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise StorageError(f"transaction failed: {exc}") from exc
        return True

    def _rollback(self) -> None:
        if self._conn.in_transaction:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error as exc:
                logger.warning("Rollback failed on %s: %s", self._db_path, exc)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
