"""Append-only JSON Lines audit trail of relay events.

One line per :class:`~src.models.AuditEvent`. The file is rotated by size
(``AUDIT_LOG_MAX_BYTES``) keeping ``AUDIT_LOG_BACKUP_COUNT`` old files as
``<name>.1`` (newest) to ``<name>.N``. Nothing in the relay reads the trail
back.
"""

from __future__ import annotations

import fcntl
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from src.config import Settings
from src.models import AuditEvent


class AuditLogger:
    """Writes audit events to ``log_path``, rotating once it reaches ``max_bytes``."""

    def __init__(self, log_path: str, max_bytes: int, backup_count: int) -> None:
        self.log_path = Path(log_path)
        self.max_bytes = max_bytes
        self.backup_count = backup_count

    @classmethod
    def from_settings(cls, settings: Settings) -> AuditLogger | None:
        """Audit logger configured by ``settings``, or None when auditing is off."""
        if not settings.audit_log_path:
            return None
        return cls(
            settings.audit_log_path,
            max_bytes=settings.audit_max_bytes,
            backup_count=settings.audit_backup_count,
        )

    def log(self, event: AuditEvent) -> None:
        self._append(event.model_dump_json(exclude_none=True))

    def backups(self) -> list[Path]:
        """Existing rotated files, newest first."""
        return [p for p in map(self._backup, range(1, self.backup_count + 1)) if p.exists()]

    def _append(self, line: str) -> None:
        with self._exclusive():
            if self._needs_rotation():
                self._rotate()
            with self.log_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        # Shared by every worker writing the same trail
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self.log_path.with_name(f".{self.log_path.name}.lock")
        with lock_path.open("w") as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

    def _needs_rotation(self) -> bool:
        return self.log_path.exists() and self.log_path.stat().st_size >= self.max_bytes

    def _rotate(self) -> None:
        if self.backup_count == 0:
            self.log_path.unlink()
            return
        for n in range(self.backup_count, 0, -1):
            src = self.log_path if n == 1 else self._backup(n - 1)
            if src.exists():
                src.replace(self._backup(n))

    def _backup(self, n: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{n}")
