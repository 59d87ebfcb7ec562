"""
Snapshot file persistence helpers.

Canonical snapshot is written to a sibling `.tmp` file, flushed to disk and
then moved over the canonical path with `os.replace`, so a crash mid-write
leaves either the old or the new file, never a torn one.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from orderbot.core.json_utils import dumps_pretty, loads
from orderbot.core.utils import now_ms
from orderbot.errors import PersistenceError

log = logging.getLogger("orderbot")

BACKUP_PREFIX = "backup-"


def _write_atomic(path: Path, payload: bytes) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("wb") as fh:
        fh.write(payload)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp, path)


class SnapshotFile:
    """Blocking file operations for the order book snapshot and its backups."""

    def __init__(self, path: str | Path, backup_dir: str | Path | None = None) -> None:
        self.path = Path(path)
        self.backup_dir = Path(backup_dir) if backup_dir else self.path.parent / "backups"

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Read the canonical snapshot.

        Returns None when no snapshot has ever been written.

        Raises:
            PersistenceError: file exists but cannot be read or parsed
        """
        if not self.path.exists():
            return None
        try:
            data = loads(self.path.read_bytes())
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"cannot read snapshot {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"snapshot {self.path} is not a JSON object")
        return data

    def save(self, data: Dict[str, Any]) -> None:
        """
        Atomically replace the canonical snapshot.

        Raises:
            PersistenceError: write or rename failed
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            _write_atomic(self.path, dumps_pretty(data))
        except OSError as exc:
            raise PersistenceError(f"cannot write snapshot {self.path}: {exc}") from exc

    def list_backups(self) -> List[Path]:
        """Backup files, oldest first."""
        if not self.backup_dir.exists():
            return []
        return sorted(
            p for p in self.backup_dir.iterdir()
            if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.suffix == ".json"
        )

    def write_backup(self, data: Dict[str, Any], retention: int, stamp_ms: Optional[int] = None) -> Path:
        """
        Write a timestamped copy and prune to the newest `retention` files.

        Returns:
            Path of the backup just written

        Raises:
            PersistenceError: backup could not be written
        """
        stamp = stamp_ms if stamp_ms is not None else now_ms()
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            dest = self.backup_dir / f"{BACKUP_PREFIX}{stamp:013d}.json"
            _write_atomic(dest, dumps_pretty(data))
        except OSError as exc:
            raise PersistenceError(f"cannot write backup in {self.backup_dir}: {exc}") from exc

        backups = self.list_backups()
        for old in backups[: max(0, len(backups) - retention)]:
            try:
                old.unlink()
            except OSError as exc:
                log.warning("backup_prune_failed path=%s err=%s", old, exc)
        return dest
