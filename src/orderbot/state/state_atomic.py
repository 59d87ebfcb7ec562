"""
Async/atomic wrapper around SnapshotFile for safe concurrent access.

Provides async `load`, `save` and `write_backup` that run file IO in an
executor and serialize access with an `asyncio.Lock` so a backup never
interleaves with a save.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

from orderbot.state.snapshot_file import SnapshotFile


class AtomicSnapshotFile:
    def __init__(self, path: str | Path, backup_dir: str | Path | None = None) -> None:
        self._file = SnapshotFile(path, backup_dir)
        self._lock = asyncio.Lock()

    @property
    def file(self) -> SnapshotFile:
        return self._file

    async def load(self) -> Optional[Dict[str, Any]]:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._file.load)

    async def save(self, data: Dict[str, Any]) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, lambda: self._file.save(data))

    async def write_backup(self, data: Dict[str, Any], retention: int) -> Path:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, lambda: self._file.write_backup(data, retention))
