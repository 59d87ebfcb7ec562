"""
PersistenceManager: durable commit, startup restore and rotating backups.

Architecture:
    The command dispatcher calls `commit(store)` while holding the store
    lock, right after every mutation and before the acknowledgement is
    dispatched. A failed commit never raises: the in-memory store stays
    authoritative, the manager is marked dirty and the flush loop retries
    every `flush_interval_sec`. That interval bounds the window in which a
    crash can lose an acknowledged mutation whose save failed.

    A second loop writes a timestamped backup every `backup_interval_sec`
    and prunes the backup set to `backup_retention` files. Backups take
    their snapshot under the same store lock as ordinary commits.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from orderbot.core.json_utils import dumps
from orderbot.core.utils import now_ms
from orderbot.errors import PersistenceError
from orderbot.orders.store import OrderStore
from orderbot.state.state_atomic import AtomicSnapshotFile

if TYPE_CHECKING:
    from orderbot.monitoring.metrics import BotMetrics

log = logging.getLogger("orderbot")


@dataclass
class PersistenceConfig:
    """Configuration for PersistenceManager."""
    snapshot_path: str = "database/pedidos.json"
    backup_dir: Optional[str] = None  # defaults to <snapshot dir>/backups
    backup_interval_sec: float = 6 * 60 * 60
    backup_retention: int = 5
    flush_interval_sec: float = 30.0

    log_event_callback: Optional[Callable[..., None]] = None


class PersistenceManager:
    """
    Owns the durable copy of the order book.

    Usage:
        pm = PersistenceManager(PersistenceConfig(snapshot_path="db/pedidos.json"), store_lock)
        store = await pm.load_or_init()
        pm.start()

        async with store_lock:
            store.create_order(...)
            await pm.commit(store)

        await pm.stop()
    """

    def __init__(
        self,
        config: Optional[PersistenceConfig] = None,
        store_lock: Optional[asyncio.Lock] = None,
        metrics: Optional["BotMetrics"] = None,
    ) -> None:
        self.config = config or PersistenceConfig()
        self.store_lock = store_lock or asyncio.Lock()
        self.metrics = metrics
        self._file = AtomicSnapshotFile(self.config.snapshot_path, self.config.backup_dir)

        self._store: Optional[OrderStore] = None
        self._dirty = False
        self._last_save_ms: int = 0
        self._last_backup_path: Optional[Path] = None

        self._tasks: list[asyncio.Task] = []
        self._running = False

        self._stats = {
            "saves": 0,
            "save_failures": 0,
            "backups": 0,
            "backup_failures": 0,
        }
        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, dumps({"event": event, **kwargs}))

    # ========== Properties ==========

    @property
    def store(self) -> Optional[OrderStore]:
        return self._store

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def last_save_ms(self) -> int:
        return self._last_save_ms

    @property
    def last_backup_path(self) -> Optional[Path]:
        return self._last_backup_path

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "dirty": self._dirty,
            "last_save_ms": self._last_save_ms,
        }

    # ========== Load ==========

    async def load(self, clock: Optional[Callable[[], datetime]] = None) -> Optional[OrderStore]:
        """
        Restore the order book.

        Returns:
            The restored store, or None if no snapshot exists yet

        Raises:
            PersistenceError: the snapshot exists but is unreadable or holds malformed records
        """
        data = await self._file.load()
        if data is None:
            return None
        try:
            store = OrderStore.from_snapshot(data, clock=clock)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"malformed snapshot {self.config.snapshot_path}: {exc!r}"
            ) from exc
        self._log_event(
            "snapshot_loaded",
            orders=len(store),
            next_id=store.next_id,
            active=store.active_count,
        )
        return store

    async def load_or_init(self, clock: Optional[Callable[[], datetime]] = None) -> OrderStore:
        """
        Load the snapshot, or create an empty store and persist it at once so
        disk and memory agree from the first tick.
        """
        store = await self.load(clock=clock)
        if store is None:
            store = OrderStore(clock=clock)
            self._log_event("snapshot_initialized", path=str(self.config.snapshot_path))
            async with self.store_lock:
                await self.commit(store)
        self.bind(store)
        return store

    def bind(self, store: OrderStore) -> None:
        self._store = store
        self._update_gauges(store)

    # ========== Save ==========

    async def save(self, snapshot: Dict[str, Any]) -> bool:
        """
        Atomically write `snapshot`.

        Returns:
            True on success. On failure the error is logged, the manager is
            marked dirty and False is returned; nothing is raised.
        """
        try:
            await self._file.save(snapshot)
        except PersistenceError as exc:
            self._dirty = True
            self._stats["save_failures"] += 1
            if self.metrics:
                self.metrics.persist_failures.inc()
                self.metrics.errors.labels(component="persistence").inc()
            self._log_event("persist_failed", level=logging.ERROR, err=str(exc))
            return False

        self._dirty = False
        self._last_save_ms = now_ms()
        self._stats["saves"] += 1
        return True

    async def commit(self, store: OrderStore) -> bool:
        """Snapshot and save. Caller must hold `store_lock`."""
        ok = await self.save(store.to_snapshot())
        self._update_gauges(store)
        return ok

    async def flush_if_dirty(self) -> bool:
        """Retry a failed save. Returns True if nothing was pending or the retry succeeded."""
        if not self._dirty or self._store is None:
            return True
        async with self.store_lock:
            ok = await self.commit(self._store)
        if ok:
            self._log_event("persist_recovered")
        return ok

    # ========== Backups ==========

    async def rotate_backup(self, snapshot: Dict[str, Any]) -> Optional[Path]:
        """Write a timestamped backup and prune old ones. Failures are logged, never raised."""
        try:
            path = await self._file.write_backup(snapshot, self.config.backup_retention)
        except PersistenceError as exc:
            self._stats["backup_failures"] += 1
            if self.metrics:
                self.metrics.errors.labels(component="backup").inc()
            self._log_event("backup_failed", level=logging.ERROR, err=str(exc))
            return None

        self._last_backup_path = path
        self._stats["backups"] += 1
        if self.metrics:
            self.metrics.backups_written.inc()
        self._log_event("backup_written", path=str(path))
        return path

    async def backup_once(self) -> Optional[Path]:
        if self._store is None:
            return None
        async with self.store_lock:
            snapshot = self._store.to_snapshot()
        return await self.rotate_backup(snapshot)

    # ========== Background loops ==========

    async def _flush_loop(self) -> None:
        interval = max(1.0, float(self.config.flush_interval_sec))
        while self._running:
            await asyncio.sleep(interval)
            try:
                await self.flush_if_dirty()
            except Exception as exc:
                self._log_event("flush_loop_error", level=logging.ERROR, err=str(exc))

    async def _backup_loop(self) -> None:
        interval = max(1.0, float(self.config.backup_interval_sec))
        while self._running:
            await asyncio.sleep(interval)
            try:
                await self.backup_once()
            except Exception as exc:
                self._log_event("backup_loop_error", level=logging.ERROR, err=str(exc))

    def start(self) -> None:
        if self._tasks:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._flush_loop(), name="persist-flush"),
            asyncio.create_task(self._backup_loop(), name="persist-backup"),
        ]

    async def stop(self) -> None:
        """Stop loops, then make a final attempt to persist pending state."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self._store is not None:
            async with self.store_lock:
                await self.commit(self._store)

    # ========== Internals ==========

    def _update_gauges(self, store: OrderStore) -> None:
        if self.metrics:
            self.metrics.orders_active.set(store.active_count)
            self.metrics.orders_total.set(len(store))
