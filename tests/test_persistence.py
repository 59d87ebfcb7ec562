"""
Tests for snapshot persistence.

Tests cover:
- First start without a snapshot
- Atomic save (no stray temp files) and deterministic bytes
- Corrupt snapshot handling
- Save failure -> dirty -> flush retry
- Backup rotation and retention
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from orderbot.errors import PersistenceError
from orderbot.monitoring.metrics import BotMetrics
from orderbot.orders import OrderStore
from orderbot.state import PersistenceConfig, PersistenceManager, SnapshotFile


@pytest.fixture
def metrics():
    return BotMetrics()


@pytest.fixture
def manager(tmp_path, metrics):
    config = PersistenceConfig(snapshot_path=str(tmp_path / "db" / "pedidos.json"))
    return PersistenceManager(config, asyncio.Lock(), metrics)


def _sample(metrics, name, labels=None):
    return metrics.get_registry().get_sample_value(name, labels or {})


class TestSnapshotFile:
    """Blocking file layer."""

    def test_load_missing_returns_none(self, tmp_path):
        assert SnapshotFile(tmp_path / "pedidos.json").load() is None

    def test_save_is_atomic_and_leaves_no_temp(self, tmp_path):
        snap = SnapshotFile(tmp_path / "db" / "pedidos.json")
        snap.save({"orders": [], "nextId": 1, "totalCount": 0, "activeCount": 0})

        assert snap.path.exists()
        assert [p.name for p in snap.path.parent.iterdir()] == ["pedidos.json"]
        assert snap.load()["nextId"] == 1

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "pedidos.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            SnapshotFile(path).load()

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "pedidos.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(PersistenceError):
            SnapshotFile(path).load()

    def test_backup_retention_keeps_newest(self, tmp_path):
        snap = SnapshotFile(tmp_path / "pedidos.json")
        for stamp in range(1, 8):
            snap.write_backup({"nextId": stamp}, retention=5, stamp_ms=stamp)

        backups = snap.list_backups()
        assert len(backups) == 5
        assert backups[0].name == "backup-0000000000003.json"
        assert backups[-1].name == "backup-0000000000007.json"
        assert snap.backup_dir == tmp_path / "backups"


class TestPersistenceManagerLoad:
    """Startup restore."""

    @pytest.mark.asyncio
    async def test_load_without_snapshot_returns_none(self, manager):
        assert await manager.load() is None

    @pytest.mark.asyncio
    async def test_load_or_init_creates_file(self, manager, metrics):
        store = await manager.load_or_init()

        assert len(store) == 0
        assert manager.store is store
        assert manager._file.file.path.exists()
        assert _sample(metrics, "orders_total") == 0

    @pytest.mark.asyncio
    async def test_round_trip_is_byte_identical(self, manager, tmp_path, ticking_clock):
        store = await manager.load_or_init(clock=ticking_clock)
        async with manager.store_lock:
            store.create_order("Camiseta M azul", "Ana", "34600111222@c.us")
            store.create_order("Taza", "Luis", "34600333444@c.us")
            store.change_status("001", "diseño", actor="Luis")
            await manager.commit(store)
        first_bytes = manager._file.file.path.read_bytes()

        other = PersistenceManager(manager.config, asyncio.Lock())
        restored = await other.load()
        async with other.store_lock:
            await other.commit(restored)

        assert manager._file.file.path.read_bytes() == first_bytes
        assert restored.get("001").history[-1].actor == "Luis"
        assert "diseño".encode("utf-8") in first_bytes

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_aborts_load(self, manager):
        path = manager._file.file.path
        path.parent.mkdir(parents=True)
        path.write_text('{"orders": [', encoding="utf-8")

        with pytest.raises(PersistenceError):
            await manager.load_or_init()
        assert path.read_text(encoding="utf-8") == '{"orders": ['

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        '{"orders": [{"id": "001", "description": "x"}], "nextId": 2}',
        '{"orders": [{"id": "001", "description": "x", "status": "perdido",'
        ' "createdAt": "2025-03-10T10:00:00"}], "nextId": 2}',
        '{"orders": [], "nextId": "dos"}',
        '{"orders": ["001"], "nextId": 2}',
    ])
    async def test_malformed_records_abort_load(self, manager, raw):
        path = manager._file.file.path
        path.parent.mkdir(parents=True)
        path.write_text(raw, encoding="utf-8")

        with pytest.raises(PersistenceError):
            await manager.load()
        assert path.read_text(encoding="utf-8") == raw


class TestPersistenceManagerFailures:
    """Failed saves never raise; the flush loop retries."""

    @pytest.mark.asyncio
    async def test_failed_save_marks_dirty_then_flush_recovers(self, manager, metrics):
        store = await manager.load_or_init()
        real_save = manager._file.save
        manager._file.save = AsyncMock(side_effect=PersistenceError("disk full"))

        async with manager.store_lock:
            store.create_order("Camiseta", "Ana", "c1")
            ok = await manager.commit(store)

        assert ok is False
        assert manager.dirty is True
        assert _sample(metrics, "persist_failures_total") == 1
        assert _sample(metrics, "errors_total", {"component": "persistence"}) == 1
        assert _sample(metrics, "orders_active") == 1

        manager._file.save = real_save
        assert await manager.flush_if_dirty() is True
        assert manager.dirty is False

        restored = await PersistenceManager(manager.config, asyncio.Lock()).load()
        assert restored.get("001").description == "Camiseta"

    @pytest.mark.asyncio
    async def test_flush_noop_when_clean(self, manager):
        await manager.load_or_init()
        manager._file.save = AsyncMock()

        assert await manager.flush_if_dirty() is True
        manager._file.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_makes_final_commit(self, manager):
        store = await manager.load_or_init()
        manager.start()
        store.create_order("Gorra", "Ana", "c1")

        await manager.stop()

        restored = await PersistenceManager(manager.config, asyncio.Lock()).load()
        assert len(restored) == 1


class TestBackups:
    """Rotating backups through the manager."""

    @pytest.mark.asyncio
    async def test_backup_once_writes_snapshot_copy(self, manager, metrics):
        store = await manager.load_or_init()
        async with manager.store_lock:
            store.create_order("Camiseta", "Ana", "c1")
            await manager.commit(store)

        path = await manager.backup_once()

        assert path is not None and path.exists()
        assert path.parent.name == "backups"
        assert manager.last_backup_path == path
        assert SnapshotFile(path).load() == store.to_snapshot()
        assert _sample(metrics, "backups_written_total") == 1

    @pytest.mark.asyncio
    async def test_backup_failure_is_logged_not_raised(self, manager, metrics):
        await manager.load_or_init()
        manager._file.write_backup = AsyncMock(side_effect=PersistenceError("read-only fs"))

        assert await manager.backup_once() is None
        assert manager.get_stats()["backup_failures"] == 1
        assert _sample(metrics, "errors_total", {"component": "backup"}) == 1
