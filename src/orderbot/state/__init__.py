"""
State persistence package.

Atomic snapshot files, periodic backups and the PersistenceManager that
owns the durable copy of the order book.
"""

from orderbot.state.persistence import PersistenceConfig, PersistenceManager
from orderbot.state.snapshot_file import SnapshotFile
from orderbot.state.state_atomic import AtomicSnapshotFile

__all__ = [
    "AtomicSnapshotFile",
    "PersistenceConfig",
    "PersistenceManager",
    "SnapshotFile",
]
