"""
Position tracking for binlog-backup.

This module provides:
- PositionStore: the persisted "last captured coordinate" per destination
- DestinationLock: advisory lock around its read-modify-write

Invariants:
    - Orchestrators re-read the record on every run, never cache it
    - Recovery never writes the record
"""

from .lock import LOCK_FILENAME, DestinationLock
from .store import POSITION_FILENAME, PositionStore

__all__ = ["PositionStore", "DestinationLock", "POSITION_FILENAME", "LOCK_FILENAME"]
