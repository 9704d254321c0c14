"""
Binlog catalog abstraction for binlog-backup.

This module provides:
- LogCoordinate: (segment, offset) position in the binary log
- LogCatalog: protocol for listing binlog files and the write tip
- MysqlServer: PyMySQL-backed catalog for a live server
- InMemoryLogCatalog: scripted catalog for testing

Invariants:
    - Catalog reads are point-in-time snapshots
    - Coordinates are totally ordered by (segment, offset)
"""

from .base import LogCatalog, LogCoordinate, format_version, parse_version
from .memory import InMemoryLogCatalog
from .mysql import MysqlServer

__all__ = [
    # Protocol and types
    "LogCatalog",
    "LogCoordinate",
    "parse_version",
    "format_version",
    # Implementations
    "MysqlServer",
    "InMemoryLogCatalog",
]
