"""
Snapshot inspection for binlog-backup.

Extracts the binlog coordinate a full snapshot is consistent with, which
seeds the position record for later incremental runs.
"""

from .extractor import COORDINATE_PATTERNS, DEFAULT_MAX_LINES, SnapshotCoordinateExtractor, match_coordinate

__all__ = [
    "SnapshotCoordinateExtractor",
    "match_coordinate",
    "COORDINATE_PATTERNS",
    "DEFAULT_MAX_LINES",
]
