"""
Binlog coordinate extraction from a mysqldump snapshot.

`mysqldump --source-data=2` writes the coordinate the snapshot is
consistent with as a commented statement near the top of the dump:

    -- CHANGE MASTER TO MASTER_LOG_FILE='binlog.000005', MASTER_LOG_POS=1200;
    -- CHANGE REPLICATION SOURCE TO SOURCE_LOG_FILE='binlog.000005', SOURCE_LOG_POS=1200;

The first form comes from servers before 8.0.23, the second from newer
ones. Dumps can be arbitrarily large, so the file is streamed line by line
and only the header is searched.

Invariants:
    - At most max_lines lines are read
    - The first matching line wins
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from ..binlog.base import LogCoordinate
from ..errors import CoordinateNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINES = 300

COORDINATE_PATTERNS = (
    re.compile(r"CHANGE MASTER TO MASTER_LOG_FILE='([^']+)', MASTER_LOG_POS=(\d+);"),
    re.compile(r"CHANGE REPLICATION SOURCE TO SOURCE_LOG_FILE='([^']+)', SOURCE_LOG_POS=(\d+);"),
)


def match_coordinate(line: str) -> Optional[LogCoordinate]:
    """Return the coordinate in a marker line, or None."""
    for pattern in COORDINATE_PATTERNS:
        match = pattern.search(line)
        if match:
            return LogCoordinate(segment=match.group(1).strip(), offset=int(match.group(2)))
    return None


class SnapshotCoordinateExtractor:
    """Finds the binlog coordinate recorded in a snapshot header.

    Example:
        >>> extractor = SnapshotCoordinateExtractor(max_lines=300)
        >>> extractor.extract("/backup/20240721101500_full_backup.sql")
        LogCoordinate(segment='binlog.000005', offset=1200)
    """

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES) -> None:
        if max_lines <= 0:
            raise ValueError("max_lines must be positive")
        self.max_lines = max_lines

    def extract(self, artifact: str | Path) -> LogCoordinate:
        """Scan the artifact header.

        Raises:
            CoordinateNotFoundError: If no marker is found within max_lines
        """
        with open(artifact, "r", encoding="utf-8", errors="replace") as f:
            coordinate, scanned = self.scan(f)

        if coordinate is None:
            raise CoordinateNotFoundError(str(artifact), scanned)

        logger.debug(f"Found {coordinate} at line {scanned} of {artifact}")
        return coordinate

    def scan(self, lines: Iterable[str]) -> tuple[Optional[LogCoordinate], int]:
        """Scan an iterable of lines.

        Returns:
            (coordinate or None, number of lines read)
        """
        scanned = 0
        for line in lines:
            scanned += 1
            coordinate = match_coordinate(line)
            if coordinate is not None:
                return coordinate, scanned
            if scanned >= self.max_lines:
                break
        return None, scanned
