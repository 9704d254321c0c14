"""
Position record storage for a backup destination.

The position record is a single line "<segment>:<offset>" in the file
`binlog_index` inside the destination. It is the only state carried from
one run to the next.

Invariants:
    - Exactly one record per destination, no history
    - save() replaces the record atomically (write temp + rename)
    - A malformed record is a hard error, never silently reset

How to change safely:
    - The on-disk format is shared with older destinations, keep it
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from ..binlog.base import LogCoordinate
from ..errors import ParseError

logger = logging.getLogger(__name__)

POSITION_FILENAME = "binlog_index"


class PositionStore:
    """Loads and saves the last captured binlog coordinate.

    Example:
        >>> store = PositionStore()
        >>> store.save("/backup/20240721", LogCoordinate("binlog.000005", 1200))
        >>> store.load("/backup/20240721")
        LogCoordinate(segment='binlog.000005', offset=1200)
    """

    def __init__(self, filename: str = POSITION_FILENAME) -> None:
        self.filename = filename

    def path(self, destination: str | Path) -> Path:
        """Location of the record inside a destination."""
        return Path(destination) / self.filename

    def exists(self, destination: str | Path) -> bool:
        return self.path(destination).is_file()

    def load(self, destination: str | Path) -> LogCoordinate | None:
        """Read the stored coordinate.

        Returns:
            The coordinate, or None if no full backup has written one yet

        Raises:
            ParseError: If the record is not "<segment>:<offset>"
        """
        path = self.path(destination)
        if not path.is_file():
            return None

        raw = path.read_text(encoding="utf-8")
        try:
            coordinate = LogCoordinate.parse(raw)
        except ParseError as e:
            raise ParseError(f"Invalid {self.filename} file: {raw!r}", path=str(path), raw=raw) from e

        logger.debug(f"Loaded position {coordinate} from {path}")
        return coordinate

    def save(self, destination: str | Path, coordinate: LogCoordinate) -> None:
        """Replace the stored coordinate."""
        path = self.path(destination)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.filename}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(coordinate))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved position {coordinate} to {path}")
