"""
In-memory LogCatalog implementation for testing.

This module provides a scripted binlog catalog for:
- Unit tests of the incremental orchestrator
- Integration tests of full backup cycles
- Local development without a MySQL server

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with LogCatalog protocol
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import ConsistencyError
from .base import LogCoordinate

logger = logging.getLogger(__name__)


class InMemoryLogCatalog:
    """Scripted implementation of LogCatalog.

    The newest listed segment is the tip segment unless a test overrides
    the tip with set_tip() to simulate a rollover race.

    Example:
        >>> catalog = InMemoryLogCatalog(["binlog.000001"], tip_offset=157)
        >>> catalog.rotate(4)
        >>> catalog.current_tip()
        LogCoordinate(segment='binlog.000002', offset=4)
    """

    def __init__(
        self,
        segments: Optional[List[str]] = None,
        tip_offset: int = 4,
        version: str = "8.0.36",
    ) -> None:
        self.version = version
        self._segments: List[str] = list(segments or [])
        self._tip: Optional[LogCoordinate] = (
            LogCoordinate(self._segments[-1], tip_offset) if self._segments else None
        )
        self.calls: List[str] = []

    def server_version(self) -> str:
        self.calls.append("server_version")
        return self.version

    def list_segments(self) -> List[str]:
        self.calls.append("list_segments")
        return list(self._segments)

    def current_tip(self) -> LogCoordinate:
        self.calls.append("current_tip")
        if self._tip is None:
            raise ConsistencyError("Binary logging is disabled on the server")
        return self._tip

    # Testing helpers

    def write(self, nbytes: int) -> LogCoordinate:
        """Advance the tip within the current segment."""
        assert self._tip is not None
        self._tip = LogCoordinate(self._tip.segment, self._tip.offset + nbytes)
        return self._tip

    def rotate(self, offset: int = 4) -> LogCoordinate:
        """Start a new segment with the next sequence number."""
        if self._segments:
            base, _, number = self._segments[-1].rpartition(".")
            name = f"{base}.{int(number) + 1:0{len(number)}d}"
        else:
            name = "binlog.000001"
        self._segments.append(name)
        self._tip = LogCoordinate(name, offset)
        logger.debug(f"Rotated binlog to {name}")
        return self._tip

    def purge_before(self, segment: str) -> None:
        """Drop every segment older than the given one."""
        self._segments = [s for s in self._segments if s >= segment]

    def set_tip(self, tip: LogCoordinate) -> None:
        """Force the tip, independent of the listed segments."""
        self._tip = tip
