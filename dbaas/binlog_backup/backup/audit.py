"""
Operator-facing audit log kept inside each destination (bak.log).

The file is append-only and purely observational: no component parses
it back. Process logging goes through the logging module instead.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..binlog.base import LogCoordinate

AUDIT_FILENAME = "bak.log"


def _iso_now() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


class AuditLog:
    """Appends timestamped entries to <destination>/bak.log."""

    def __init__(self, destination: str | Path, clock: Callable[[], str] = _iso_now) -> None:
        self.path = Path(destination) / AUDIT_FILENAME
        self._clock = clock

    def append(self, line: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line.rstrip("\n") + "\n")

    def full_backup(self, coordinate: LogCoordinate) -> None:
        self.append(
            f"---- Full backup last file: {coordinate.segment}, "
            f"position: {coordinate.offset}, at {self._clock()}.\n"
        )

    def incremental_start(self, start: LogCoordinate) -> None:
        self.append(
            f"---- Start incremental backup from {start.segment}, "
            f"position: {start.offset}, at {self._clock()}"
        )

    def incremental_segment(
        self,
        segment: str,
        artifact: str | Path,
        start: Optional[int],
        stop: Optional[int],
    ) -> None:
        self.append(
            f"[{self._clock()}] file: {segment}, start: {_or_dash(start)}, "
            f"stop: {_or_dash(stop)}, incremental backup: {artifact}."
        )

    def incremental_end(self, tip: LogCoordinate) -> None:
        self.append(
            f"---- End backup file: {tip.segment}, position: {tip.offset}, at {self._clock()}\n"
        )

    def incremental_failed(self, segment: str, reason: str) -> None:
        self.append(f"---- Incremental backup failed at {segment}: {reason}, at {self._clock()}\n")


def _or_dash(value: Optional[int]) -> str:
    return "-" if value is None else str(value)
