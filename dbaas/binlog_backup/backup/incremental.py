"""
Incremental backup orchestrator.

An incremental run exports the binlog written since the stored coordinate:
1. Load the position record (absent: skip or NotReadyError)
2. List binlog files named >= the stored file
3. Read the write tip; the newest listed file must be the tip file
4. Tip == stored coordinate: nothing to do
5. Export every listed file, in order, one artifact per file:
   - the first file starts at the stored offset
   - the last file stops at the tip offset
6. Advance the position record to the tip, once, after the whole batch

A failed export aborts the run, whether the tool failed or the artifact
could not be written. Artifacts already written by that run are
removed and the position record keeps its old value, so a retry exports
the same range again without leaving duplicates behind.

Invariants:
    - Files are exported strictly in ascending name order
    - The position record is never advanced past data not yet exported
    - Steps 1-6 run under the destination lock
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..binlog.base import LogCatalog, LogCoordinate
from ..config import LockConfig
from ..errors import ConsistencyError, NotReadyError
from ..position.lock import DestinationLock
from ..position.store import PositionStore
from ..tools.mysql import MysqlTools
from .artifacts import ArtifactKind, BackupArtifact, incremental_artifact_path, next_run_stamp
from .audit import AuditLog

logger = logging.getLogger(__name__)


class IncrementalStatus(Enum):
    """Outcome of an incremental run that did not fail."""

    EXPORTED = "exported"
    UP_TO_DATE = "up_to_date"
    SKIPPED_NOT_READY = "skipped_not_ready"


@dataclass(frozen=True)
class SegmentExport:
    """One planned binlog export.

    Attributes:
        segment: Binlog file name
        start_position: --start-position, only for the first file of a batch
        stop_position: --stop-position, only for the last file of a batch
    """

    segment: str
    start_position: Optional[int] = None
    stop_position: Optional[int] = None


@dataclass
class IncrementalResult:
    """Result of an incremental run.

    Attributes:
        status: What the run did
        artifacts: Artifacts written, in export order
        start: Coordinate the run started from (None if not ready)
        coordinate: Coordinate stored when the run finished
        duration_ms: Total duration
    """

    status: IncrementalStatus
    artifacts: List[BackupArtifact] = field(default_factory=list)
    start: Optional[LogCoordinate] = None
    coordinate: Optional[LogCoordinate] = None
    duration_ms: int = 0


def plan_exports(stored: LogCoordinate, segments: List[str], tip: LogCoordinate) -> List[SegmentExport]:
    """Work out which binlog ranges to export.

    Args:
        stored: Coordinate reached by the previous run
        segments: Binlog files listed by the server
        tip: Current write position

    Returns:
        Exports in ascending order; empty when tip == stored

    Raises:
        ConsistencyError: If the listing, the tip and the stored coordinate
            cannot describe one contiguous range
    """
    batch = sorted(s for s in set(segments) if s >= stored.segment)
    last = batch[-1] if batch else None

    if last != tip.segment:
        raise ConsistencyError(
            "binlog file is not the same as the last position found on the server",
            last_listed=last,
            tip=str(tip),
        )

    if batch[0] != stored.segment:
        raise ConsistencyError(
            f"binlog file {stored.segment} is no longer on the server; take a new full backup",
            stored=str(stored),
            first_listed=batch[0],
        )

    if tip == stored:
        return []

    if tip < stored:
        raise ConsistencyError(
            f"server position {tip} is behind the stored position {stored}",
            stored=str(stored),
            tip=str(tip),
        )

    return [
        SegmentExport(
            segment=segment,
            start_position=stored.offset if i == 0 else None,
            stop_position=tip.offset if i == len(batch) - 1 else None,
        )
        for i, segment in enumerate(batch)
    ]


class IncrementalBackupOrchestrator:
    """Exports new binlog ranges and advances the position record.

    Example:
        >>> orchestrator = IncrementalBackupOrchestrator(server, tools)
        >>> result = orchestrator.run("/backup/20240721", skip_if_unready=True)
        >>> [a.name for a in result.artifacts]
        ['20240721120000_binlog.000005_inc_bak.sql', ...]
    """

    def __init__(
        self,
        catalog: LogCatalog,
        tools: MysqlTools,
        store: Optional[PositionStore] = None,
        lock: Optional[LockConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            catalog: Live server (binlog listing and tip)
            tools: External tool family
            store: Position record store
            lock: Destination lock settings
            clock: Source of the run timestamp
        """
        self.catalog = catalog
        self.tools = tools
        self.store = store or PositionStore()
        self.lock = lock or LockConfig()
        self.clock = clock

    def run(self, destination: str | Path, skip_if_unready: bool = False) -> IncrementalResult:
        """Execute one incremental run.

        Args:
            destination: Destination seeded by a full backup
            skip_if_unready: Treat a missing position record as a no-op

        Returns:
            IncrementalResult; status tells exported / up to date / skipped

        Raises:
            NotReadyError: No position record and skip_if_unready is False
            ConsistencyError: Server state does not line up with the record
            ToolInvocationError: An export failed (record not advanced)
            OSError: An artifact could not be written (record not advanced)
        """
        start_time = time.time()
        destination = Path(destination)

        if not destination.is_dir():
            if skip_if_unready:
                logger.info(f"Skip, full backup unready: {destination} does not exist yet")
                return IncrementalResult(status=IncrementalStatus.SKIPPED_NOT_READY)
            raise NotReadyError(str(destination))

        with DestinationLock(destination, self.lock.timeout_seconds, self.lock.poll_seconds):
            stored = self.store.load(destination)
            if stored is None:
                if skip_if_unready:
                    logger.info("Skip, full backup unready. Try again later")
                    return IncrementalResult(status=IncrementalStatus.SKIPPED_NOT_READY)
                raise NotReadyError(str(destination))

            segments = self.catalog.list_segments()
            tip = self.catalog.current_tip()
            exports = plan_exports(stored, segments, tip)

            if not exports:
                logger.info(f"No binlog to back up, still at {stored}")
                return IncrementalResult(
                    status=IncrementalStatus.UP_TO_DATE,
                    start=stored,
                    coordinate=stored,
                    duration_ms=int((time.time() - start_time) * 1000),
                )

            artifacts = self._export_batch(destination, stored, tip, exports)
            self.store.save(destination, tip)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Incremental backup done, latest binlog file: {tip.segment}, position: {tip.offset}",
            extra={"artifacts": len(artifacts), "duration_ms": duration_ms},
        )

        return IncrementalResult(
            status=IncrementalStatus.EXPORTED,
            artifacts=artifacts,
            start=stored,
            coordinate=tip,
            duration_ms=duration_ms,
        )

    def _export_batch(
        self,
        destination: Path,
        stored: LogCoordinate,
        tip: LogCoordinate,
        exports: List[SegmentExport],
    ) -> List[BackupArtifact]:
        audit = AuditLog(destination)
        stamp = next_run_stamp(destination, self.clock())
        written: List[BackupArtifact] = []

        audit.incremental_start(stored)
        for export in exports:
            path = incremental_artifact_path(destination, stamp, export.segment)
            logger.info(
                f"Incremental backup running for {export.segment}",
                extra={"start": export.start_position, "stop": export.stop_position},
            )
            try:
                self.tools.export_segment(
                    export.segment,
                    path,
                    start_position=export.start_position,
                    stop_position=export.stop_position,
                )
            except Exception as e:
                self._discard(written, path)
                audit.incremental_failed(export.segment, str(e))
                raise

            written.append(BackupArtifact(path=path, kind=ArtifactKind.INCREMENTAL))
            audit.incremental_segment(export.segment, path, export.start_position, export.stop_position)

        audit.incremental_end(tip)
        return written

    @staticmethod
    def _discard(written: List[BackupArtifact], failed_path: Path) -> None:
        """Remove artifacts of a failed batch."""
        for path in [a.path for a in written] + [failed_path]:
            if path.exists():
                path.unlink()
                logger.warning(f"Removed partial incremental artifact {path}")
