"""
Full backup orchestrator.

A full backup starts a destination over:
1. Check the server is reachable and new enough
2. Check mysqldump matches the server version exactly
3. Purge the destination
4. Dump all databases with the binlog coordinate in the header
5. Extract that coordinate from the dump
6. Seed the position record and write the audit entry

Invariants:
    - The position record is only written once the dump is complete and
      its coordinate is known
    - Steps 3-6 run under the destination lock

How to change safely:
    - Anything that changes the dump header format must keep a marker the
      extractor understands
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..binlog.base import LogCatalog, LogCoordinate, format_version, parse_version
from ..config import LockConfig
from ..errors import ToolVersionMismatchError, UnsupportedVersionError
from ..position.lock import DestinationLock
from ..position.store import PositionStore
from ..snapshot.extractor import SnapshotCoordinateExtractor
from ..tools.mysql import MysqlTools
from .artifacts import BackupArtifact, ArtifactKind, full_artifact_path, purge_destination, run_stamp
from .audit import AuditLog

logger = logging.getLogger(__name__)


@dataclass
class FullBackupResult:
    """Result of a full backup.

    Attributes:
        artifact: The snapshot written
        coordinate: Coordinate persisted to the position record
        server_version: Version reported by the server
        duration_ms: Total duration
    """

    artifact: BackupArtifact
    coordinate: LogCoordinate
    server_version: str
    duration_ms: int


def check_server_version(catalog: LogCatalog, minimum: str) -> str:
    """Return the server version after checking it against the minimum.

    Raises:
        ConnectionError: If the server cannot be queried
        UnsupportedVersionError: If the version is older than minimum
    """
    version = catalog.server_version()
    try:
        supported = parse_version(version) >= parse_version(minimum)
    except ValueError:
        supported = False

    if not supported:
        raise UnsupportedVersionError(version, minimum)
    return version


class FullBackupOrchestrator:
    """Produces a full snapshot and seeds the position record.

    Example:
        >>> orchestrator = FullBackupOrchestrator(server, tools)
        >>> result = orchestrator.run("/backup/20240721", ["--set-gtid-purged=OFF"])
        >>> print(result.coordinate)
        binlog.000005:1200
    """

    def __init__(
        self,
        catalog: LogCatalog,
        tools: MysqlTools,
        store: Optional[PositionStore] = None,
        extractor: Optional[SnapshotCoordinateExtractor] = None,
        min_server_version: str = "8.0.0",
        lock: Optional[LockConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            catalog: Live server (version checks)
            tools: External tool family
            store: Position record store
            extractor: Snapshot header scanner
            min_server_version: Oldest supported server version
            lock: Destination lock settings
            clock: Source of the artifact timestamp
        """
        self.catalog = catalog
        self.tools = tools
        self.store = store or PositionStore()
        self.extractor = extractor or SnapshotCoordinateExtractor()
        self.min_server_version = min_server_version
        self.lock = lock or LockConfig()
        self.clock = clock

    def run(self, destination: str | Path, extra_options: Sequence[str] = ()) -> FullBackupResult:
        """Execute the full backup.

        Args:
            destination: Destination directory (created if missing)
            extra_options: Additional mysqldump options

        Returns:
            FullBackupResult with the persisted coordinate

        Raises:
            BackupError: Any taxonomy error; the position record is not
                written in that case
        """
        start_time = time.time()
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        server_version = check_server_version(self.catalog, self.min_server_version)
        server_numeric = format_version(parse_version(server_version))
        tool_version = self.tools.dump_version()
        if tool_version != server_numeric:
            raise ToolVersionMismatchError("mysqldump", tool_version, server_numeric)

        with DestinationLock(destination, self.lock.timeout_seconds, self.lock.poll_seconds):
            purge_destination(destination)

            path = full_artifact_path(destination, run_stamp(self.clock()))
            logger.info(f"Full backup running into {path}")
            self.tools.dump_all(path, extra_options)

            coordinate = self.extractor.extract(path)
            self.store.save(destination, coordinate)
            AuditLog(destination).full_backup(coordinate)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Full backup succeed. Binlog file: {coordinate.segment}, position: {coordinate.offset}",
            extra={"artifact": str(path), "duration_ms": duration_ms},
        )

        return FullBackupResult(
            artifact=BackupArtifact(path=path, kind=ArtifactKind.FULL),
            coordinate=coordinate,
            server_version=server_version,
            duration_ms=duration_ms,
        )
