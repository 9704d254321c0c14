"""
Recovery orchestrator for mysqldump/mysqlbinlog destinations.

Recovery replays one destination into the server:
1. Find the full artifact
2. Replay it through the mysql client
3. Replay every incremental artifact in ascending file name order

Replay is sequential and fail-fast. Nothing is rolled back: a failed
incremental leaves the server with everything replayed before it.

Invariants:
    - The full artifact is replayed before any incremental
    - A failure stops the run; later artifacts are never attempted
    - The position record is never read or written

How to change safely:
    - Keep artifact discovery in sync with artifact naming
    - Test restore against destinations written by older releases
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ..backup.artifacts import ArtifactKind, BackupArtifact, list_artifacts
from ..errors import ConsistencyError, NoBackupFoundError, RestoreError, ToolInvocationError
from ..tools.mysql import MysqlTools

logger = logging.getLogger(__name__)


@dataclass
class RecoveryResult:
    """Result of a recovery.

    Attributes:
        full: Full artifact replayed
        incrementals: Incremental artifacts replayed, in order
        duration_ms: Total duration
    """

    full: BackupArtifact
    incrementals: List[BackupArtifact] = field(default_factory=list)
    duration_ms: int = 0


class RecoveryOrchestrator:
    """Replays a full artifact followed by its incrementals.

    Attributes:
        tools: External tool family
        strict: Treat several full artifacts as an error instead of
            using the first one

    Example:
        >>> result = RecoveryOrchestrator(tools).run("/backup/20240721")
        >>> print(f"Replayed {len(result.incrementals)} incrementals")
    """

    def __init__(self, tools: MysqlTools, strict: bool = False) -> None:
        self.tools = tools
        self.strict = strict

    def run(self, destination: str | Path) -> RecoveryResult:
        """Execute the recovery.

        Raises:
            NoBackupFoundError: If there is no full artifact
            ConsistencyError: If strict and several full artifacts exist
            RestoreError: On the first replay failure
        """
        start_time = time.time()
        destination = Path(destination)

        full = self._select_full(destination)
        logger.info(f"Recovering full backup file: {full}")
        self._replay(full)

        incrementals = list_artifacts(destination, ArtifactKind.INCREMENTAL)
        if not incrementals:
            logger.info("Recover succeed! No incremental backup file found")

        for artifact in incrementals:
            logger.info(f"Recovering incremental backup: {artifact}")
            self._replay(artifact)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Recover success",
            extra={"incrementals": len(incrementals), "duration_ms": duration_ms},
        )
        return RecoveryResult(full=full, incrementals=incrementals, duration_ms=duration_ms)

    def _select_full(self, destination: Path) -> BackupArtifact:
        candidates = list_artifacts(destination, ArtifactKind.FULL) if destination.is_dir() else []
        if not candidates:
            raise NoBackupFoundError(str(destination))

        if len(candidates) > 1:
            names = [c.name for c in candidates]
            if self.strict:
                raise ConsistencyError(
                    f"{len(candidates)} full backup files in {destination}",
                    artifacts=names,
                )
            logger.warning(f"Several full backup files in {destination}, using {names[0]}")

        return candidates[0]

    def _replay(self, artifact: BackupArtifact) -> None:
        try:
            result = self.tools.restore(artifact.path)
        except ToolInvocationError as e:
            raise RestoreError(str(artifact.path), returncode=e.returncode, stderr=e.message) from e

        if not result.ok:
            raise RestoreError(
                str(artifact.path),
                returncode=result.returncode,
                stderr=result.stderr.strip() or None,
            )
