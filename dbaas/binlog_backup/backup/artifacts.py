"""
Backup artifact naming and destination layout.

Artifact names:
    <YYYYmmddHHMMSS>_full_backup.sql
    <YYYYmmddHHMMSS>_<binlog file>_inc_bak.sql

All incrementals of one run share the run's timestamp, so names sort by
run first and by binlog file within a run. A run never reuses or goes
behind a stamp already in the destination (next_run_stamp), so plain
filename order is creation order even for runs within the same second.

Archive layout:
    <root>/<YYYYmmdd>/   one destination per day a full backup started

Invariants:
    - A destination holds at most one full artifact (full backups purge)
    - Purging never removes the destination lock file
    - An existing artifact is never overwritten by a later run
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..errors import ConfigurationError
from ..position.lock import LOCK_FILENAME

logger = logging.getLogger(__name__)

FULL_BACKUP_SUFFIX = "full_backup"
INCREMENTAL_BACKUP_SUFFIX = "inc_bak"
ARTIFACT_EXTENSION = ".sql"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
ARCHIVE_DIR_FORMAT = "%Y%m%d"

_ARCHIVE_DIR_RE = re.compile(r"\d{8}")
_RUN_STAMP_RE = re.compile(r"(\d{14})_")


class ArtifactKind(Enum):
    """Kinds of artifact stored in a destination."""

    FULL = FULL_BACKUP_SUFFIX
    INCREMENTAL = INCREMENTAL_BACKUP_SUFFIX

    @property
    def pattern(self) -> str:
        """Glob matching artifacts of this kind."""
        return f"*_{self.value}{ARTIFACT_EXTENSION}"


@dataclass(frozen=True)
class BackupArtifact:
    """A file produced by a backup run.

    Attributes:
        path: Location of the artifact
        kind: Full or incremental
        sequence_key: File name without the kind suffix; orders artifacts
    """

    path: Path
    kind: ArtifactKind

    @property
    def sequence_key(self) -> str:
        suffix = f"_{self.kind.value}{ARTIFACT_EXTENSION}"
        return self.path.name[: -len(suffix)]

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return str(self.path)


def run_stamp(now: Optional[datetime] = None) -> str:
    """Timestamp used in artifact names."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def next_run_stamp(destination: str | Path, now: Optional[datetime] = None) -> str:
    """Run stamp sorting strictly after every artifact already in destination.

    Normally the current time; bumped one second past the newest existing
    stamp when the clock has not moved on (two runs in one second) or has
    gone backwards.
    """
    stamp = run_stamp(now)
    existing = []
    for path in Path(destination).glob(f"*{ARTIFACT_EXTENSION}"):
        match = _RUN_STAMP_RE.match(path.name)
        if match:
            existing.append(match.group(1))

    latest = max(existing, default=None)
    if latest is not None and stamp <= latest:
        bumped = datetime.strptime(latest, TIMESTAMP_FORMAT) + timedelta(seconds=1)
        logger.debug(f"Run stamp {stamp} already used, using {bumped:%Y%m%d%H%M%S}")
        stamp = bumped.strftime(TIMESTAMP_FORMAT)
    return stamp


def full_artifact_path(destination: str | Path, stamp: str) -> Path:
    return Path(destination) / f"{stamp}_{FULL_BACKUP_SUFFIX}{ARTIFACT_EXTENSION}"


def incremental_artifact_path(destination: str | Path, stamp: str, segment: str) -> Path:
    return Path(destination) / f"{stamp}_{segment}_{INCREMENTAL_BACKUP_SUFFIX}{ARTIFACT_EXTENSION}"


def list_artifacts(destination: str | Path, kind: ArtifactKind) -> List[BackupArtifact]:
    """Artifacts of one kind, ascending by file name."""
    paths = sorted(p for p in Path(destination).glob(kind.pattern) if p.is_file())
    return [BackupArtifact(path=p, kind=kind) for p in paths]


def purge_destination(destination: str | Path, keep_lock: bool = True) -> int:
    """Remove everything in a destination except the lock file.

    Args:
        destination: Directory to empty
        keep_lock: Leave the lock file alone (callers holding the lock)

    Returns:
        Number of top-level entries removed
    """
    removed = 0
    for entry in Path(destination).iterdir():
        if keep_lock and entry.name == LOCK_FILENAME:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1

    if removed:
        logger.info(f"Purged {removed} entries from {destination}")
    return removed


def archive_dir(root: str | Path, now: Optional[datetime] = None) -> Path:
    """Dated destination under an archive root, for full-archive runs."""
    return Path(root) / (now or datetime.now()).strftime(ARCHIVE_DIR_FORMAT)


def latest_archive_dir(root: str | Path) -> Path:
    """Newest dated destination under an archive root.

    Raises:
        ConfigurationError: If the root holds no YYYYmmdd directory
    """
    candidates = sorted(
        (p for p in Path(root).iterdir() if p.is_dir() and _ARCHIVE_DIR_RE.fullmatch(p.name)),
        reverse=True,
    )
    if not candidates:
        raise ConfigurationError(f"Could not find archive dir in {root}")
    return candidates[0]
