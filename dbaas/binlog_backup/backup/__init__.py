"""
Backup orchestration for binlog-backup.

This module provides:
- FullBackupOrchestrator: mysqldump snapshot + position record seed
- IncrementalBackupOrchestrator: binlog range exports + record advance
- ShellDumpOrchestrator / ShellLoadOrchestrator: MySQL Shell mode
- Artifact naming and the destination audit log

Invariants:
    - One full artifact per destination, followed by ordered incrementals
    - Every run is independent; nothing is cached between runs
"""

from .artifacts import (
    ARTIFACT_EXTENSION,
    FULL_BACKUP_SUFFIX,
    INCREMENTAL_BACKUP_SUFFIX,
    ArtifactKind,
    BackupArtifact,
    archive_dir,
    latest_archive_dir,
    list_artifacts,
    next_run_stamp,
    purge_destination,
)
from .audit import AUDIT_FILENAME, AuditLog
from .full import FullBackupOrchestrator, FullBackupResult, check_server_version
from .incremental import (
    IncrementalBackupOrchestrator,
    IncrementalResult,
    IncrementalStatus,
    SegmentExport,
    plan_exports,
)
from .shell import ShellDumpOrchestrator, ShellLoadOrchestrator

__all__ = [
    # Orchestrators
    "FullBackupOrchestrator",
    "FullBackupResult",
    "IncrementalBackupOrchestrator",
    "IncrementalResult",
    "IncrementalStatus",
    "SegmentExport",
    "plan_exports",
    "check_server_version",
    "ShellDumpOrchestrator",
    "ShellLoadOrchestrator",
    # Artifacts
    "ArtifactKind",
    "BackupArtifact",
    "list_artifacts",
    "next_run_stamp",
    "purge_destination",
    "archive_dir",
    "latest_archive_dir",
    "FULL_BACKUP_SUFFIX",
    "INCREMENTAL_BACKUP_SUFFIX",
    "ARTIFACT_EXTENSION",
    # Audit
    "AuditLog",
    "AUDIT_FILENAME",
]
