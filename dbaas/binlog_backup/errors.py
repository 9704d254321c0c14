"""
Error types for binlog-backup.

This module defines every exception a backup or recovery run can raise:
- BackupError: Base exception
- ConnectionError: Server unreachable
- UnsupportedVersionError / ToolVersionMismatchError: Version preconditions
- ToolInvocationError: External tool failed or produced no output
- CoordinateNotFoundError: No binlog marker in the snapshot header
- ParseError: Malformed position record
- NotReadyError: Incremental requested before any full backup
- ConsistencyError: Catalog, tip and stored state disagree
- NoBackupFoundError / RestoreError: Recovery failures
- LockError: Destination held by another run
- ConfigurationError: Invalid command line or environment input

Invariants:
    - All errors inherit from BackupError
    - Every error is terminal for the current run
    - Errors carry context for debugging, never credentials
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BackupError(Exception):
    """Base exception for all binlog-backup errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BACKUP_ERROR"
        self.details = details or {}


class ConnectionError(BackupError):
    """Failed to connect to or query the MySQL server."""

    def __init__(self, message: str, address: Optional[str] = None) -> None:
        super().__init__(message, code="CONNECTION_ERROR", details={"address": address})
        self.address = address


class UnsupportedVersionError(BackupError):
    """Server version is outside the supported family."""

    def __init__(self, version: str, minimum: str) -> None:
        super().__init__(
            f"MySQL version {version} is not supported, please use MySQL {minimum} or higher",
            code="UNSUPPORTED_VERSION",
            details={"version": version, "minimum": minimum},
        )
        self.version = version
        self.minimum = minimum


class ToolVersionMismatchError(BackupError):
    """Snapshot tool version differs from the server version.

    The dump format is only guaranteed compatible when both match exactly.
    """

    def __init__(self, tool: str, tool_version: str, server_version: str) -> None:
        super().__init__(
            f"{tool} version is {tool_version}, but mysql version is {server_version}",
            code="TOOL_VERSION_MISMATCH",
            details={
                "tool": tool,
                "tool_version": tool_version,
                "server_version": server_version,
            },
        )
        self.tool = tool
        self.tool_version = tool_version
        self.server_version = server_version


class ToolInvocationError(BackupError):
    """External tool exited non-zero or did not produce its output.

    Attributes:
        tool: Tool name (mysqldump, mysqlbinlog, ...)
        returncode: Exit status, None if the tool could not be started
        output_path: Expected output file, if any
    """

    def __init__(
        self,
        message: str,
        tool: str,
        returncode: Optional[int] = None,
        output_path: Optional[str] = None,
        stderr: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="TOOL_INVOCATION_ERROR",
            details={
                "tool": tool,
                "returncode": returncode,
                "output_path": output_path,
                "stderr": stderr,
            },
        )
        self.tool = tool
        self.returncode = returncode
        self.output_path = output_path
        self.stderr = stderr


class CoordinateNotFoundError(BackupError):
    """No binlog coordinate marker found within the scan bound."""

    def __init__(self, artifact: str, lines_scanned: int) -> None:
        super().__init__(
            f"Could not find binlog file and position in {artifact} "
            f"(scanned {lines_scanned} lines)",
            code="COORDINATE_NOT_FOUND",
            details={"artifact": artifact, "lines_scanned": lines_scanned},
        )
        self.artifact = artifact
        self.lines_scanned = lines_scanned


class ParseError(BackupError):
    """Position record does not match "<segment>:<offset>"."""

    def __init__(self, message: str, path: Optional[str] = None, raw: Optional[str] = None) -> None:
        super().__init__(message, code="PARSE_ERROR", details={"path": path, "raw": raw})
        self.path = path
        self.raw = raw


class NotReadyError(BackupError):
    """Incremental backup requested but no full backup has completed."""

    def __init__(self, destination: str) -> None:
        super().__init__(
            f"No position record in {destination}, please do a full backup first",
            code="NOT_READY",
            details={"destination": destination},
        )
        self.destination = destination


class ConsistencyError(BackupError):
    """Live server state and stored state disagree.

    Raised when:
    - The newest catalog segment is not the current write tip
    - The stored segment is no longer listed (binlog purged)
    - The tip is behind the stored coordinate
    - A destination holds several full artifacts in strict recovery
    """

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, code="CONSISTENCY_ERROR", details=details)


class NoBackupFoundError(BackupError):
    """No full artifact in the recovery destination."""

    def __init__(self, destination: str) -> None:
        super().__init__(
            f"No full backup file found in {destination}",
            code="NO_BACKUP_FOUND",
            details={"destination": destination},
        )
        self.destination = destination


class RestoreError(BackupError):
    """Replaying an artifact failed.

    Attributes:
        artifact: Path of the artifact whose replay failed
        returncode: Exit status of the restore tool
    """

    def __init__(self, artifact: str, returncode: Optional[int] = None, stderr: Optional[str] = None) -> None:
        super().__init__(
            f"Recover failed at {artifact} (exit status {returncode})",
            code="RESTORE_ERROR",
            details={"artifact": artifact, "returncode": returncode, "stderr": stderr},
        )
        self.artifact = artifact
        self.returncode = returncode
        self.stderr = stderr


class LockError(BackupError):
    """Another run holds the destination lock."""

    def __init__(self, lock_path: str, holder: Optional[str] = None) -> None:
        msg = f"Destination is locked by another backup run: {lock_path}"
        if holder:
            msg += f" (held by {holder})"
        super().__init__(msg, code="LOCKED", details={"lock_path": lock_path, "holder": holder})
        self.lock_path = lock_path
        self.holder = holder


class ConfigurationError(BackupError):
    """Invalid command line or environment configuration."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
