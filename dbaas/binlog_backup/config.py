"""
Configuration management for binlog-backup.

Connection credentials come from MYSQL_* environment variables (overridable
on the command line); tool paths and tuning knobs come from the environment
only. This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults except user and password
    - The password is never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep environment variable names stable, cron jobs depend on them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


class MysqlSettings(BaseSettings):
    """MySQL connection settings loaded from MYSQL_* environment variables."""

    user: str = Field(default="", description="MySQL user")
    password: str = Field(default="", description="MySQL password")
    host: str = Field(default="localhost", description="MySQL host")
    port: int = Field(default=3306, description="MySQL port")

    model_config = {"env_prefix": "MYSQL_"}

    @property
    def address(self) -> str:
        """host:port of the server."""
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ToolsConfig:
    """Paths of the external MySQL client binaries.

    Attributes:
        mysqldump: Snapshot tool
        mysqlbinlog: Binlog export tool
        mysql: Restore client
        mysqlsh: MySQL Shell (whole-instance dump/load)
    """

    mysqldump: str = "mysqldump"
    mysqlbinlog: str = "mysqlbinlog"
    mysql: str = "mysql"
    mysqlsh: str = "mysqlsh"

    @classmethod
    def from_env(cls) -> ToolsConfig:
        """Load configuration from environment variables."""
        return cls(
            mysqldump=os.getenv("MYSQLDUMP_BIN", "mysqldump"),
            mysqlbinlog=os.getenv("MYSQLBINLOG_BIN", "mysqlbinlog"),
            mysql=os.getenv("MYSQL_BIN", "mysql"),
            mysqlsh=os.getenv("MYSQLSH_BIN", "mysqlsh"),
        )


@dataclass(frozen=True)
class ScanConfig:
    """Snapshot header scan configuration.

    Attributes:
        max_lines: Lines of the dump searched for the binlog coordinate
    """

    max_lines: int = 300

    @classmethod
    def from_env(cls) -> ScanConfig:
        """Load configuration from environment variables."""
        return cls(max_lines=int(os.getenv("SNAPSHOT_SCAN_MAX_LINES", "300")))


@dataclass(frozen=True)
class VersionConfig:
    """Server version requirements.

    Attributes:
        min_server_version: Oldest supported server version
    """

    min_server_version: str = "8.0.0"

    @classmethod
    def from_env(cls) -> VersionConfig:
        """Load configuration from environment variables."""
        return cls(min_server_version=os.getenv("MIN_SERVER_VERSION", "8.0.0"))


@dataclass(frozen=True)
class LockConfig:
    """Destination lock configuration.

    Attributes:
        timeout_seconds: How long to wait for a busy destination (0 = fail at once)
        poll_seconds: Delay between lock attempts
    """

    timeout_seconds: float = 0.0
    poll_seconds: float = 0.5

    @classmethod
    def from_env(cls) -> LockConfig:
        """Load configuration from environment variables."""
        return cls(
            timeout_seconds=float(os.getenv("BACKUP_LOCK_TIMEOUT_SECONDS", "0")),
            poll_seconds=float(os.getenv("BACKUP_LOCK_POLL_SECONDS", "0.5")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )


@dataclass
class BackupConfig:
    """Complete backup configuration, minus connection credentials.

    Attributes:
        tools: External binary paths
        scan: Snapshot scan bound
        version: Server version requirements
        lock: Destination lock settings
        observability: Logging settings
    """

    tools: ToolsConfig = field(default_factory=ToolsConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    version: VersionConfig = field(default_factory=VersionConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            tools=ToolsConfig.from_env(),
            scan=ScanConfig.from_env(),
            version=VersionConfig.from_env(),
            lock=LockConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.scan.max_lines <= 0:
            raise ValueError("SNAPSHOT_SCAN_MAX_LINES must be positive")
        if self.lock.timeout_seconds < 0:
            raise ValueError("BACKUP_LOCK_TIMEOUT_SECONDS must not be negative")
        if self.lock.poll_seconds <= 0:
            raise ValueError("BACKUP_LOCK_POLL_SECONDS must be positive")
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )

    def log_config(self) -> None:
        """Log configuration (no secrets live here)."""
        logger.debug(
            "Backup configuration loaded",
            extra={
                "mysqldump": self.tools.mysqldump,
                "mysqlbinlog": self.tools.mysqlbinlog,
                "mysql": self.tools.mysql,
                "mysqlsh": self.tools.mysqlsh,
                "scan_max_lines": self.scan.max_lines,
                "min_server_version": self.version.min_server_version,
                "lock_timeout_seconds": self.lock.timeout_seconds,
                "log_level": self.observability.log_level,
            },
        )
