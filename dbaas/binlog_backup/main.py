"""
binlog-backup - command line entry point.

Usage:
    # mysqldump full backup into <dir>/<YYYYmmdd>/
    binlog-backup --dir=/backup --action=full-archive --mode=dump --set-gtid-purged=OFF

    # binlog incremental into the newest <dir>/<YYYYmmdd>/
    binlog-backup --dir=/backup --action=inc-archive --skip-full-unready

    # replay full + incrementals
    binlog-backup --dir=/backup/20240721 --action=recover

    # MySQL Shell full backup / recover
    binlog-backup --dir=/backup --action=full-archive --mode=mysqlsh
    binlog-backup --dir=/backup/20240721 --mode=mysqlsh --action=recover --reset-progress

Credentials come from --user/--password/--host/--port or MYSQL_USER,
MYSQL_PASSWORD, MYSQL_HOST, MYSQL_PORT. Exit status is 0 on success or a
graceful no-op and 1 on any failure.

Invariants:
    - One server connection per run, closed on exit
    - Only this module turns errors into exit codes
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import json_log_formatter
from pydantic import ValidationError

from .backup import (
    FullBackupOrchestrator,
    IncrementalBackupOrchestrator,
    IncrementalStatus,
    ShellDumpOrchestrator,
    ShellLoadOrchestrator,
    archive_dir,
    latest_archive_dir,
)
from .binlog import LogCatalog, MysqlServer
from .config import BackupConfig, MysqlSettings
from .errors import BackupError, ConfigurationError
from .restore import RecoveryOrchestrator
from .snapshot import SnapshotCoordinateExtractor
from .tools import MysqlTools, ToolRunner

logger = logging.getLogger(__name__)

ACTIONS = ("full", "full-archive", "inc", "inc-archive", "recover")
MODES = ("dump", "mysqlsh")


def setup_logging(config: BackupConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Backup configuration
        verbose: Force DEBUG level
    """
    level = logging.DEBUG if verbose else getattr(
        logging, config.observability.log_level.upper(), logging.INFO
    )

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("pymysql").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="binlog-backup",
        description="Full and binlog-incremental MySQL backups, and recovery",
    )
    parser.add_argument("--dir", required=True, help="Backup directory (must exist)")
    parser.add_argument(
        "--action",
        choices=ACTIONS,
        default="full",
        help="full | full-archive (into dir/YYYYmmdd) | inc | inc-archive "
        "(newest dir/YYYYmmdd) | recover",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="dump",
        help="dump: mysqldump + mysqlbinlog; mysqlsh: MySQL Shell dump/load",
    )
    parser.add_argument(
        "--skip-full-unready",
        action="store_true",
        help="Exit successfully when no full backup exists yet (inc actions)",
    )
    parser.add_argument(
        "--set-gtid-purged",
        default="OFF",
        help="mysqldump --set-gtid-purged value for full backups (default: OFF)",
    )
    parser.add_argument(
        "--redirect-primary",
        action="store_true",
        help="Dump from the cluster primary (mode=mysqlsh)",
    )
    parser.add_argument(
        "--reset-progress",
        action="store_true",
        help="Reset load progress on recover (mode=mysqlsh)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail recovery when the directory holds several full backups",
    )
    parser.add_argument("--user", help="MySQL user (env MYSQL_USER)")
    parser.add_argument("--password", help="MySQL password (env MYSQL_PASSWORD)")
    parser.add_argument("--host", help="MySQL host (env MYSQL_HOST, default localhost)")
    parser.add_argument("--port", type=int, help="MySQL port (env MYSQL_PORT, default 3306)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def load_settings(args: argparse.Namespace) -> MysqlSettings:
    """Merge command line credentials over MYSQL_* environment variables.

    Raises:
        ConfigurationError: If user or password is missing or a value is invalid
    """
    overrides = {
        name: getattr(args, name)
        for name in ("user", "password", "host", "port")
        if getattr(args, name)
    }
    try:
        settings = MysqlSettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid mysql settings: {e}") from e

    if not settings.user:
        raise ConfigurationError("Missing mysql user")
    if not settings.password:
        raise ConfigurationError("Missing mysql password")
    return settings


def resolve_destination(root: str | Path, action: str, now: Optional[datetime] = None) -> Path:
    """Map --dir and --action to the destination directory.

    Raises:
        ConfigurationError: If --dir is not a directory, or inc-archive finds
            no dated archive directory
    """
    root = Path(root)
    if not root.is_dir():
        raise ConfigurationError(f"Invalid backup directory: {root}")

    if action == "full-archive":
        return archive_dir(root, now)
    if action == "inc-archive":
        destination = latest_archive_dir(root)
        logger.info(f"Found archive dir {destination}")
        return destination
    return root


def run(
    args: argparse.Namespace,
    config: BackupConfig,
    catalog: LogCatalog,
    tools: MysqlTools,
) -> str:
    """Dispatch one action.

    Returns:
        One-line summary for the operator

    Raises:
        BackupError: On any failure
    """
    if args.mode == "mysqlsh" and args.action.startswith("inc"):
        raise ConfigurationError("Incremental backups are not supported with mode=mysqlsh")

    destination = resolve_destination(args.dir, args.action)

    if args.mode == "mysqlsh":
        if args.action == "recover":
            ShellLoadOrchestrator(tools).run(destination, reset_progress=args.reset_progress)
            return f"mysql shell recover succeed from {destination}"
        ShellDumpOrchestrator(tools).run(destination, primary=args.redirect_primary)
        return f"mysql shell backup succeed into {destination}"

    if args.action.startswith("full"):
        result = FullBackupOrchestrator(
            catalog,
            tools,
            extractor=SnapshotCoordinateExtractor(config.scan.max_lines),
            min_server_version=config.version.min_server_version,
            lock=config.lock,
        ).run(destination, [f"--set-gtid-purged={args.set_gtid_purged}"])
        return f"Full backup succeed: {result.artifact.name}, binlog position {result.coordinate}"

    if args.action.startswith("inc"):
        inc = IncrementalBackupOrchestrator(catalog, tools, lock=config.lock).run(
            destination, skip_if_unready=args.skip_full_unready
        )
        if inc.status == IncrementalStatus.SKIPPED_NOT_READY:
            return "Skip, full backup unready. Try again later"
        if inc.status == IncrementalStatus.UP_TO_DATE:
            return f"No binlog to back up, position {inc.coordinate}"
        return (
            f"Incremental backup done: {len(inc.artifacts)} file(s), "
            f"binlog position {inc.start} -> {inc.coordinate}"
        )

    recovery = RecoveryOrchestrator(tools, strict=args.strict).run(destination)
    return (
        f"Recover success: {recovery.full.name} + "
        f"{len(recovery.incrementals)} incremental file(s)"
    )


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = BackupConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config, verbose=args.verbose)
    config.log_config()

    server: Optional[MysqlServer] = None
    try:
        settings = load_settings(args)
        server = MysqlServer(settings)
        tools = MysqlTools(settings, config.tools, ToolRunner())
        summary = run(args, config, server, tools)
    except BackupError as e:
        logger.error(f"{e.code}: {e.message}", extra={"details": e.details})
        print(f"Failed: {e.message}")
        sys.exit(1)
    finally:
        if server is not None:
            server.close()

    print(summary)
    sys.exit(0)


if __name__ == "__main__":
    main()
