"""
Command builders for the MySQL client tool family.

MysqlTools turns backup intents (dump everything, export one binlog file,
replay an artifact, dump/load an instance with MySQL Shell) into concrete
command lines and checks their outcome.

Credentials:
    - mysqldump, mysqlbinlog and mysql read the password from MYSQL_PWD
    - mysqlsh reads it from stdin (--passwords-from-stdin)
    - The password is never part of argv, so it never shows up in ps

How to change safely:
    - Keep dump options compatible with --source-data=2 header parsing
    - Verify option names against every supported client version
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..binlog.base import format_version, parse_version
from ..config import MysqlSettings, ToolsConfig
from ..errors import ToolInvocationError
from .runner import ToolResult, ToolRunner

logger = logging.getLogger(__name__)

SHELL_DUMP_MARKER = "@.json"


class MysqlTools:
    """Facade over mysqldump, mysqlbinlog, mysql and mysqlsh.

    Attributes:
        settings: Connection settings shared with the catalog
        tools: Binary paths
        runner: Subprocess runner

    Example:
        >>> tools = MysqlTools(settings, ToolsConfig(), ToolRunner())
        >>> tools.dump_all("/backup/20240721101500_full_backup.sql", ["--set-gtid-purged=OFF"])
    """

    def __init__(
        self,
        settings: MysqlSettings,
        tools: Optional[ToolsConfig] = None,
        runner: Optional[ToolRunner] = None,
    ) -> None:
        self.settings = settings
        self.tools = tools or ToolsConfig()
        self.runner = runner or ToolRunner()

    def _conn_args(self) -> List[str]:
        return [
            f"--host={self.settings.host}",
            f"--port={self.settings.port}",
            f"--user={self.settings.user}",
        ]

    def _password_env(self) -> Dict[str, str]:
        return {"MYSQL_PWD": self.settings.password}

    def dump_version(self) -> str:
        """Return the x.y.z version of mysqldump.

        Raises:
            ToolInvocationError: If mysqldump fails or prints no version
        """
        result = self.runner.run([self.tools.mysqldump, "-V"])
        if not result.ok:
            raise ToolInvocationError(
                "Invalid mysqldump version",
                tool="mysqldump",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        try:
            return format_version(parse_version(result.stdout))
        except ValueError as e:
            raise ToolInvocationError(
                f"No mysqldump version found in {result.stdout.strip()!r}",
                tool="mysqldump",
                returncode=result.returncode,
            ) from e

    def dump_all(self, output_path: str | Path, extra_args: Sequence[str] = ()) -> None:
        """Write a consistent dump of every database to output_path.

        Raises:
            ToolInvocationError: On non-zero exit or missing output file
        """
        args = [
            self.tools.mysqldump,
            *self._conn_args(),
            "--output-as-version=SERVER",
            "--single-transaction",
            "--quick",
            "--source-data=2",
            "--all-databases",
            *extra_args,
        ]
        result = self.runner.run(args, stdout_path=output_path, env=self._password_env())
        self._check_output("mysqldump", result, output_path, "Failed to create full backup")

    def export_segment(
        self,
        segment: str,
        output_path: str | Path,
        start_position: Optional[int] = None,
        stop_position: Optional[int] = None,
    ) -> None:
        """Export one binlog file (or a slice of it) from the server.

        Args:
            segment: Binlog file name
            output_path: Artifact to write
            start_position: First byte to export, None for the file start
            stop_position: Byte to stop at, None for the file end

        Raises:
            ToolInvocationError: On non-zero exit or missing output file
        """
        args = [self.tools.mysqlbinlog, *self._conn_args(), "--read-from-remote-server"]
        if start_position is not None:
            args.append(f"--start-position={start_position}")
        if stop_position is not None:
            args.append(f"--stop-position={stop_position}")
        args.append(segment)

        result = self.runner.run(args, stdout_path=output_path, env=self._password_env())
        self._check_output(
            "mysqlbinlog", result, output_path, f"Incremental backup of {segment} failed"
        )

    def restore(self, artifact: str | Path) -> ToolResult:
        """Replay an SQL artifact through the mysql client."""
        args = [self.tools.mysql, *self._conn_args()]
        return self.runner.run(args, stdin_path=artifact, env=self._password_env())

    def shell_dump_instance(self, directory: str | Path, primary: bool = False) -> None:
        """Dump the whole instance with util.dumpInstance().

        Args:
            directory: Empty target directory
            primary: Read from the cluster primary instead of a secondary

        Raises:
            ToolInvocationError: On non-zero exit or missing dump metadata
        """
        script = f"util.dumpInstance({json.dumps(str(directory))})"
        result = self._run_shell(script, primary=primary)
        marker = Path(directory) / SHELL_DUMP_MARKER
        self._check_output("mysqlsh", result, marker, "mysql shell backup failed")

    def shell_load_dump(self, directory: str | Path, reset_progress: bool = False) -> ToolResult:
        """Load a util.dumpInstance() directory with util.loadDump()."""
        options = json.dumps({"resetProgress": reset_progress})
        script = f"util.loadDump({json.dumps(str(directory))}, {options})"
        return self._run_shell(script, primary=True)

    def _run_shell(self, script: str, primary: bool) -> ToolResult:
        args = [
            self.tools.mysqlsh,
            "--cluster",
            "--redirect-primary" if primary else "--redirect-secondary",
            f"--host={self.settings.host}",
            f"--port={self.settings.port}",
            f"--user={self.settings.user}",
            "--passwords-from-stdin",
            "--js",
            "-e",
            script,
        ]
        return self.runner.run(args, input_text=self.settings.password + "\n")

    @staticmethod
    def _check_output(tool: str, result: ToolResult, output_path: str | Path, message: str) -> None:
        if not result.ok or not Path(output_path).is_file():
            raise ToolInvocationError(
                message,
                tool=tool,
                returncode=result.returncode,
                output_path=str(output_path),
                stderr=result.stderr.strip() or None,
            )
