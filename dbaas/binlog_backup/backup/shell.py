"""
MySQL Shell whole-instance backups.

The alternative tool family: util.dumpInstance() writes a directory of
chunked table files plus metadata, and util.loadDump() loads it back.
There is no binlog chain in this mode, so there is no position record and
no incremental action. util.dumpInstance() refuses a non-empty directory,
so this mode takes no destination lock (the lock file would be in the way).
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import RestoreError
from ..tools.mysql import SHELL_DUMP_MARKER, MysqlTools
from .artifacts import purge_destination

logger = logging.getLogger(__name__)


class ShellDumpOrchestrator:
    """Dumps the whole instance into an emptied destination."""

    def __init__(self, tools: MysqlTools) -> None:
        self.tools = tools

    def run(self, destination: str | Path, primary: bool = False) -> Path:
        """Dump the instance.

        Args:
            destination: Target directory (created if missing, then emptied)
            primary: Read from the cluster primary instead of a secondary

        Returns:
            Path of the dump metadata file

        Raises:
            ToolInvocationError: If mysqlsh fails
        """
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        purge_destination(destination, keep_lock=False)
        logger.info(f"mysql shell backup running into {destination}")
        self.tools.shell_dump_instance(destination, primary=primary)

        logger.info("mysql shell backup succeed")
        return destination / SHELL_DUMP_MARKER


class ShellLoadOrchestrator:
    """Loads a util.dumpInstance() directory back into the server."""

    def __init__(self, tools: MysqlTools) -> None:
        self.tools = tools

    def run(self, destination: str | Path, reset_progress: bool = False) -> None:
        """Load the dump.

        Args:
            destination: Directory written by ShellDumpOrchestrator
            reset_progress: Ignore the load progress of an earlier attempt

        Raises:
            RestoreError: If mysqlsh fails
        """
        result = self.tools.shell_load_dump(destination, reset_progress=reset_progress)
        if not result.ok:
            raise RestoreError(str(destination), returncode=result.returncode, stderr=result.stderr.strip() or None)
        logger.info("mysql shell recover succeed")
