"""
External tool wrappers for binlog-backup.

This module provides:
- ToolRunner: blocking subprocess execution
- MysqlTools: mysqldump / mysqlbinlog / mysql / mysqlsh command builders

Invariants:
    - Tools never receive the password on the command line
    - A non-zero exit or missing output file is a ToolInvocationError
"""

from .mysql import SHELL_DUMP_MARKER, MysqlTools
from .runner import ToolResult, ToolRunner

__all__ = ["ToolRunner", "ToolResult", "MysqlTools", "SHELL_DUMP_MARKER"]
