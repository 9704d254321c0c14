"""
Shared fixtures for binlog-backup tests.

FakeToolRunner stands in for subprocess: it records every command and
writes plausible output files, so the real MysqlTools command builders
are exercised without any MySQL client installed.
"""

import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from dbaas.binlog_backup.binlog.memory import InMemoryLogCatalog
from dbaas.binlog_backup.config import MysqlSettings, ToolsConfig
from dbaas.binlog_backup.tools.mysql import MysqlTools
from dbaas.binlog_backup.tools.runner import ToolResult

DUMP_HEADER = (
    "-- MySQL dump 10.13  Distrib 8.0.36, for Linux (x86_64)\n"
    "--\n"
    "-- Position to start replication or point-in-time recovery from\n"
    "--\n"
    "-- CHANGE REPLICATION SOURCE TO SOURCE_LOG_FILE='{segment}', SOURCE_LOG_POS={offset};\n"
    "\n"
    "CREATE DATABASE IF NOT EXISTS `app`;\n"
)


@dataclass
class FakeCall:
    args: List[str]
    stdin_path: Optional[str] = None
    stdout_path: Optional[str] = None
    input_text: Optional[str] = None
    env: Optional[Dict[str, str]] = None

    @property
    def program(self) -> str:
        return Path(self.args[0]).name


class FakeToolRunner:
    """Records commands and imitates the MySQL client tools."""

    def __init__(self, version: str = "8.0.36", dump_segment: str = "binlog.000001", dump_offset: int = 157):
        self.version = version
        self.dump_body = DUMP_HEADER.format(segment=dump_segment, offset=dump_offset)
        self.calls: List[FakeCall] = []
        self._failures: List[tuple] = []
        self._raises: List[tuple] = []

    def fail_when(self, predicate: Callable[[FakeCall], bool], returncode: int = 1, write_output: bool = False):
        """Make matching calls exit with returncode."""
        self._failures.append((predicate, returncode, write_output))

    def raise_when(self, predicate: Callable[[FakeCall], bool], exc: Exception, write_output: bool = False):
        """Make matching calls raise exc, as ToolRunner does when it cannot run."""
        self._raises.append((predicate, exc, write_output))

    def run(self, args, stdin_path=None, stdout_path=None, input_text=None, env=None):
        call = FakeCall(
            args=list(args),
            stdin_path=str(stdin_path) if stdin_path else None,
            stdout_path=str(stdout_path) if stdout_path else None,
            input_text=input_text,
            env=env,
        )
        self.calls.append(call)

        for predicate, exc, write_output in self._raises:
            if predicate(call):
                if write_output and stdout_path:
                    Path(stdout_path).write_text("partial\n")
                raise exc

        for predicate, returncode, write_output in self._failures:
            if predicate(call):
                if write_output and stdout_path:
                    Path(stdout_path).write_text("partial\n")
                return ToolResult(args=call.args, returncode=returncode, stderr="simulated failure")

        if call.program == "mysqldump" and "-V" in call.args:
            return ToolResult(
                args=call.args,
                returncode=0,
                stdout=f"mysqldump  Ver {self.version} for Linux on x86_64 (MySQL Community Server - GPL)\n",
            )

        if stdout_path:
            if call.program == "mysqldump":
                Path(stdout_path).write_text(self.dump_body)
            else:
                Path(stdout_path).write_text("# " + " ".join(call.args[1:]) + "\n")

        if call.program == "mysqlsh" and "dumpInstance" in call.args[-1]:
            target = call.args[-1].split('"')[1]
            Path(target, "@.json").write_text("{}")

        return ToolResult(args=call.args, returncode=0)

    # Inspection helpers

    def calls_to(self, program: str) -> List[FakeCall]:
        return [c for c in self.calls if c.program == program]

    def exports(self) -> List[tuple]:
        """(segment, start, stop) for every mysqlbinlog call, in call order."""
        result = []
        for call in self.calls_to("mysqlbinlog"):
            start = stop = None
            for arg in call.args:
                if arg.startswith("--start-position="):
                    start = int(arg.split("=", 1)[1])
                elif arg.startswith("--stop-position="):
                    stop = int(arg.split("=", 1)[1])
            result.append((call.args[-1], start, stop))
        return result

    def restored(self) -> List[str]:
        """File names fed to the mysql client, in call order."""
        return [Path(c.stdin_path).name for c in self.calls_to("mysql")]


class TickingClock:
    """datetime.now() replacement advancing one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 7, 21, 10, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


@pytest.fixture
def destination():
    """Temporary backup destination."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings():
    return MysqlSettings(user="backup", password="s3cret", host="db.internal", port=3307)


@pytest.fixture
def runner():
    return FakeToolRunner()


@pytest.fixture
def tools(settings, runner):
    return MysqlTools(settings, ToolsConfig(), runner)


@pytest.fixture
def catalog():
    return InMemoryLogCatalog(["binlog.000001"], tip_offset=157)


@pytest.fixture
def clock():
    return TickingClock()
