"""
Subprocess runner for external MySQL tools.

Every external program goes through ToolRunner.run() so that tests can
substitute a recording fake and production code never builds shell strings.

Invariants:
    - Commands are argument lists, never passed through a shell
    - Calls block until the child exits; output is read afterwards
    - Extra environment is merged over os.environ, never replaces it
"""

from __future__ import annotations

import logging
import os
import subprocess
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import ToolInvocationError

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Outcome of one external tool invocation.

    Attributes:
        args: Command that was run
        returncode: Exit status
        stdout: Captured stdout ("" when redirected to a file)
        stderr: Captured stderr
    """

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolRunner:
    """Runs external tools with subprocess.

    Example:
        >>> runner = ToolRunner()
        >>> result = runner.run(["mysqldump", "-V"])
        >>> result.ok
        True
    """

    def run(
        self,
        args: Sequence[str],
        stdin_path: Optional[str | Path] = None,
        stdout_path: Optional[str | Path] = None,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ToolResult:
        """Run a command to completion.

        Args:
            args: Program and arguments
            stdin_path: File fed to the child's stdin
            stdout_path: File receiving the child's stdout
            input_text: Text fed to stdin (exclusive with stdin_path)
            env: Extra environment variables for the child

        Returns:
            ToolResult with the exit status

        Raises:
            ToolInvocationError: If the program cannot be started
        """
        if stdin_path is not None and input_text is not None:
            raise ValueError("stdin_path and input_text are mutually exclusive")

        child_env = dict(os.environ)
        if env:
            child_env.update(env)

        logger.debug(f"Running {args[0]}", extra={"argv": list(args[1:])})

        with ExitStack() as stack:
            stdin = stack.enter_context(open(stdin_path, "rb")) if stdin_path else None
            stdout = stack.enter_context(open(stdout_path, "wb")) if stdout_path else subprocess.PIPE
            try:
                completed = subprocess.run(
                    list(args),
                    stdin=stdin,
                    stdout=stdout,
                    stderr=subprocess.PIPE,
                    input=input_text.encode("utf-8") if input_text is not None else None,
                    env=child_env,
                    check=False,
                )
            except FileNotFoundError as e:
                raise ToolInvocationError(
                    f"{args[0]} not found: {e}", tool=str(args[0])
                ) from e

        return ToolResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout.decode("utf-8", errors="replace") if completed.stdout else "",
            stderr=completed.stderr.decode("utf-8", errors="replace") if completed.stderr else "",
        )
