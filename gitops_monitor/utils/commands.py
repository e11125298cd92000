"""Structured external commands — argv builder and runner.

Commands are built as explicit argument lists and executed without a shell,
so values such as namespaces, selectors and ``--set`` pairs are never
re-parsed or interpolated.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

from gitops_monitor.errors import CommandError

logger = logging.getLogger(__name__)

OUTPUT_LIMIT = 5000


@dataclass(frozen=True)
class Command:
    """An external program plus its arguments."""

    program: str
    args: tuple[str, ...] = ()

    def arg(self, *values: str) -> Command:
        """Return a copy with positional arguments appended."""
        return Command(self.program, self.args + tuple(str(v) for v in values))

    def option(self, flag: str, value: str | int | None = None) -> Command:
        """Return a copy with ``flag`` (and its value, if given) appended."""
        if value is None:
            return self.arg(flag)
        return self.arg(flag, str(value))

    def option_if(self, condition: bool, flag: str) -> Command:
        return self.arg(flag) if condition else self

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def display(self) -> str:
        return shlex.join(self.argv)


@dataclass
class CommandResult:
    """Outcome of running a single command."""

    command: Command
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.timed_out and not self.error and self.exit_code == 0

    def describe(self) -> str:
        if self.timed_out:
            return f"'{self.command.display()}' timed out after {self.duration_ms}ms"
        if self.error:
            return f"'{self.command.display()}' could not run: {self.error}"
        output = (self.stderr or self.stdout).strip()
        return f"'{self.command.display()}' exited {self.exit_code}: {output}"


@dataclass
class CommandRunner:
    """Runs commands in a working directory with a default timeout."""

    cwd: Path | None = None
    timeout: float = 300.0
    env: dict[str, str] | None = field(default=None, repr=False)

    def run(self, command: Command, timeout: float | None = None) -> CommandResult:
        """Execute ``command`` and capture its output. Never raises."""
        limit = self.timeout if timeout is None else timeout
        logger.debug("running %s (timeout=%ss)", command.display(), limit)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                command.argv,
                cwd=self.cwd,
                env=self.env,
                capture_output=True,
                text=True,
                timeout=limit,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command,
                exit_code=-1,
                duration_ms=int(limit * 1000),
                timed_out=True,
            )
        except OSError as e:
            return CommandResult(command=command, exit_code=-1, error=str(e))

        return CommandResult(
            command=command,
            exit_code=proc.returncode,
            stdout=proc.stdout[:OUTPUT_LIMIT],
            stderr=proc.stderr[:OUTPUT_LIMIT],
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    def check(self, command: Command, timeout: float | None = None) -> CommandResult:
        """Like :meth:`run` but raise ``CommandError`` unless the command succeeded."""
        result = self.run(command, timeout=timeout)
        if not result.ok:
            raise CommandError(result.describe(), result=result)
        return result
