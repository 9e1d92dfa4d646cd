"""
Value objects describing one external process call and its outcome.

A `ProcessInvocation` fully determines what the `ProcessRunner` launches: the
command, its ordered arguments, environment overrides, working directory and
timeout. It is immutable; every `with_*` call returns a new invocation, which
makes it safe to build tool-specific commands step by step.
"""
import os
import shlex
import subprocess
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Tuple

from ..config.audio import DEFAULT_PROCESS_TIMEOUT


class ProcessStatus(Enum):
    """How a process call ended."""

    OK = "ok"  # Started and ran to natural completion (any exit code).
    FAILED = "failed"  # Could not be started at all.
    TIMED_OUT = "timed_out"  # Killed, together with its children, after the timeout.


@dataclass(frozen=True)
class ProcessInvocation:
    """
    Everything needed to launch one external command.

    Attributes:
        command: Executable name or path.
        arguments: Ordered command-line arguments (without the command itself).
        env_overrides: (name, value) pairs set on top of the inherited environment,
            one pair per name.
        working_dir: Directory the process starts in; None keeps the current one.
        timeout: Seconds after which the process tree is killed.
    """

    command: str
    arguments: Tuple[str, ...] = ()
    env_overrides: Tuple[Tuple[str, str], ...] = ()
    working_dir: Optional[Path] = None
    timeout: float = DEFAULT_PROCESS_TIMEOUT

    def __post_init__(self):
        if not self.command or not self.command.strip():
            raise ValueError("ProcessInvocation requires a non-blank command.")
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}.")

    @classmethod
    def create(cls, command: str) -> "ProcessInvocation":
        return cls(command=command)

    def with_argument(self, argument: str) -> "ProcessInvocation":
        if argument is None or not str(argument).strip():
            raise ValueError("Arguments must be non-blank strings.")
        return replace(self, arguments=self.arguments + (str(argument),))

    def with_arguments(self, arguments: Iterable[str]) -> "ProcessInvocation":
        invocation = self
        for argument in arguments:
            invocation = invocation.with_argument(argument)
        return invocation

    def with_env(self, name: str, value: str) -> "ProcessInvocation":
        """Adds an environment override. Setting the same name twice keeps the last value."""
        if not name or not name.strip():
            raise ValueError("Environment variable names must be non-blank.")
        kept = tuple((key, old) for key, old in self.env_overrides if key != name)
        return replace(self, env_overrides=kept + ((name, str(value)),))

    def with_timeout(self, seconds: float) -> "ProcessInvocation":
        return replace(self, timeout=float(seconds))

    def with_working_dir(self, working_dir: Path) -> "ProcessInvocation":
        working_dir = Path(working_dir)
        if not working_dir.is_dir():
            raise NotADirectoryError(f"Working dir does not exist: {working_dir.resolve()}")
        return replace(self, working_dir=working_dir.resolve())

    @property
    def command_line(self) -> list:
        """The full argument vector, command first."""
        return [self.command, *self.arguments]

    def display(self) -> str:
        """A copy-pasteable rendering of the command line for log messages."""
        if os.name == "nt":
            return subprocess.list2cmdline(self.command_line)
        return shlex.join(self.command_line)


@dataclass(frozen=True)
class ProcessOutcome:
    """
    The result of one `ProcessRunner.run()` call.

    Attributes:
        status: See `ProcessStatus`.
        stdout: Captured stdout lines, trimmed, in arrival order.
        stderr: Captured stderr lines, trimmed, in arrival order. On FAILED and
            TIMED_OUT this also holds a synthetic line describing the problem.
        return_code: Exit code of a process that completed; None if it never
            started or had to be killed.
    """

    status: ProcessStatus
    stdout: Tuple[str, ...] = ()
    stderr: Tuple[str, ...] = ()
    return_code: Optional[int] = 0

    @property
    def succeeded(self) -> bool:
        """True when the process ran to completion and exited with code 0."""
        return self.status is ProcessStatus.OK and self.return_code == 0

    def combined_output(self) -> str:
        return "\n".join(self.stdout + self.stderr)
