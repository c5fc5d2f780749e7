"""
Base protocol and types for running external commands.

Every external tool (ssh, rsync, pg_basebackup) is invoked through a
CommandRunner so that components can be exercised without touching the
network or a live database.

Invariants:
    - run() blocks until the command finishes
    - run() never raises for a non-zero exit status; callers inspect
      CommandResult.returncode
    - stdout/stderr are decoded text

How to change safely:
    - Protocol changes require updating all implementations
    - Keep CommandResult fields additive
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command.

    Attributes:
        args: Argument vector that was executed
        returncode: Exit status (127 if the executable was not found)
        stdout: Captured standard output
        stderr: Captured standard error
    """

    args: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for diagnostics."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for command execution backends.

    Example:
        >>> result = runner.run(["ssh", "-p", "22", "postgres@dr", "date"])
        >>> if not result.ok:
        ...     print(result.stderr)
    """

    def run(
        self,
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """Run a command to completion and capture its output.

        Args:
            args: Argument vector, args[0] is the executable
            env: Extra environment variables merged over os.environ

        Returns:
            CommandResult with exit status and captured output
        """
        ...
