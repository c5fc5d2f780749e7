"""
subprocess-backed command runner.

This is the production CommandRunner: it executes commands on the local host
and waits for them. There is no timeout; an operator interrupts a hung run.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping, Optional, Sequence

from .base import CommandResult

logger = logging.getLogger(__name__)

# Shell conventions for "command not found" and "cannot execute"
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


class SubprocessRunner:
    """Runs commands with subprocess.run and captures text output."""

    def run(
        self,
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        argv = tuple(str(a) for a in args)
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        logger.debug("Running command", extra={"argv": argv})

        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                env=full_env,
                check=False,
            )
        except FileNotFoundError as e:
            logger.debug(f"Executable not found: {argv[0]}")
            return CommandResult(args=argv, returncode=EXIT_NOT_FOUND, stderr=str(e))
        except OSError as e:
            logger.debug(f"Could not execute {argv[0]}: {e}")
            return CommandResult(args=argv, returncode=EXIT_NOT_EXECUTABLE, stderr=str(e))

        return CommandResult(
            args=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
