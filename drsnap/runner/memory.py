"""
Scripted in-memory command runner for testing.

This module provides a deterministic CommandRunner for:
- Unit tests of the gateway, producer and transfer
- Dispatcher tests that must not reach the network

Invariants:
    - Nothing is ever executed
    - Every call is recorded in order
    - Rules are matched in registration order; the first match wins

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with CommandRunner protocol
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .base import CommandResult

logger = logging.getLogger(__name__)

Handler = Callable[[Tuple[str, ...]], CommandResult]


@dataclass
class CommandCall:
    """A recorded invocation."""
    args: Tuple[str, ...]
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def line(self) -> str:
        return " ".join(self.args)


@dataclass
class _Rule:
    pattern: str
    handler: Handler
    remaining: Optional[int] = None


class ScriptedRunner:
    """CommandRunner that answers from scripted rules.

    A rule matches when its pattern is a substring of the space-joined
    argument vector. Rules registered with ``times`` expire after that many
    matches, which makes "fail twice then succeed" scripts easy to express.

    Example:
        >>> runner = ScriptedRunner()
        >>> runner.respond("rsync", returncode=23, times=2)
        >>> runner.respond("rsync", returncode=0)
        >>> runner.run(["rsync", "-a", "src/", "dst"]).returncode
        23
    """

    def __init__(self, default: Optional[CommandResult] = None) -> None:
        self._rules: List[_Rule] = []
        self._default_returncode = default.returncode if default else 0
        self._default_stdout = default.stdout if default else ""
        self._default_stderr = default.stderr if default else ""
        self.calls: List[CommandCall] = []

    def respond(
        self,
        pattern: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        times: Optional[int] = None,
    ) -> None:
        """Register a canned response for commands containing ``pattern``."""

        def handler(args: Tuple[str, ...]) -> CommandResult:
            return CommandResult(args=args, returncode=returncode, stdout=stdout, stderr=stderr)

        self.on(pattern, handler, times=times)

    def on(self, pattern: str, handler: Handler, times: Optional[int] = None) -> None:
        """Register a callable producing the result (may have side effects)."""
        self._rules.append(_Rule(pattern=pattern, handler=handler, remaining=times))

    def run(
        self,
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        argv = tuple(str(a) for a in args)
        call = CommandCall(args=argv, env=dict(env or {}))
        self.calls.append(call)

        for rule in self._rules:
            if rule.remaining == 0 or rule.pattern not in call.line:
                continue
            if rule.remaining is not None:
                rule.remaining -= 1
            return rule.handler(argv)

        logger.debug(f"No scripted rule for: {call.line}")
        return CommandResult(
            args=argv,
            returncode=self._default_returncode,
            stdout=self._default_stdout,
            stderr=self._default_stderr,
        )

    def calls_matching(self, pattern: str) -> List[CommandCall]:
        """Recorded calls whose command line contains ``pattern``."""
        return [c for c in self.calls if pattern in c.line]
