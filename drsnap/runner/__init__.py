"""
Command runner abstraction for drsnap.

This module provides pluggable command execution:
- SubprocessRunner (production)
- ScriptedRunner (testing)

Invariants:
    - Components never call subprocess directly
    - A non-zero exit status is data, not an exception
"""

from .base import CommandResult, CommandRunner
from .local import SubprocessRunner
from .memory import CommandCall, ScriptedRunner

__all__ = [
    # Protocol and types
    "CommandRunner",
    "CommandResult",
    # Implementations
    "SubprocessRunner",
    "ScriptedRunner",
    "CommandCall",
]
