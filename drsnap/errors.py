"""
Error types for drsnap.

This module defines all exception types raised by the backup components:
- DrSnapError: Base exception
- ConnectivityError: DR host unreachable over SSH
- RemoteCommandError: A remote command exited non-zero
- InventoryError: Remote snapshots could not be listed or counted
- StagingError: Local staging directory could not be reset
- PullError: pg_basebackup failed
- TransferError: rsync to the DR host failed on every attempt

Invariants:
    - All errors inherit from DrSnapError
    - Every DrSnapError is fatal for the invocation, except remote deletion
      failures during expiry which are recorded and skipped
    - Errors carry the external tool's exit status or output where available
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DrSnapError(Exception):
    """Base exception for all drsnap errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DRSNAP_ERROR"
        self.details = details or {}


class ConnectivityError(DrSnapError):
    """SSH connection check against the DR host failed."""

    def __init__(self, message: str, address: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONNECTIVITY_ERROR",
            details={"address": address},
        )
        self.address = address


class RemoteCommandError(DrSnapError):
    """A command run on the DR host exited non-zero.

    Raised when:
    - ls/du/rm/mv fails on the remote side
    - The SSH transport itself fails mid-command (exit status 255)
    """

    def __init__(
        self,
        message: str,
        returncode: int,
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            code="REMOTE_COMMAND_ERROR",
            details={"returncode": returncode, "stderr": stderr},
        )
        self.returncode = returncode
        self.stderr = stderr


class InventoryError(DrSnapError):
    """Remote snapshot set could not be determined."""

    def __init__(self, message: str, instance: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="INVENTORY_ERROR",
            details={"instance": instance},
        )
        self.instance = instance


class StagingError(DrSnapError):
    """Local staging directory could not be reset."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="STAGING_ERROR", details={"path": path})
        self.path = path


class PullError(DrSnapError):
    """pg_basebackup exited non-zero.

    Attributes:
        output: Combined stdout/stderr of the backup tool
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message, code="PULL_ERROR", details={"output": output})
        self.output = output


class TransferError(DrSnapError):
    """Snapshot could not be pushed to the DR host."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(
            message,
            code="TRANSFER_ERROR",
            details={"attempts": attempts},
        )
        self.attempts = attempts
