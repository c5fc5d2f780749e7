"""
SSH gateway to the DR host.

The RemoteGateway wraps every command executed on the DR host:
- connectivity check (remote `date`)
- directory listing, size/mtime lookup, delete and rename
- the ssh transport string used by rsync

Invariants:
    - All remote paths are shell-quoted
    - No retries at this layer; retry policy lives in the transfer
    - Failures surface as ConnectivityError or RemoteCommandError, except
      delete() which reports a missing target as NOT_FOUND
    - rename() never removes a published snapshot before its replacement
      is in place; the old copy waits under a hidden .<name>.trash name

How to change safely:
    - Keep ssh options identical between ssh_args() and ssh_command() so
      rsync and remote commands use the same transport
"""

from __future__ import annotations

import logging
import posixpath
import shlex
from enum import Enum
from typing import List, Tuple

from ..config import DrHostConfig
from ..errors import ConnectivityError, RemoteCommandError
from ..runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

# Exit status our remote delete script uses for a missing target
EXIT_MISSING = 100

PARTIAL_SUFFIX = ".partial"
TRASH_SUFFIX = ".trash"


def partial_name_for(name: str) -> str:
    """Hidden in-progress directory name for a snapshot."""
    return f".{name}{PARTIAL_SUFFIX}"


def trash_path_for(path: str) -> str:
    """Hidden sibling a published snapshot is moved to while it is replaced."""
    directory, name = posixpath.split(path)
    return posixpath.join(directory, f".{name}{TRASH_SUFFIX}")


def is_leftover_name(name: str) -> bool:
    """True for hidden partial or trash entries left by an interrupted push."""
    return name.startswith(".") and name.endswith((PARTIAL_SUFFIX, TRASH_SUFFIX))


class DeletionOutcome(Enum):
    """Result of a single remote delete."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class RemoteGateway:
    """Runs commands on the DR host over ssh.

    Attributes:
        config: DR host configuration
        runner: CommandRunner used for every ssh invocation

    Example:
        >>> gateway = RemoteGateway(config.dr_host, SubprocessRunner())
        >>> gateway.check_connectivity()
        >>> gateway.list_dir("/var/lib/postgresql/dr_snapshots/appx")
        ['2024-01-01_0300', '2024-01-02_0300']
    """

    def __init__(self, config: DrHostConfig, runner: CommandRunner) -> None:
        self.config = config
        self.runner = runner

    def ssh_options(self) -> List[str]:
        return [
            "-p",
            str(self.config.port),
            "-o",
            "LogLevel=error",
            "-o",
            "BatchMode=yes",
        ]

    def ssh_args(self) -> List[str]:
        """ssh argument vector up to and including user@host."""
        return [self.config.ssh_binary, *self.ssh_options(), self.config.address]

    def ssh_command(self) -> str:
        """Transport command for rsync's -e option."""
        return shlex.join([self.config.ssh_binary, *self.ssh_options()])

    def target(self, path: str) -> str:
        """rsync destination spec for a remote path."""
        return f"{self.config.address}:{path}"

    def execute(self, command: str) -> CommandResult:
        """Run a shell command line on the DR host."""
        return self.runner.run([*self.ssh_args(), command])

    def check_connectivity(self) -> None:
        """Verify the DR host accepts ssh and can run a command.

        Raises:
            ConnectivityError: If ssh fails or the remote command errors
        """
        logger.info("Checking SSH connection to the DR host ...")
        result = self.execute("date")
        if not result.ok:
            raise ConnectivityError(
                f"SSH connection check failed (exit {result.returncode}): "
                f"{result.stderr.strip()}",
                address=f"{self.config.address}:{self.config.port}",
            )
        logger.info("OK")

    def list_dir(self, path: str) -> List[str]:
        """List entry names of a remote directory in host order.

        Hidden entries (in-progress transfers) are not returned.

        Raises:
            RemoteCommandError: If the listing fails
        """
        return [name for name in self._ls(path) if not name.startswith(".")]

    def list_hidden(self, path: str) -> List[str]:
        """List only the hidden entry names of a remote directory.

        Raises:
            RemoteCommandError: If the listing fails
        """
        return [name for name in self._ls(path, "-A") if name.startswith(".")]

    def _ls(self, path: str, *flags: str) -> List[str]:
        result = self.execute(shlex.join(["ls", "-1", *flags, "--", path]))
        if not result.ok:
            raise RemoteCommandError(
                f"Could not list {path} on the DR host",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def size_and_mtime(self, path: str) -> Tuple[str, str]:
        """Human readable apparent size and last modification time.

        Returns:
            Tuple of (size, mtime) as printed by `du -sh --time`

        Raises:
            RemoteCommandError: If du fails or prints something unexpected
        """
        result = self.execute(f"du -sh --apparent-size -L --time -- {shlex.quote(path)}")
        if not result.ok:
            raise RemoteCommandError(
                f"Could not stat {path} on the DR host",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        fields = result.stdout.strip().split("\t")
        if len(fields) < 2:
            raise RemoteCommandError(
                f"Unexpected du output for {path}: {result.stdout!r}",
                returncode=result.returncode,
            )
        return fields[0], fields[1]

    def delete(self, path: str) -> DeletionOutcome:
        """Recursively delete a remote path.

        Returns:
            DELETED, or NOT_FOUND if the path did not exist

        Raises:
            RemoteCommandError: If the delete fails
        """
        quoted = shlex.quote(path)
        result = self.execute(
            f"if [ -e {quoted} ]; then rm -rf -- {quoted}; else exit {EXIT_MISSING}; fi"
        )
        if result.returncode == EXIT_MISSING:
            return DeletionOutcome.NOT_FOUND
        if not result.ok:
            raise RemoteCommandError(
                f"Could not delete {path} on the DR host",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return DeletionOutcome.DELETED

    def rename(self, source: str, destination: str) -> None:
        """Replace ``destination`` with ``source`` on the DR host.

        An existing ``destination`` is first moved aside to its hidden trash
        name, and only deleted once ``source`` is in place. If the final move
        fails the previous copy is moved back.

        Raises:
            RemoteCommandError: If the rename fails
        """
        src = shlex.quote(source)
        dst = shlex.quote(destination)
        trash = shlex.quote(trash_path_for(destination))
        result = self.execute(
            f"rm -rf -- {trash} && {{ [ ! -e {dst} ] || mv -- {dst} {trash}; }} && "
            f"if mv -- {src} {dst}; then rm -rf -- {trash}; "
            f"else {{ [ ! -e {trash} ] || mv -- {trash} {dst}; }}; exit 1; fi"
        )
        if not result.ok:
            raise RemoteCommandError(
                f"Could not rename {source} to {destination} on the DR host",
                returncode=result.returncode,
                stderr=result.stderr,
            )
