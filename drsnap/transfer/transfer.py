"""
Snapshot transfer to the DR host.

The SnapshotTransfer pushes the staging directory with rsync over the same
ssh transport the gateway uses:

    rsync -a -q -e "ssh -p <port> ..." <staging>/ user@host:<dr_path>/<instance>/.<name>.partial

and publishes it by renaming the hidden partial directory to <name> once
rsync succeeds. <name> is the staging directory's mtime as YYYY-MM-DD_HHMM
in local time, so pushing the same staged snapshot twice re-targets the same
name.

Retry policy:
    Up to `retries` rsync attempts. After a failed attempt sleep
    `backoff_seconds` and try again; no sleep after the last attempt.
    Re-attempts sync into the same partial directory so rsync only sends
    what is missing.

Invariants:
    - The inventory never sees a partially transferred snapshot
    - Only the staged snapshot's partial directory survives expiry; partials
      of older attempts are reaped so they cannot accumulate
    - Exhausting all attempts raises TransferError
    - The transfer is at-least-once; a re-push replaces the same name

How to change safely:
    - Keep SNAPSHOT_NAME_FORMAT zero-padded and sortable; expiry depends on it
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ..config import BackupConfig
from ..errors import RemoteCommandError, TransferError
from ..remote import RemoteGateway, partial_name_for
from ..runner import CommandRunner

logger = logging.getLogger(__name__)

SNAPSHOT_NAME_FORMAT = "%Y-%m-%d_%H%M"


def snapshot_name_for(mtime: float) -> str:
    """Snapshot directory name for a local modification timestamp."""
    return datetime.fromtimestamp(mtime).strftime(SNAPSHOT_NAME_FORMAT)


@dataclass(frozen=True)
class TransferResult:
    """Result of a successful transfer.

    Attributes:
        name: Snapshot name on the DR host
        remote_path: Full path of the published snapshot
        attempts: rsync attempts used (1 = first try succeeded)
        duration_seconds: Wall-clock time including backoff sleeps
    """

    name: str
    remote_path: str
    attempts: int
    duration_seconds: float


class SnapshotTransfer:
    """Pushes the staged snapshot to the DR host with bounded retries.

    Attributes:
        config: Backup configuration
        gateway: RemoteGateway for the transport and publish step
        runner: CommandRunner used to invoke rsync
        sleep: Function used for backoff (injectable for tests)

    Example:
        >>> transfer = SnapshotTransfer(config, gateway, runner)
        >>> result = transfer.transfer()
        >>> print(result.remote_path)
    """

    def __init__(
        self,
        config: BackupConfig,
        gateway: RemoteGateway,
        runner: CommandRunner,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.runner = runner
        self.sleep = sleep

    @property
    def staging_path(self) -> Path:
        return Path(self.config.staging.path)

    def snapshot_name(self) -> str:
        """Name of the staged snapshot, derived from the staging mtime.

        Raises:
            TransferError: If there is no staged snapshot or its mtime is
                unavailable
        """
        path = self.staging_path
        if not path.is_dir():
            raise TransferError(f"Could not find a snapshot at {path}. abort")
        try:
            if not any(path.iterdir()):
                raise TransferError(f"Snapshot directory {path} is empty. abort")
            mtime = path.stat().st_mtime
        except OSError as e:
            raise TransferError(
                f"Could not determine snapshot last modification time: {e}. abort"
            ) from e
        return snapshot_name_for(mtime)

    def partial_name(self) -> Optional[str]:
        """Hidden partial directory name of the staged snapshot.

        Returns:
            The name, or None if nothing usable is staged
        """
        try:
            return partial_name_for(self.snapshot_name())
        except TransferError as e:
            logger.debug(f"No staged snapshot: {e.message}")
            return None

    def build_command(self, remote_path: str) -> List[str]:
        """rsync argument vector pushing staging contents to ``remote_path``."""
        return [
            self.config.dr_host.rsync_binary,
            "-a",
            "-q",
            "-e",
            self.gateway.ssh_command(),
            f"{self.staging_path}/",
            self.gateway.target(remote_path),
        ]

    def transfer(self) -> TransferResult:
        """Push the staged snapshot and publish it under its final name.

        Returns:
            TransferResult describing the published snapshot

        Raises:
            TransferError: If the snapshot is missing, every rsync attempt
                fails, or the publish rename fails
        """
        name = self.snapshot_name()
        instance_path = self.config.instance_path
        final_path = f"{instance_path}/{name}"
        partial_path = f"{instance_path}/{partial_name_for(name)}"
        retries = self.config.transfer.retries

        logger.info("Pushing snapshot to DR via rsync ...", extra={"snapshot": name})
        start = time.monotonic()
        command = self.build_command(partial_path)

        attempt = 0
        while True:
            attempt += 1
            result = self.runner.run(command)
            if result.ok:
                break

            logger.debug(
                f"rsync attempt {attempt}/{retries} failed with exit {result.returncode}",
                extra={"stderr": result.stderr.strip()},
            )
            if attempt >= retries:
                raise TransferError(
                    f"Could not push snapshot to the DR host after {attempt} attempt(s) "
                    f"(rsync exit {result.returncode}). abort",
                    attempts=attempt,
                )

            backoff = self.config.transfer.backoff_seconds
            logger.info(
                f"Retrying transfer to the DR host up to {retries} times. "
                f"Sleep {backoff:g}s ..."
            )
            self.sleep(backoff)

        try:
            self.gateway.rename(partial_path, final_path)
        except RemoteCommandError as e:
            raise TransferError(
                f"Could not publish snapshot {name} on the DR host: {e.message}",
                attempts=attempt,
            ) from e

        duration = time.monotonic() - start
        logger.info(
            f"OK. rsync finished in {int(duration)} seconds",
            extra={"snapshot": name, "attempts": attempt, "remote_path": final_path},
        )

        if self.config.staging.drop_after_transfer:
            self._drop_staging()

        return TransferResult(
            name=name,
            remote_path=final_path,
            attempts=attempt,
            duration_seconds=duration,
        )

    def _drop_staging(self) -> None:
        logger.info(f"Dropping temporary snapshot folder {self.staging_path} ...")
        try:
            shutil.rmtree(self.staging_path)
        except OSError as e:
            logger.warning(f"Could not drop temporary snapshot folder: {e}")
