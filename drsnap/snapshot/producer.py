"""
Local snapshot producer.

The SnapshotProducer materializes a compressed, directly launchable snapshot
of the live database in the staging directory using pg_basebackup:

    pg_basebackup -h <host> -p <port> -U <user> -c fast -Z <level> -R -Ft -D <staging>

-R writes standby/recovery settings into the snapshot, so it can be started
on the DR host without the primary.

Invariants:
    - The staging directory holds at most one snapshot; it is removed and
      recreated before every pull
    - On success the staging directory's mtime is the snapshot's creation time
    - A failed pull surfaces pg_basebackup's output

How to change safely:
    - Keep tar format (-Ft); the transfer pushes directory contents as-is
    - Never log the database password
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from ..config import DatabaseConfig, StagingConfig
from ..errors import PullError, StagingError
from ..runner import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullResult:
    """Result of a successful pull.

    Attributes:
        path: Staging directory containing the snapshot
        duration_seconds: Wall-clock time spent in pg_basebackup
    """

    path: Path
    duration_seconds: float


class SnapshotProducer:
    """Pulls a base backup of the live database into the staging area.

    Attributes:
        database: Source database configuration
        staging: Staging area configuration
        runner: CommandRunner used to invoke pg_basebackup

    Example:
        >>> producer = SnapshotProducer(config.database, config.staging, runner)
        >>> producer.reset_staging()
        >>> result = producer.pull()
    """

    def __init__(
        self,
        database: DatabaseConfig,
        staging: StagingConfig,
        runner: CommandRunner,
    ) -> None:
        self.database = database
        self.staging = staging
        self.runner = runner

    @property
    def staging_path(self) -> Path:
        return Path(self.staging.path)

    def reset_staging(self) -> None:
        """Remove any previous snapshot and recreate an empty staging directory.

        Raises:
            StagingError: If the directory cannot be removed or created
        """
        logger.info("Clearing previous local snapshot data if any ...")
        path = self.staging_path
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            path.mkdir(parents=True)
        except OSError as e:
            raise StagingError(
                f"Could not reset temp snapshot path {path}: {e}",
                path=str(path),
            ) from e

    def build_command(self) -> List[str]:
        """pg_basebackup argument vector."""
        db = self.database
        return [
            db.basebackup_binary,
            "-h",
            db.host,
            "-p",
            str(db.port),
            "-U",
            db.user,
            "-c",
            "fast",
            "-Z",
            str(db.compress_level),
            "-R",
            "-Ft",
            "-D",
            str(self.staging_path),
        ]

    def _env(self) -> Dict[str, str]:
        if self.database.password:
            return {"PGPASSWORD": self.database.password}
        return {}

    def pull(self) -> PullResult:
        """Run pg_basebackup into the (already reset) staging directory.

        Returns:
            PullResult with timing information

        Raises:
            PullError: If pg_basebackup exits non-zero
        """
        command = self.build_command()
        logger.info("Starting pg_basebackup:")
        logger.info(" ".join(command))

        start = time.monotonic()
        result = self.runner.run(command, env=self._env())
        duration = time.monotonic() - start

        if not result.ok:
            raise PullError(
                f"Could not pull a snapshot (pg_basebackup exit {result.returncode}). "
                f"abort\n{result.output}",
                output=result.output,
            )

        logger.info(
            f"OK. pg_basebackup finished in {int(duration)} seconds",
            extra={"staging_path": str(self.staging_path), "duration_seconds": duration},
        )
        return PullResult(path=self.staging_path, duration_seconds=duration)
