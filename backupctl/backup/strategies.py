"""
Backup strategies: full system, single project, and incremental.

Each strategy turns a RunConfig into an ArchiveJob, validates its sources,
and either archives them or, in dry-run mode, logs what it would archive.
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

from backupctl import DRYRUN
from backupctl.config import BackupMode, RunConfig
from backupctl.errors import DestinationUnavailable, MissingSnapshot
from backupctl.utils.sizes import format_size
from .archiver import Archiver, ArchiveJob, next_archive_path, get_archive_size, sanitize_label
from .preconditions import PreconditionChecker


SNAPSHOT_EXTENSION = 'snar'


def snapshot_path_for(config: RunConfig, label: str) -> Path:
    """Location of the snapshot manifest for a label."""
    return config.snapshot_dir / f"{sanitize_label(label)}.{SNAPSHOT_EXTENSION}"


def _ensure_dir(path: Path):
    """
    Raises:
        DestinationUnavailable: If the directory cannot be created
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise DestinationUnavailable(path, e.strerror or str(e))


class BackupStrategy:
    """
    Base class for the three archive strategies.

    Subclasses provide the label, the sources, the source validation and
    the archiver call.
    """

    incremental = False

    def __init__(
        self,
        config: RunConfig,
        archiver: Archiver,
        checker: PreconditionChecker,
        logger: Optional[logging.Logger] = None
    ):
        self.config = config
        self.archiver = archiver
        self.checker = checker
        self.logger = logger or logging.getLogger('backupctl')

    @property
    def label(self) -> str:
        raise NotImplementedError

    def sources(self) -> List[Path]:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def validate(self):
        """Source checks specific to the strategy."""
        raise NotImplementedError

    def build_job(self) -> ArchiveJob:
        return ArchiveJob(
            label=self.label,
            sources=self.sources(),
            archive_path=next_archive_path(self.config.backup_dir, self.label, self.incremental),
            compression_level=self.config.compression_level,
            exclude_patterns=self.config.exclude_patterns,
            incremental=self.incremental,
        )

    def run(self) -> Optional[Path]:
        """
        Validate and archive.

        Returns:
            Path of the created archive, or None for a dry run

        Raises:
            PreconditionError: If a check fails (nothing is written)
            DestinationUnavailable: If the backup directory cannot be created
            ArchiveToolFailure: If tar or gzip fail
        """
        self.logger.info(f"Starting {self.describe()}...")

        self.validate()
        job = self.build_job()
        self.checker.check_disk_space(job.sources, self.config.backup_dir)

        if self.config.dry_run:
            self._log_dry_run(job)
            return None

        _ensure_dir(self.config.backup_dir)
        archive_path = self._archive(job)

        size = get_archive_size(archive_path)
        self.logger.info(f"Backup saved to {archive_path} ({format_size(size)})")
        return archive_path

    def _archive(self, job: ArchiveJob) -> Path:
        return self.archiver.create_full(job)

    def _log_dry_run(self, job: ArchiveJob):
        sources = ' '.join(str(s) for s in job.sources)
        self.logger.log(DRYRUN, f"Would archive {sources} to {job.archive_path}")


class FullBackup(BackupStrategy):
    """Archive of the fixed system roots (config.full_paths)."""

    @property
    def label(self) -> str:
        return 'full'

    def sources(self) -> List[Path]:
        return list(self.config.full_paths)

    def describe(self) -> str:
        return "full system backup"

    def validate(self):
        # Unreadable roots are reported together
        self.checker.check_permissions_all(self.sources())


class ProjectBackup(BackupStrategy):
    """
    Archive of one directory.

    A real run also records a fresh snapshot manifest for the label, which
    later incremental runs use as their baseline.
    """

    @property
    def target(self) -> Path:
        return Path(self.config.target_path).expanduser().absolute()

    @property
    def label(self) -> str:
        return sanitize_label(Path(os.path.normpath(str(self.target))).name)

    def sources(self) -> List[Path]:
        return [Path(os.path.normpath(str(self.target)))]

    def describe(self) -> str:
        return f"backup of project directory {self.config.target_path}"

    def validate(self):
        self.checker.check_source_exists(self.target)
        self.checker.check_permissions(self.target)

    def _archive(self, job: ArchiveJob) -> Path:
        manifest = snapshot_path_for(self.config, self.label)
        _ensure_dir(manifest.parent)

        # tar starts a new level-0 snapshot when the file does not exist
        pending = manifest.with_name(f"{manifest.name}.new")
        if pending.exists():
            pending.unlink()
        job.snapshot_path = pending

        try:
            archive_path = self.archiver.create_full(job)
        except Exception:
            if pending.exists():
                pending.unlink()
            raise

        if pending.exists():
            os.replace(pending, manifest)
            self.logger.info(f"Recorded baseline snapshot {manifest}")
        return archive_path


class IncrementalBackup(ProjectBackup):
    """Archive of changes in one directory since its snapshot manifest."""

    incremental = True

    def describe(self) -> str:
        return f"incremental backup of {self.config.target_path}"

    @property
    def manifest_path(self) -> Path:
        return snapshot_path_for(self.config, self.label)

    def validate(self):
        super().validate()

        if not self.manifest_path.exists():
            if not self.config.dry_run:
                raise MissingSnapshot(self.label, self.manifest_path, self.config.target_path)
            self.logger.warning(
                f"No snapshot manifest at {self.manifest_path}; a real run would fail "
                f"until --project {self.config.target_path} records a baseline"
            )

    def build_job(self) -> ArchiveJob:
        job = super().build_job()
        job.snapshot_path = self.manifest_path
        return job

    def _archive(self, job: ArchiveJob) -> Path:
        # tar rewrites the manifest in place as the new baseline
        return self.archiver.create_incremental(job)

    def _log_dry_run(self, job: ArchiveJob):
        self.logger.log(
            DRYRUN,
            f"Would archive changes in {job.sources[0]} since {job.snapshot_path} to {job.archive_path}"
        )


STRATEGIES = {
    BackupMode.FULL: FullBackup,
    BackupMode.PROJECT: ProjectBackup,
    BackupMode.INCREMENTAL: IncrementalBackup,
}


def create_strategy(
    config: RunConfig,
    archiver: Archiver,
    checker: PreconditionChecker,
    logger: Optional[logging.Logger] = None
) -> BackupStrategy:
    """
    Factory function to create the strategy for config.mode.

    Raises:
        ValueError: If the mode has no strategy
    """
    try:
        strategy_class = STRATEGIES[config.mode]
    except KeyError:
        raise ValueError(f"Invalid backup mode: {config.mode}")
    return strategy_class(config, archiver, checker, logger)
